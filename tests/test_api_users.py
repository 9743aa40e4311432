from fastapi.testclient import TestClient
from sqlmodel import Session

from todo_api.repository import UserRepository


def test_get_current_user(client: TestClient, auth_headers, users):
    """Test getting the current user with a valid token."""
    response = client.get("/users/me", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"_id": users[0].id, "email": users[0].email}


def test_get_current_user_without_token(client: TestClient, users):
    response = client.get("/users/me")

    assert response.status_code == 401
    assert response.json() == {}


def test_get_current_user_with_forged_token(client: TestClient, users):
    response = client.get("/users/me", headers={"x-auth": users[0].tokens[0].token + "x"})

    assert response.status_code == 401
    assert response.json() == {}


def test_create_user(client: TestClient, session: Session):
    """Sign-up returns a working token and stores a hashed password."""
    email = "example@example.com"
    password = "123abc"

    response = client.post("/users", json={"email": email, "password": password})

    assert response.status_code == 200
    assert response.headers["x-auth"]
    data = response.json()
    assert data["_id"]
    assert data["email"] == email
    assert "password" not in data and "hashed_password" not in data

    user = UserRepository(session).get_by_email(email)
    assert user is not None
    assert user.hashed_password != password

    me = client.get("/users/me", headers={"x-auth": response.headers["x-auth"]})
    assert me.status_code == 200
    assert me.json()["email"] == email


def test_create_user_with_invalid_input(client: TestClient, session: Session):
    for body in (
            {"email": "not-an-email", "password": "123abc"},
            {"email": "short@example.com", "password": "123"},
            {"email": "nopass@example.com"},
            {},
    ):
        response = client.post("/users", json=body)
        assert response.status_code == 400, body
        assert "x-auth" not in response.headers

    assert UserRepository(session).get_by_email("short@example.com") is None


def test_create_user_with_duplicate_email(client: TestClient, users):
    response = client.post("/users", json={"email": users[0].email, "password": "password123"})

    assert response.status_code == 400
    assert "x-auth" not in response.headers


def test_login(client: TestClient, users):
    """Login appends a new token to the user."""
    response = client.post("/users/login", json={"email": users[1].email, "password": "userTwoPass"})

    assert response.status_code == 200
    token = response.headers["x-auth"]
    assert response.json()["_id"] == users[1].id

    assert [t.token for t in users[1].tokens][-1] == token
    assert len(users[1].tokens) == 2

    me = client.get("/users/me", headers={"x-auth": token})
    assert me.status_code == 200


def test_login_with_wrong_credentials(client: TestClient, users):
    response = client.post("/users/login", json={"email": users[1].email, "password": "wrongPass"})

    assert response.status_code == 400
    assert "x-auth" not in response.headers
    assert len(users[1].tokens) == 1

    response = client.post("/users/login", json={"email": "nobody@example.com", "password": "whatever"})
    assert response.status_code == 400


def test_logout_revokes_token(client: TestClient, auth_headers, users):
    response = client.delete("/users/me/token", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {}
    assert users[0].tokens == []

    assert client.get("/users/me", headers=auth_headers).status_code == 401


def test_logout_keeps_other_tokens(client: TestClient, auth_headers, users):
    login = client.post("/users/login", json={"email": users[0].email, "password": "userOnePass"})
    second = {"x-auth": login.headers["x-auth"]}

    client.delete("/users/me/token", headers=auth_headers)

    assert client.get("/users/me", headers=second).status_code == 200


def test_logout_without_token(client: TestClient, users):
    assert client.delete("/users/me/token").status_code == 401


def test_create_user_keeps_submitted_email(client: TestClient, session: Session):
    response = client.post("/users", json={"email": " Mixed@Example.COM ", "password": "123abc"})

    assert response.status_code == 200
    assert response.json()["email"] == "Mixed@Example.COM"
    assert UserRepository(session).get_by_email("Mixed@Example.COM") is not None


def test_token_header_is_exposed_to_browsers(client: TestClient, auth_headers, users):
    response = client.get("/users/me", headers={**auth_headers, "Origin": "http://localhost:3000"})

    assert response.status_code == 200
    exposed = response.headers["access-control-expose-headers"].lower()
    assert "x-auth" in exposed

    preflight = client.options("/users", headers={
        "Origin": "http://localhost:3000",
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "x-auth",
    })
    assert preflight.status_code == 200
    assert "x-auth" in preflight.headers["access-control-allow-headers"].lower()
