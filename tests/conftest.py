import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

from todo_api.database import get_session
from todo_api.main import app
from todo_api.models import User, UserToken, Todo
from todo_api.security import AUTH_ACCESS, create_auth_token, get_password_hash

load_dotenv()


# Use in-memory SQLite for testing
@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session):
    def get_test_session():
        yield session

    app.dependency_overrides = {get_session: get_test_session}

    yield TestClient(app)

    app.dependency_overrides = {}


def _seed_user(session: Session, email: str, password: str) -> User:
    user = User(email=email, hashed_password=get_password_hash(password))
    session.add(user)
    session.commit()
    session.refresh(user)

    session.add(UserToken(user_id=user.id, access=AUTH_ACCESS, token=create_auth_token(user.id)))
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(name="users")
def users_fixture(session):
    """Two users, each holding one pre-issued token."""
    return [
        _seed_user(session, "andrew@example.com", "userOnePass"),
        _seed_user(session, "jen@example.com", "userTwoPass"),
    ]


@pytest.fixture(name="todos")
def todos_fixture(session, users):
    """One todo for each seeded user; the second one is already completed."""
    todos = [
        Todo(text="First test todo", creator_id=users[0].id),
        Todo(text="Second test todo", completed=True, completed_at=333, creator_id=users[1].id),
    ]
    for todo in todos:
        session.add(todo)
    session.commit()
    for todo in todos:
        session.refresh(todo)
    return todos


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(users):
    """x-auth header of the first seeded user."""
    return {"x-auth": users[0].tokens[0].token}


@pytest.fixture(name="other_auth_headers")
def other_auth_headers_fixture(users):
    """x-auth header of the second seeded user."""
    return {"x-auth": users[1].tokens[0].token}
