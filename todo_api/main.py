import asyncio
import os
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request, Response, Body, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session

from logger import logger
from .database import get_session, init_db
from .errors import ApiError
from .models import User
from .repository import UserRepository, TodoRepository
from .schemas import (
    UserCreate, UserRead,
    TodoCreate, TodoRead, TodoUpdate, TodoEnvelope, TodoList
)
from .security import AUTH_HEADER, auth_header, get_current_user, get_optional_user

load_dotenv()

REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", 30))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("Initializing database...")
    init_db()
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Todo API",
    description="Per-user todo items behind x-auth token authentication",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    # Browsers only hand the token to scripts when it is exposed
    expose_headers=[AUTH_HEADER],
)


@app.middleware("http")
async def enforce_request_timeout(request: Request, call_next):
    # Database-bound routes and dependencies must stay plain def: the timer
    # can only fire while the event loop is free.
    try:
        return await asyncio.wait_for(call_next(request), timeout=REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error(f"Request timed out: {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"detail": "Request timed out"},
        )


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body validation failures are plain 400s."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def _todo_envelope(db_todo) -> TodoEnvelope:
    return TodoEnvelope(todo=TodoRead.model_validate(db_todo))


# User endpoints
@app.post("/users", response_model=UserRead, summary="Sign up")
def create_user(
        user: Annotated[UserCreate, Body(...)],
        response: Response,
        session: Annotated[Session, Depends(get_session)]
) -> UserRead:
    """
    Create a new user and return a fresh token in the x-auth header.
    """
    user_repo = UserRepository(session)
    db_user = user_repo.create(user)
    response.headers[AUTH_HEADER] = user_repo.generate_auth_token(db_user)
    logger.info(f"Created user: {db_user.email}")
    return UserRead.model_validate(db_user)


@app.post("/users/login", response_model=UserRead, summary="Log in")
def login(
        credentials: Annotated[UserCreate, Body(...)],
        response: Response,
        session: Annotated[Session, Depends(get_session)]
) -> UserRead:
    """
    Exchange email and password for a new token in the x-auth header.
    """
    logger.info(f"Login attempt for user: {credentials.email}")
    user_repo = UserRepository(session)
    try:
        db_user = user_repo.get_by_credentials(credentials.email, credentials.password)
    except ApiError:
        logger.warning(f"Failed login attempt for user: {credentials.email}")
        raise
    response.headers[AUTH_HEADER] = user_repo.generate_auth_token(db_user)
    logger.info(f"Successful login for user: {credentials.email}")
    return UserRead.model_validate(db_user)


@app.get("/users/me", response_model=UserRead, summary="Get current user")
def read_users_me(
        current_user: Annotated[User, Depends(get_current_user)]
) -> UserRead:
    return UserRead.model_validate(current_user)


@app.delete("/users/me/token", summary="Log out")
def logout(
        current_user: Annotated[User, Depends(get_current_user)],
        token: Annotated[Optional[str], Depends(auth_header)],
        session: Annotated[Session, Depends(get_session)]
) -> dict:
    """
    Revoke the token the request was made with.
    """
    UserRepository(session).remove_token(current_user, token)
    logger.info(f"Logged out user: {current_user.email}")
    return {}


# Todo endpoints
@app.post("/todos", response_model=TodoRead, response_model_exclude_none=True, summary="Create todo")
def create_todo(
        todo: Annotated[TodoCreate, Body(...)],
        current_user: Annotated[User, Depends(get_current_user)],
        session: Annotated[Session, Depends(get_session)]
) -> TodoRead:
    db_todo = TodoRepository(session).create(todo, current_user.id)
    logger.info(f"Created todo {db_todo.id} for user {current_user.email}")
    return TodoRead.model_validate(db_todo)


@app.get("/todos", response_model=TodoList, response_model_exclude_none=True, summary="List own todos")
def read_todos(
        current_user: Annotated[User, Depends(get_current_user)],
        session: Annotated[Session, Depends(get_session)]
) -> TodoList:
    todos = TodoRepository(session).get_by_owner(current_user.id)
    return TodoList(todos=[TodoRead.model_validate(t) for t in todos])


@app.get("/todos/{todo_id}", response_model=TodoEnvelope, response_model_exclude_none=True,
         summary="Get todo by ID")
def read_todo(
        todo_id: str,
        current_user: Annotated[Optional[User], Depends(get_optional_user)],
        session: Annotated[Session, Depends(get_session)]
) -> TodoEnvelope:
    """
    Anonymous callers may read any todo; authenticated callers only their own.
    Malformed and unknown ids are both 404.
    """
    owner_id = current_user.id if current_user else None
    return _todo_envelope(TodoRepository(session).get_user_todo(todo_id, owner_id))


@app.patch("/todos/{todo_id}", response_model=TodoEnvelope, response_model_exclude_none=True,
           summary="Update todo")
def update_todo(
        todo_id: str,
        current_user: Annotated[Optional[User], Depends(get_optional_user)],
        session: Annotated[Session, Depends(get_session)],
        todo_update: Annotated[Optional[TodoUpdate], Body()] = None
) -> TodoEnvelope:
    """
    Apply whichever of text and completed were sent; an empty body changes nothing.
    """
    owner_id = current_user.id if current_user else None
    db_todo = TodoRepository(session).update(todo_id, todo_update or TodoUpdate(), owner_id)
    logger.info(f"Updated todo {db_todo.id}")
    return _todo_envelope(db_todo)


@app.delete("/todos/{todo_id}", response_model=TodoEnvelope, response_model_exclude_none=True,
            summary="Delete todo")
def delete_todo(
        todo_id: str,
        current_user: Annotated[User, Depends(get_current_user)],
        session: Annotated[Session, Depends(get_session)]
) -> TodoEnvelope:
    db_todo = TodoRepository(session).delete_user_todo(todo_id, current_user.id)
    logger.info(f"Deleted todo {db_todo.id} for user {current_user.email}")
    return _todo_envelope(db_todo)


def run() -> None:
    """Serve the app with uvicorn on HOST:PORT."""
    import uvicorn

    uvicorn.run(
        "todo_api.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", 8000)),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )
