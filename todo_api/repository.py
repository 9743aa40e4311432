import time
from typing import List, Optional, Generic, TypeVar, Type, cast

from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.selectable import Select
from sqlmodel import Session, select

from .errors import NotFoundError, ValidationError
from .ids import is_valid_object_id
from .models import User, UserToken, Todo
from .schemas import UserCreate, TodoCreate, TodoUpdate
from .security import AUTH_ACCESS, create_auth_token, decode_auth_token, get_password_hash

# Generic type variables
T = TypeVar('T')
U = TypeVar('U')


def now_millis() -> int:
    return int(time.time() * 1000)


class BaseRepository(Generic[T, U]):
    """Generic base repository for CRUD operations."""

    def __init__(self, session: Session, model_class: Type[T]):
        self.session = session
        self.model_class = model_class

    def get(self, id: str) -> Optional[T]:
        """Get an item by ID; malformed ids never match."""
        if not is_valid_object_id(id):
            return None
        return self.session.get(self.model_class, id)

    def get_or_404(self, id: str) -> T:
        db_obj = self.get(id)
        if db_obj is None:
            raise NotFoundError()
        return db_obj

    def _save(self, db_obj: T) -> T:
        try:
            self.session.add(db_obj)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(db_obj)
        return db_obj


class UserRepository(BaseRepository[User, UserCreate]):
    """Repository for User entity."""

    def __init__(self, session: Session):
        super().__init__(session, User)

    def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by email."""
        query = cast(Select, select(User).where(User.email == email))
        return self.session.exec(query).first()

    def get_by_token(self, token: str) -> Optional[User]:
        """Get the user a token was issued to, if that token is still live."""
        claims = decode_auth_token(token)
        if not claims or not is_valid_object_id(claims.get("_id")):
            return None

        query = cast(Select, select(User)
                     .join(UserToken)
                     .where(User.id == claims["_id"],
                            UserToken.token == token,
                            UserToken.access == AUTH_ACCESS))
        return self.session.exec(query).first()

    def get_by_credentials(self, email: str, password: str) -> User:
        """Get a user by email and password, or fail with a 400."""
        user = self.get_by_email(email)
        if not user or not user.verify_password(password):
            raise ValidationError("Incorrect email or password")
        return user

    def create(self, user_create: UserCreate) -> User:
        """Create a new user."""
        if self.get_by_email(user_create.email):
            raise ValidationError(f"User with email {user_create.email} already exists")

        db_user = User(
            email=user_create.email,
            hashed_password=get_password_hash(user_create.password),
        )
        try:
            return self._save(db_user)
        except IntegrityError:
            raise ValidationError(f"User with email {user_create.email} already exists")

    def generate_auth_token(self, user: User) -> str:
        """Issue a new token and append it to the user's tokens."""
        token = create_auth_token(user.id, AUTH_ACCESS)
        self._save(UserToken(user_id=user.id, access=AUTH_ACCESS, token=token))
        self.session.refresh(user)
        return token

    def remove_token(self, user: User, token: str) -> None:
        """Revoke a single token; other sessions of the user stay valid."""
        query = cast(Select, select(UserToken)
                     .where(UserToken.user_id == user.id, UserToken.token == token))
        for db_token in self.session.exec(query).all():
            self.session.delete(db_token)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(user)


class TodoRepository(BaseRepository[Todo, TodoCreate]):
    """Repository for Todo entity."""

    def __init__(self, session: Session):
        super().__init__(session, Todo)

    def get_by_owner(self, owner_id: str) -> List[Todo]:
        """Get todos by owner ID, oldest first.

        Ids lead with their creation second, so ordering by id is creation
        order; ids minted by different processes within one second may interleave.
        """
        query = cast(Select, select(Todo)
                     .where(Todo.creator_id == owner_id)
                     .order_by(Todo.id))
        result = self.session.exec(query).all()
        return cast(List[Todo], result)

    def get_user_todo(self, todo_id: str, owner_id: Optional[str] = None) -> Todo:
        """Get a todo, restricted to one owner when ``owner_id`` is given."""
        db_todo = self.get_or_404(todo_id)
        if owner_id is not None and db_todo.creator_id != owner_id:
            raise NotFoundError()
        return db_todo

    def create(self, todo_create: TodoCreate, owner_id: str) -> Todo:
        """Create a new todo for a user."""
        db_todo = Todo(text=todo_create.text, creator_id=owner_id)
        return self._save(db_todo)

    def update(self, todo_id: str, todo_update: TodoUpdate, owner_id: Optional[str] = None) -> Todo:
        """Apply a partial update.

        completed=True stamps completed_at with the current time,
        completed=False clears it. Fields not sent are left as they are.
        """
        db_todo = self.get_user_todo(todo_id, owner_id)
        update_data = todo_update.model_dump(exclude_unset=True, exclude_none=True)

        if "text" in update_data:
            db_todo.text = update_data["text"]

        if "completed" in update_data:
            if update_data["completed"]:
                db_todo.completed = True
                db_todo.completed_at = now_millis()
            else:
                db_todo.completed = False
                db_todo.completed_at = None

        return self._save(db_todo)

    def delete_user_todo(self, todo_id: str, owner_id: str) -> Todo:
        """Delete a todo owned by a user and return it."""
        db_todo = self.get_user_todo(todo_id, owner_id)
        # Load every column so the record can still be rendered once deleted
        self.session.refresh(db_todo)
        try:
            self.session.delete(db_todo)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return db_todo
