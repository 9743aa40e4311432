from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel

from .ids import new_object_id


class User(SQLModel, table=True):
    """User DB model for storing in the database."""
    id: str = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    email: str = Field(index=True, unique=True)
    hashed_password: str = Field()
    tokens: List["UserToken"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"order_by": "UserToken.id", "cascade": "all, delete-orphan"},
    )
    todos: List["Todo"] = Relationship(back_populates="creator")

    def verify_password(self, password: str) -> bool:
        """Verify password against the stored hash."""
        # Import here to avoid circular imports
        from .security import verify_password
        return verify_password(password, self.hashed_password)


class UserToken(SQLModel, table=True):
    """An issued auth token; a user may hold several at once."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    access: str = Field(default="auth")
    token: str = Field(index=True)
    user: Optional[User] = Relationship(back_populates="tokens")


class Todo(SQLModel, table=True):
    """Todo DB model for storing in the database."""
    id: str = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    text: str = Field()
    completed: bool = Field(default=False)
    # Epoch milliseconds, only set while completed is true
    completed_at: Optional[int] = Field(default=None)
    creator_id: str = Field(foreign_key="user.id", index=True)
    creator: Optional[User] = Relationship(back_populates="todos")
