from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator

from sqlmodel import SQLModel


def _clean_text(v):
    v = v.strip()
    if not v:
        raise ValueError("Text must not be empty")
    return v


class UserCreate(SQLModel):
    """Schema for sign-up and login requests."""
    email: EmailStr
    password: str

    @field_validator("email", mode="wrap")
    def keep_submitted_email(cls, v, handler):
        # EmailStr only checks the address; the trimmed input is what gets stored
        v = v.strip() if isinstance(v, str) else v
        handler(v)
        return v

    @field_validator("password")
    def password_min_length(cls, v):
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters long")
        return v


class UserRead(BaseModel):
    """Schema for user read responses."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    email: str


class TodoCreate(SQLModel):
    """Schema for todo creation requests."""
    text: str

    @field_validator("text")
    def text_not_empty(cls, v):
        return _clean_text(v)


class TodoUpdate(SQLModel):
    """Schema for todo update requests; unset fields are left alone."""
    text: Optional[str] = None
    completed: Optional[bool] = None

    @field_validator("text")
    def text_not_empty(cls, v):
        if v is None:
            return v
        return _clean_text(v)


class TodoRead(BaseModel):
    """Schema for todo read responses."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    text: str
    completed: bool
    completed_at: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("completedAt", "completed_at"),
        serialization_alias="completedAt",
    )
    creator_id: str = Field(
        validation_alias=AliasChoices("_creator", "creator_id"),
        serialization_alias="_creator",
    )


class TodoEnvelope(BaseModel):
    """Single todo wrapped as ``{"todo": ...}``."""
    todo: TodoRead


class TodoList(BaseModel):
    """Todos wrapped as ``{"todos": [...]}``."""
    todos: List[TodoRead] = []
