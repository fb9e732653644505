"""
Database Schemas for the Task Manager Backend

Collections:
- User -> "users"
- Task -> "tasks"

Documents are stored with the same camelCase keys the API speaks
(assignedTo, todoChecklist, dueDate, ...); Python code uses snake_case
attributes. The Mongo _id is exposed as a string "id".
"""

from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Optional, get_args

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from errors import ValidationError, describe_validation_errors

Role = Literal["admin", "member"]
Priority = Literal["Low", "Medium", "High"]
TaskStatus = Literal["Pending", "InProgress", "Completed"]

PRIORITIES: tuple = get_args(Priority)
STATUSES: tuple = get_args(TaskStatus)

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users
class User(CamelModel):
    id: Optional[str] = None
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120)
    password_hash: str
    role: Role = "member"
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def public(self) -> "UserPublic":
        return UserPublic.model_validate(self.model_dump(exclude={"password_hash"}))


class UserPublic(CamelModel):
    id: Optional[str] = None
    email: EmailStr
    name: str
    role: Role = "member"
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CurrentUser(CamelModel):
    """The authenticated actor of a request."""

    id: str
    email: EmailStr
    name: str
    role: Role
    profile_image_url: Optional[str] = None


# Tasks
class TodoItem(CamelModel):
    text: NonBlank
    completed: bool = False

    @model_validator(mode="before")
    @classmethod
    def from_text(cls, data: Any) -> Any:
        # plain strings become unchecked items
        if isinstance(data, str):
            return {"text": data}
        return data


Checklist = List[TodoItem]
_checklist_adapter = TypeAdapter(Checklist)


class Task(CamelModel):
    id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    priority: Priority = "Medium"
    status: TaskStatus = "Pending"
    due_date: datetime
    assigned_to: List[str] = []
    created_by: Optional[str] = None
    attachments: List[str] = []
    todo_checklist: Checklist = []
    progress: int = Field(0, ge=0, le=100)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.todo_checklist if item.completed)


class RecentTask(CamelModel):
    id: Optional[str] = None
    title: str
    status: TaskStatus
    priority: Priority
    due_date: datetime
    created_at: Optional[datetime] = None


# Request payloads
class RegisterRequest(CamelModel):
    name: NonBlank
    email: EmailStr
    password: str = Field(..., min_length=1)
    profile_image_url: Optional[str] = None
    admin_invite_token: Optional[str] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class ProfileUpdate(CamelModel):
    """Blank name, email or password keeps the stored value."""

    name: Optional[NonBlank] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1)
    profile_image_url: Optional[str] = None

    @field_validator("name", "email", "password", mode="before")
    @classmethod
    def blank_as_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TaskCreate(CamelModel):
    title: NonBlank = Field(..., max_length=200)
    description: Optional[str] = None
    priority: Priority = "Medium"
    due_date: datetime
    assigned_to: List[str] = Field(..., min_length=1)
    attachments: List[str] = []
    todo_checklist: Checklist = []

    @field_validator("due_date")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)


class TaskUpdate(CamelModel):
    """Partial update; fields left out (or sent as null) keep their stored value."""

    title: Optional[NonBlank] = Field(None, max_length=200)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    due_date: Optional[datetime] = None
    assigned_to: Optional[List[str]] = None
    attachments: Optional[List[str]] = None
    todo_checklist: Optional[Checklist] = None

    @field_validator("due_date")
    @classmethod
    def normalize_utc(cls, value):
        return as_utc(value)

    def provided(self) -> dict:
        return {k: getattr(self, k) for k in self.model_fields_set if getattr(self, k) is not None}


class StatusUpdate(CamelModel):
    status: TaskStatus


class ChecklistUpdate(CamelModel):
    todo_checklist: Checklist


def coerce(model_cls, data):
    """Validate raw input into model_cls, raising the API's ValidationError."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_errors(exc.errors())) from exc


def coerce_checklist(items: Any) -> Checklist:
    if not isinstance(items, (list, tuple)):
        raise ValidationError("todoChecklist must be a list")
    try:
        return _checklist_adapter.validate_python(list(items))
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_errors(exc.errors())) from exc
