"""
API request and response models for TaskFlow REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tasks/models.py, which own the internal domain representation. Route handlers
map between the two.

Wire format: JSON keys are camelCase (accessToken, dueDate, createdAt).
Every model uses an alias generator and accepts either spelling on input.

Separation of concerns: domain models = domain truth; api/ models = API contract.
"""

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from tasks.models import Task, TaskPriority, TaskStats, TaskStatus

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class SuccessResponse(CamelModel, Generic[T]):
    """Top-level success envelope: {"success": true, "data": ...}."""

    success: bool = True
    data: T


class ErrorDetail(CamelModel):
    """Client-facing error payload.

    details -- list of {field, message} for validation failures; internal
               error detail only in debug mode.
    reset   -- ISO 8601 UTC timestamp, only on 429 responses.
    """

    message: str
    details: Optional[Any] = None
    reset: Optional[str] = None


class ErrorResponse(CamelModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    success: bool = False
    error: ErrorDetail


class FieldError(ResponseModel):
    field: str
    message: str


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(RequestModel):
    """Request body for POST /api/v1/auth/register."""

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        """Require at least one lower-case letter, one upper-case letter and one digit."""
        if not any(c.islower() for c in value):
            raise ValueError("Password must contain at least one lowercase letter")
        if not any(c.isupper() for c in value):
            raise ValueError("Password must contain at least one uppercase letter")
        if not any(c.isdigit() for c in value):
            raise ValueError("Password must contain at least one number")
        return value


class LoginRequest(RequestModel):
    """Request body for POST /api/v1/auth/login.

    No strength rules here -- login must not reveal the password policy and
    must return the generic credentials error for any mismatch.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class RefreshRequest(RequestModel):
    """Optional body for POST /api/v1/auth/refresh (cookie takes precedence)."""

    refresh_token: Optional[str] = Field(default=None, max_length=4096)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserOut(ResponseModel):
    """Public view of a user. There is deliberately no password field."""

    id: int
    email: str
    name: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthPayload(ResponseModel):
    user: UserOut
    access_token: str


class AccessTokenPayload(ResponseModel):
    access_token: str


class MePayload(ResponseModel):
    user: UserOut


class MessagePayload(ResponseModel):
    message: str


# ---------------------------------------------------------------------------
# Tasks -- request models
# ---------------------------------------------------------------------------


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class TaskCreate(RequestModel):
    """Request body for POST /api/v1/tasks."""

    title: str = Field(min_length=3, max_length=100)
    description: str = Field(default="", max_length=500)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def empty_due_date(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("description", mode="before")
    @classmethod
    def null_description(cls, value: Any) -> Any:
        return "" if value is None else value


class TaskUpdate(RequestModel):
    """Request body for PUT /api/v1/tasks/{id}.

    Partial update: only the keys present in the JSON body are applied.
    dueDate: null (or "") clears the due date.
    """

    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def empty_due_date(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @model_validator(mode="after")
    def required_fields_not_null(self) -> "TaskUpdate":
        for name in ("title", "status", "priority"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        """Return only the fields the client sent, keyed by domain name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


# ---------------------------------------------------------------------------
# Tasks -- response models
# ---------------------------------------------------------------------------


class TaskOut(ResponseModel):
    id: int
    title: str
    description: str
    status: TaskStatus
    priority: TaskPriority
    due_date: Optional[str]
    owner_id: int
    created_at: str
    updated_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskOut":
        """Factory method -- the domain-to-wire mapping lives next to the wire model."""
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            owner_id=task.owner_id,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )


class TaskPayload(ResponseModel):
    task: TaskOut


class TaskListPayload(ResponseModel):
    tasks: list[TaskOut]


class TaskStatsOut(ResponseModel):
    total: int
    todo: int
    in_progress: int
    done: int
    overdue: int

    @classmethod
    def from_stats(cls, stats: TaskStats) -> "TaskStatsOut":
        return cls(
            total=stats.total,
            todo=stats.todo,
            in_progress=stats.in_progress,
            done=stats.done,
            overdue=stats.overdue,
        )


class StatsPayload(ResponseModel):
    stats: TaskStatsOut


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(ResponseModel):
    """Response for GET /api/v1/health."""

    status: str = "ok"
    version: str
