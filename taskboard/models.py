# taskboard/models.py
"""User and task schemas as stored by the hosted backend."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class Role(str, Enum):
    admin = "admin"
    user = "user"


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in-progress"
    completed = "completed"


class TaskPriority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class UserRef(SQLModel):
    """A user as embedded in a task row.

    When the user record could not be read only ``id`` is set.
    """
    id: str
    username: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_bare(self) -> bool:
        return self.username is None and self.email is None


class User(SQLModel):
    """Row of the ``users`` table. Username and email may be null."""
    id: str
    username: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Role] = None


class TaskBase(SQLModel):
    """Fields supplied when a task is created."""
    title: str
    description: Optional[str] = Field(default=None)
    priority: TaskPriority = Field(default=TaskPriority.medium)
    due_date: Optional[datetime] = Field(default=None)


class TaskCreate(TaskBase):
    """Schema for creating a task. ``assigned_to`` is a user id or None."""
    title: str = Field(max_length=200)
    assigned_to: Optional[str] = Field(default=None)


class Task(TaskBase):
    """Row of the ``tasks`` table with its user references resolved."""
    id: str
    status: TaskStatus = Field(default=TaskStatus.pending)
    assigned_to: Optional[UserRef] = None
    assigned_by: Optional[UserRef] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusPatch(SQLModel):
    """Outcome of a successful status write."""
    task_id: str
    status: TaskStatus
    updated_at: datetime


def dump_all(items: list[SQLModel]) -> list[dict]:
    """JSON-ready dicts for a list of models."""
    return [item.model_dump(mode="json") for item in items]
