# taskboard/data_access.py
"""Queries against the ``tasks`` and ``users`` tables and the role procedures.

Embedding users into tasks server-side recurses through the backend's
row-level policies, so task rows are fetched first and their user
references are resolved with one batched lookup afterwards.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from taskboard.backend import BackendClient
from taskboard.errors import BackendError, TaskValidationError
from taskboard.models import (
    Role,
    StatusPatch,
    Task,
    TaskCreate,
    TaskStatus,
    User,
    UserRef,
)

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, username, email, role"
USER_REF_COLUMNS = "id, username, email"

# PostgREST answers this code when a procedure does not exist.
MISSING_PROCEDURE = "PGRST202"


class TaskOrder(Enum):
    """Orderings used by the task views as ``(column, ascending)``."""
    CREATED_DESC = ("created_at", False)
    DUE_ASC = ("due_date", True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _referenced_user_ids(rows: list[dict]) -> list[str]:
    """Distinct non-null user ids across ``assigned_to``/``assigned_by``."""
    seen: dict[str, None] = {}
    for row in rows:
        for column in ("assigned_to", "assigned_by"):
            value = row.get(column)
            if value:
                seen[str(value)] = None
    return list(seen)


def _resolve_ref(value: Any, lookup: dict[str, UserRef]) -> Optional[UserRef]:
    if not value:
        return None
    user_id = str(value)
    return lookup.get(user_id) or UserRef(id=user_id)


def _task_from_row(row: dict, lookup: dict[str, UserRef]) -> Task:
    merged = {
        **row,
        "assigned_to": _resolve_ref(row.get("assigned_to"), lookup),
        "assigned_by": _resolve_ref(row.get("assigned_by"), lookup),
    }
    return Task.model_validate(merged)


async def fetch_tasks(
    backend: BackendClient,
    assignee_id: Optional[str] = None,
    order: TaskOrder = TaskOrder.CREATED_DESC,
) -> list[Task]:
    """Fetch tasks with their user references denormalised.

    A failure reading the tasks themselves propagates. A failure of the
    user lookup is logged and every reference is returned as a bare id.
    """
    eq = {"assigned_to": assignee_id} if assignee_id else None
    rows = await backend.select("tasks", "*", eq=eq, order=order.value)
    lookup = await _lookup_users(backend, rows)
    return [_task_from_row(row, lookup) for row in rows]


async def _lookup_users(backend: BackendClient, rows: list[dict]) -> dict[str, UserRef]:
    """One batched read of every user the rows reference; empty on failure."""
    user_ids = _referenced_user_ids(rows)
    if not user_ids:
        return {}
    try:
        users = await backend.select("users", USER_REF_COLUMNS, in_=("id", user_ids))
    except BackendError as exc:
        logger.error(
            "User lookup for %d task(s) failed, returning raw ids: %s",
            len(rows), exc.message,
        )
        return {}
    return {str(u["id"]): UserRef.model_validate(u) for u in users}


async def fetch_users(backend: BackendClient) -> list[User]:
    """All users visible to the caller, ordered by username."""
    rows = await backend.select("users", USER_COLUMNS, order=("username", True))
    return [User.model_validate(row) for row in rows]


async def fetch_user(backend: BackendClient, user_id: str) -> User:
    row = await backend.select("users", USER_COLUMNS, eq={"id": user_id}, single=True)
    return User.model_validate(row)


def _parse_role(value: Any) -> Optional[Role]:
    try:
        return Role(value)
    except ValueError:
        logger.warning("Unknown role value from backend: %r", value)
        return None


async def fetch_user_role(backend: BackendClient) -> Optional[Role]:
    """Ask the backend for the caller's role.

    Older deployments only ship ``get_current_user_role``; it is tried
    when ``get_user_role`` is missing.
    """
    try:
        value = await backend.rpc("get_user_role")
    except BackendError as exc:
        if exc.code != MISSING_PROCEDURE:
            raise
        logger.info("get_user_role missing, falling back to get_current_user_role")
        value = await backend.rpc("get_current_user_role")
    if value is None:
        return None
    return _parse_role(value)


def validate_new_task(payload: TaskCreate) -> None:
    if not payload.title or not payload.title.strip():
        raise TaskValidationError("Task title is required.")


async def create_task(
    backend: BackendClient, payload: TaskCreate, assigned_by: str
) -> Task:
    """Insert a pending task created by *assigned_by*.

    Raises TaskValidationError before contacting the backend when the
    title is empty. The returned task has its user references resolved the
    same way as in fetch_tasks.
    """
    validate_new_task(payload)

    values = {
        "title": payload.title,
        "description": payload.description,
        "priority": payload.priority.value,
        "status": TaskStatus.pending.value,
        "assigned_to": payload.assigned_to or None,
        "assigned_by": assigned_by,
        "due_date": payload.due_date.isoformat() if payload.due_date else None,
    }
    rows = await backend.insert("tasks", values)
    if not rows:
        raise BackendError("Task insert returned no row")
    lookup = await _lookup_users(backend, rows[:1])
    return _task_from_row(rows[0], lookup)


def coerce_status(status: Any) -> TaskStatus:
    """Map *status* onto one of the three task statuses or reject it."""
    try:
        return TaskStatus(status)
    except ValueError:
        raise TaskValidationError(f"Unknown task status: {status!r}") from None


async def update_task_status(
    backend: BackendClient,
    task_id: str,
    status: Any,
    now: Optional[datetime] = None,
) -> StatusPatch:
    """Write ``status`` and ``updated_at`` for a single task."""
    new_status = coerce_status(status)
    updated_at = now or _now()
    await backend.update(
        "tasks",
        {"status": new_status.value, "updated_at": updated_at.isoformat()},
        eq={"id": task_id},
    )
    logger.info("Task %s status set to %s", task_id, new_status.value)
    return StatusPatch(task_id=task_id, status=new_status, updated_at=updated_at)


async def update_profile(
    backend: BackendClient,
    user_id: str,
    username: str,
    now: Optional[datetime] = None,
) -> Optional[User]:
    """Change the caller's username. Email and role are never written.

    Returns the stored row when the backend echoes it back.
    """
    if not username or not username.strip():
        raise TaskValidationError("Username is required.")
    updated_at = now or _now()
    rows = await backend.update(
        "users",
        {"username": username.strip(), "updated_at": updated_at.isoformat()},
        eq={"id": user_id},
    )
    if not rows:
        return None
    return User.model_validate(rows[0])
