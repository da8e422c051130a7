# taskboard/routes/tasks.py
"""Task list, creation, status updates and the calendar view."""

import asyncio
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from taskboard import data_access
from taskboard.backend import BackendClient
from taskboard.board import (
    TaskBoard,
    TaskView,
    calendar_markers,
    load_users,
    tasks_due_on,
    today,
)
from taskboard.errors import BackendError, PermissionDenied
from taskboard.models import TaskCreate, TaskStatus, dump_all
from taskboard.notifications import Notification, error_response, failure, success
from taskboard.session import SessionContext, get_session_context, session_backend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


class StatusUpdateRequest(BaseModel):
    status: TaskStatus


def _check_view(view: TaskView, session: SessionContext) -> None:
    if view == TaskView.unassigned and not session.is_admin:
        raise PermissionDenied("Unassigned tasks are only listed for administrators.")


@router.get("/")
async def list_tasks(
    view: TaskView = TaskView.all,
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(session_backend),
):
    """Tasks visible to the caller, newest first, with the users to assign."""
    _check_view(view, session)
    board = TaskBoard(backend)
    notifications: list[Notification] = []
    loaded, users = await asyncio.gather(board.refresh(), load_users(backend, notifications))
    if not loaded:
        return error_response(502, "Failed to fetch tasks", board.notifications[-1])
    return {
        "success": True,
        "view": view.value,
        "is_admin": session.is_admin,
        "tasks": dump_all(board.visible(view, session.user_id)),
        "users": dump_all(users),
        "notifications": [n.model_dump() for n in notifications],
    }


@router.post("/", status_code=201)
async def create_task(
    body: TaskCreate,
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(session_backend),
):
    """Create a pending task. Only offered to administrators."""
    if not session.is_admin:
        raise PermissionDenied("Only administrators can create tasks.")
    try:
        task = await data_access.create_task(backend, body, assigned_by=session.user_id)
    except BackendError:
        logger.exception("Error creating task")
        return error_response(502, "Failed to create task", failure("Failed to create task. Please try again."))
    return {
        "success": True,
        "task": task.model_dump(mode="json"),
        "notification": success("Task Created", "The task has been successfully created.").model_dump(),
    }


@router.patch("/{task_id}/status")
async def update_status(
    task_id: str,
    body: StatusUpdateRequest,
    backend: BackendClient = Depends(session_backend),
):
    """Change a task's status. The caller patches its own list with the result."""
    try:
        patch = await data_access.update_task_status(backend, task_id, body.status)
    except BackendError:
        logger.exception("Error updating task status")
        return error_response(502, "Failed to update task status", failure("Failed to update task status."))
    return {
        "success": True,
        "patch": patch.model_dump(mode="json"),
        "notification": success("Task Updated", f"Task status changed to {patch.status.value}.").model_dump(),
    }


@router.get("/calendar")
async def calendar(
    day: Optional[date] = None,
    view: TaskView = TaskView.all,
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(session_backend),
):
    """Tasks due on *day* (default today) and the days that carry tasks."""
    _check_view(view, session)
    board = TaskBoard(backend)
    if not await board.refresh():
        return error_response(502, "Failed to fetch tasks", board.notifications[-1])
    visible = board.visible(view, session.user_id)
    selected = day or today()
    return {
        "success": True,
        "date": selected.isoformat(),
        "tasks": dump_all(tasks_due_on(visible, selected)),
        "markers": calendar_markers(visible),
    }
