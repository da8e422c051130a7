# taskboard/routes/dashboard.py
"""Role-aware dashboard: team overview for admins, own tasks for users."""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from taskboard.backend import BackendClient
from taskboard.board import TaskBoard, TaskView, calendar_markers, load_users
from taskboard.data_access import TaskOrder
from taskboard.models import dump_all
from taskboard.notifications import Notification, error_response
from taskboard.session import SessionContext, get_session_context, session_backend
from taskboard.stats import assigned_counts, compute_task_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/")
async def dashboard(
    view: TaskView = TaskView.all,
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(session_backend),
):
    """Admins see every task and the team; users see tasks assigned to them."""
    now = datetime.now(timezone.utc)

    if session.is_admin:
        board = TaskBoard(backend, order=TaskOrder.CREATED_DESC)
        notifications: list[Notification] = []
        loaded, users = await asyncio.gather(board.refresh(), load_users(backend, notifications))
        if not loaded:
            return error_response(502, "Failed to fetch tasks", board.notifications[-1])
        if view == TaskView.mine:
            view = TaskView.all
        visible = board.visible(view)
        return {
            "success": True,
            "role": "admin",
            "heading": "Admin Dashboard",
            "view": view.value,
            "tasks": dump_all(visible),
            "stats": compute_task_stats(board.tasks, now).to_dict(),
            "calendar": calendar_markers(visible),
            "users": dump_all(users),
            "team": assigned_counts(users, board.tasks),
            "notifications": [n.model_dump() for n in notifications],
        }

    board = TaskBoard(backend, assignee_id=session.user_id, order=TaskOrder.DUE_ASC)
    if not await board.refresh():
        return error_response(502, "Failed to fetch tasks", board.notifications[-1])
    return {
        "success": True,
        "role": session.role.value if session.role else "user",
        "heading": "My Tasks",
        "view": TaskView.mine.value,
        "tasks": dump_all(board.tasks),
        "stats": compute_task_stats(board.tasks, now).to_dict(),
        "calendar": calendar_markers(board.tasks),
        "empty": not board.tasks,
        "notifications": [],
    }
