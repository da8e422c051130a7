# taskboard/board.py
"""Local state behind a task list view.

A board owns the tasks one view has fetched. Status changes are written to
the backend first and only then patched into the local list, so a failed
write never leaves the view showing a status the backend does not hold.
"""

import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from taskboard import data_access
from taskboard.backend import BackendClient
from taskboard.errors import BackendError, TaskValidationError
from taskboard.models import StatusPatch, Task, TaskPriority, User
from taskboard.notifications import Notification, failure, success

logger = logging.getLogger(__name__)


class TaskView(str, Enum):
    all = "all"
    mine = "mine"
    unassigned = "unassigned"


def filter_tasks(
    tasks: list[Task], view: TaskView, current_user_id: Optional[str] = None
) -> list[Task]:
    """Narrow *tasks* to the subset a list filter shows."""
    if view == TaskView.mine:
        return [
            t for t in tasks
            if t.assigned_to is not None and t.assigned_to.id == current_user_id
        ]
    if view == TaskView.unassigned:
        return [t for t in tasks if t.assigned_to is None]
    return list(tasks)


def apply_status_patch(tasks: list[Task], patch: StatusPatch) -> list[Task]:
    """Return a new list with the patched task replaced by an updated copy."""
    return [
        task.model_copy(update={"status": patch.status, "updated_at": patch.updated_at})
        if task.id == patch.task_id
        else task
        for task in tasks
    ]


def _due_day(task: Task) -> Optional[date]:
    """Calendar day of the due date in UTC; naive timestamps are taken as UTC."""
    if task.due_date is None:
        return None
    due = task.due_date
    if due.tzinfo is not None:
        due = due.astimezone(timezone.utc)
    return due.date()


def tasks_due_on(tasks: list[Task], day: date) -> list[Task]:
    return [t for t in tasks if _due_day(t) == day]


def calendar_markers(tasks: list[Task]) -> list[dict]:
    """Per due date: how many tasks fall on it and whether any is high priority."""
    days: dict[date, dict] = {}
    for task in tasks:
        day = _due_day(task)
        if day is None:
            continue
        marker = days.setdefault(day, {"date": day.isoformat(), "count": 0, "high_priority": False})
        marker["count"] += 1
        if task.priority == TaskPriority.high:
            marker["high_priority"] = True
    return [days[d] for d in sorted(days)]


class TaskBoard:
    """Tasks fetched for one view plus the notifications raised against them.

    Args:
        backend: Client bound to the viewing session.
        assignee_id: Restrict the board to tasks assigned to this user.
        order: Ordering passed through to the fetch.
    """

    def __init__(
        self,
        backend: BackendClient,
        assignee_id: Optional[str] = None,
        order: data_access.TaskOrder = data_access.TaskOrder.CREATED_DESC,
    ) -> None:
        self._backend = backend
        self._assignee_id = assignee_id
        self._order = order
        self.tasks: list[Task] = []
        self.loading = False
        self.notifications: list[Notification] = []

    async def refresh(self) -> bool:
        """Reload tasks. On failure the previous list is kept.

        Overlapping refreshes are not cancelled; whichever completes last
        sets the list.
        """
        self.loading = True
        try:
            tasks = await data_access.fetch_tasks(
                self._backend, assignee_id=self._assignee_id, order=self._order
            )
        except BackendError:
            logger.exception("Error fetching tasks")
            self.notifications.append(
                failure("Failed to fetch tasks. Please try again later.")
            )
            return False
        finally:
            self.loading = False
        self.tasks = tasks
        return True

    async def set_status(self, task_id: str, status: Any) -> Optional[StatusPatch]:
        """Write a new status and patch the local list once the write succeeds."""
        try:
            patch = await data_access.update_task_status(self._backend, task_id, status)
        except (BackendError, TaskValidationError):
            logger.exception("Error updating task status")
            self.notifications.append(failure("Failed to update task status."))
            return None
        self.tasks = apply_status_patch(self.tasks, patch)
        self.notifications.append(
            success("Task Updated", f"Task status changed to {patch.status.value}.")
        )
        return patch

    def visible(self, view: TaskView, current_user_id: Optional[str] = None) -> list[Task]:
        return filter_tasks(self.tasks, view, current_user_id)


async def load_users(backend: BackendClient, notifications: list[Notification]) -> list[User]:
    """Users for the assignee picker and team cards; an empty list on failure."""
    try:
        return await data_access.fetch_users(backend)
    except BackendError:
        logger.exception("Error fetching users")
        notifications.append(failure("Failed to fetch users. Please try again later."))
        return []


def today() -> date:
    return datetime.now(timezone.utc).date()
