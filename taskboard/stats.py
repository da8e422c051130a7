# taskboard/stats.py
"""Aggregates shown on the dashboards, the team page and the analytics page."""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from taskboard.config import DUE_SOON_DAYS
from taskboard.models import Task, TaskPriority, TaskStatus, User


@dataclass(frozen=True)
class TaskStats:
    total: int
    completed: int
    pending: int
    in_progress: int
    due_soon: int
    completion_rate: int

    def to_dict(self) -> dict:
        return asdict(self)


def _aware(moment: datetime, reference: datetime) -> datetime:
    """Give a naive *moment* the timezone of *reference*."""
    if moment.tzinfo is None and reference.tzinfo is not None:
        return moment.replace(tzinfo=reference.tzinfo)
    if moment.tzinfo is not None and reference.tzinfo is None:
        return moment.replace(tzinfo=None)
    return moment


def due_soon(
    tasks: Iterable[Task], now: datetime, days: int = DUE_SOON_DAYS
) -> list[Task]:
    """Open tasks due between *now* and *now* + *days*, both ends inclusive."""
    window_end = now + timedelta(days=days)
    result = []
    for task in tasks:
        if task.due_date is None or task.status == TaskStatus.completed:
            continue
        due = _aware(task.due_date, now)
        if now <= due <= window_end:
            result.append(task)
    return result


def overdue(tasks: Iterable[Task], now: datetime) -> list[Task]:
    """Open tasks whose due date has already passed."""
    return [
        task
        for task in tasks
        if task.due_date is not None
        and task.status != TaskStatus.completed
        and _aware(task.due_date, now) < now
    ]


def completion_rate(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(completed / total * 100)


def compute_task_stats(tasks: list[Task], now: datetime) -> TaskStats:
    counts = {status: 0 for status in TaskStatus}
    for task in tasks:
        counts[task.status] += 1
    total = len(tasks)
    completed = counts[TaskStatus.completed]
    return TaskStats(
        total=total,
        completed=completed,
        pending=counts[TaskStatus.pending],
        in_progress=counts[TaskStatus.in_progress],
        due_soon=len(due_soon(tasks, now)),
        completion_rate=completion_rate(completed, total),
    )


STATUS_LABELS = [
    (TaskStatus.completed, "Completed"),
    (TaskStatus.in_progress, "In Progress"),
    (TaskStatus.pending, "Pending"),
]

PRIORITY_LABELS = [
    (TaskPriority.high, "High"),
    (TaskPriority.medium, "Medium"),
    (TaskPriority.low, "Low"),
]


def status_distribution(tasks: list[Task]) -> list[dict]:
    return [
        {"name": label, "value": sum(1 for t in tasks if t.status == status)}
        for status, label in STATUS_LABELS
    ]


def priority_distribution(tasks: list[Task]) -> list[dict]:
    return [
        {"name": label, "value": sum(1 for t in tasks if t.priority == priority)}
        for priority, label in PRIORITY_LABELS
    ]


def member_breakdown(tasks: list[Task]) -> list[dict]:
    """Assigned and completed counts per assignee, in first-seen order.

    Unassigned tasks are not counted. A bare reference is named by its id.
    """
    members: dict[str, dict] = {}
    for task in tasks:
        assignee = task.assigned_to
        if assignee is None:
            continue
        entry = members.setdefault(
            assignee.id,
            {"id": assignee.id, "name": assignee.username or assignee.id, "assigned": 0, "completed": 0},
        )
        entry["assigned"] += 1
        if task.status == TaskStatus.completed:
            entry["completed"] += 1
    return list(members.values())


def assigned_counts(users: list[User], tasks: list[Task]) -> list[dict]:
    """One card per team member with the number of tasks assigned to them."""
    counts: dict[str, int] = {}
    for task in tasks:
        if task.assigned_to is not None:
            counts[task.assigned_to.id] = counts.get(task.assigned_to.id, 0) + 1
    return [
        {
            "id": user.id,
            "username": user.username or "",
            "email": user.email,
            "tasks_assigned": counts.get(user.id, 0),
        }
        for user in users
    ]


def initials(username: Optional[str]) -> str:
    if not username:
        return "U"
    return username[:2].upper()
