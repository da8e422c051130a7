# taskboard/routes/analytics.py
"""Team-wide task analytics."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from taskboard.backend import BackendClient
from taskboard.data_access import fetch_tasks
from taskboard.errors import BackendError
from taskboard.notifications import error_response, failure
from taskboard.session import session_backend
from taskboard.stats import (
    compute_task_stats,
    member_breakdown,
    overdue,
    priority_distribution,
    status_distribution,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/")
async def analytics(backend: BackendClient = Depends(session_backend)):
    """Status and priority distributions plus assigned-vs-completed per member."""
    try:
        tasks = await fetch_tasks(backend)
    except BackendError:
        logger.exception("Error fetching tasks for analytics")
        return error_response(
            502,
            "Failed to fetch tasks",
            failure("Failed to fetch tasks for analytics. Please try again later."),
        )

    now = datetime.now(timezone.utc)
    return {
        "success": True,
        "stats": compute_task_stats(tasks, now).to_dict(),
        "overdue": len(overdue(tasks, now)),
        "status": status_distribution(tasks),
        "priority": priority_distribution(tasks),
        "members": member_breakdown(tasks),
    }
