# taskboard/routes/team.py
"""Team members page."""

import logging

from fastapi import APIRouter, Depends

from taskboard.backend import BackendClient
from taskboard.data_access import fetch_users
from taskboard.errors import BackendError
from taskboard.notifications import error_response, failure
from taskboard.session import SessionContext, get_session_context, session_backend
from taskboard.stats import initials

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/team", tags=["team"])


@router.get("/")
async def list_team(
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(session_backend),
):
    """Users ordered by username, with the avatar initials the page shows."""
    try:
        users = await fetch_users(backend)
    except BackendError:
        logger.exception("Error fetching users")
        return error_response(
            502,
            "Failed to fetch team members",
            failure("Failed to fetch team members. Please try again later."),
        )

    count = len(users)
    return {
        "success": True,
        "is_admin": session.is_admin,
        "summary": f"{count} {'member' if count == 1 else 'members'} in your team.",
        "members": [
            {
                **user.model_dump(mode="json"),
                "initials": initials(user.username),
            }
            for user in users
        ],
    }
