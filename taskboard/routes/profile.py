# taskboard/routes/profile.py
"""The signed-in user's own profile."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from taskboard.backend import BackendClient
from taskboard.data_access import fetch_user, update_profile
from taskboard.errors import BackendError
from taskboard.notifications import error_response, failure, success
from taskboard.session import SessionContext, get_session_context, navigation_for, session_backend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["profile"])


class ProfileUpdateRequest(BaseModel):
    username: str = Field(..., max_length=100)


@router.get("/")
async def get_profile(
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(session_backend),
):
    """Username, email and role. Email is shown read-only."""
    try:
        user = await fetch_user(backend, session.user_id)
    except BackendError:
        logger.exception("Error fetching user profile")
        return error_response(
            502,
            "Could not fetch user data",
            failure("Could not fetch user data. Please try again later."),
        )
    role = user.role or session.role
    return {
        "success": True,
        "username": user.username or "",
        "email": user.email,
        "role": role.value if role else "user",
        "navigation": navigation_for(role),
    }


@router.put("/")
async def put_profile(
    body: ProfileUpdateRequest,
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(session_backend),
):
    """Rename the current user; nothing else on the row is writable here."""
    try:
        user = await update_profile(backend, session.user_id, body.username)
    except BackendError:
        logger.exception("Error updating profile")
        return error_response(
            502,
            "Could not update profile",
            failure("Could not update profile. Please try again later."),
        )
    return {
        "success": True,
        "username": user.username if user else body.username.strip(),
        "notification": success("Success", "Your profile has been updated.").model_dump(),
    }
