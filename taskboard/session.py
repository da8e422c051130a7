# taskboard/session.py
"""Session context resolved once per request and passed explicitly to routes."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from taskboard.backend import BackendClient
from taskboard.config import SESSION_COOKIE
from taskboard.data_access import fetch_user_role
from taskboard.errors import AuthenticationRequired, BackendError
from taskboard.models import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    access_token: str
    user_id: str
    email: Optional[str]
    role: Optional[Role]

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


ADMIN_NAVIGATION = [
    {"label": "Dashboard", "href": "/dashboard"},
    {"label": "Tasks", "href": "/tasks"},
    {"label": "Team", "href": "/team"},
    {"label": "Analytics", "href": "/analytics"},
    {"label": "Settings", "href": "/settings"},
]

USER_NAVIGATION = [
    {"label": "Dashboard", "href": "/dashboard"},
    {"label": "My Tasks", "href": "/tasks"},
    {"label": "Profile", "href": "/profile"},
]


def navigation_for(role: Optional[Role]) -> list[dict]:
    items = ADMIN_NAVIGATION if role == Role.admin else USER_NAVIGATION
    return [dict(item) for item in items]


async def _role_or_none(backend: BackendClient) -> Optional[Role]:
    try:
        return await fetch_user_role(backend)
    except BackendError as exc:
        logger.error("Error fetching user role: %s", exc.message)
        return None


async def resolve_session(backend: BackendClient) -> SessionContext:
    """Build the context for the token bound to *backend*.

    Identity and role are requested together. An unreadable role leaves
    the session usable with non-admin views.
    """
    if not backend.access_token:
        raise AuthenticationRequired("Not signed in")
    try:
        identity, role = await asyncio.gather(
            backend.get_user(),
            _role_or_none(backend),
        )
    except BackendError as exc:
        logger.info("Session rejected by identity service: %s", exc.message)
        raise AuthenticationRequired("Session expired or invalid") from exc

    if not identity or not identity.get("id"):
        raise AuthenticationRequired("Session expired or invalid")
    return SessionContext(
        access_token=backend.access_token,
        user_id=str(identity["id"]),
        email=identity.get("email"),
        role=role,
    )


def token_from_request(request: Request) -> Optional[str]:
    """Read the access token from the session cookie or a bearer header."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE) or None


def get_backend(request: Request) -> BackendClient:
    """Yield the app-wide backend client (unbound)."""
    return request.app.state.backend


async def get_session_context(
    request: Request, backend: BackendClient = Depends(get_backend)
) -> SessionContext:
    token = token_from_request(request)
    if not token:
        raise AuthenticationRequired("Not signed in")
    return await resolve_session(backend.with_token(token))


def session_backend(
    session: SessionContext = Depends(get_session_context),
    backend: BackendClient = Depends(get_backend),
) -> BackendClient:
    """Backend client acting on behalf of the current session."""
    return backend.with_token(session.access_token)
