# taskboard/routes/auth.py
"""Sign-in, sign-out, password recovery and OAuth completion."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field, model_validator

from taskboard.backend import BackendClient
from taskboard.config import SESSION_COOKIE, password_reset_redirect
from taskboard.errors import AuthenticationRequired, BackendError
from taskboard.notifications import error_response, failure, success
from taskboard.session import (
    SessionContext,
    get_backend,
    get_session_context,
    navigation_for,
    resolve_session,
    token_from_request,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 6


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    confirm_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    token: Optional[str] = Field(None, description="Recovery access token from the reset link")

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class CallbackRequest(BaseModel):
    code: Optional[str] = None
    code_verifier: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


def _session_body(session: SessionContext) -> dict:
    return {
        "user_id": session.user_id,
        "email": session.email,
        "role": session.role.value if session.role else None,
        "is_admin": session.is_admin,
        "navigation": navigation_for(session.role),
    }


def _set_session_cookie(response: Response, token: str, max_age: Optional[int]) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=max_age,
        httponly=True,
        samesite="lax",
    )


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    backend: BackendClient = Depends(get_backend),
):
    """Password sign-in. The access token is stored in the session cookie."""
    try:
        grant = await backend.sign_in_with_password(body.email, body.password)
    except BackendError as exc:
        logger.info("Sign-in rejected for %s: %s", body.email, exc.message)
        return error_response(401, exc.message, failure(exc.message, title="Sign in failed"))

    token = grant.get("access_token")
    if not token:
        return error_response(502, "No access token issued", failure("Sign in failed. Please try again."))
    session = await resolve_session(backend.with_token(token))
    _set_session_cookie(response, token, grant.get("expires_in"))
    return {
        "success": True,
        "session": _session_body(session),
        "access_token": token,
        "refresh_token": grant.get("refresh_token"),
        "notification": success("Signed in", "Welcome back.").model_dump(),
    }


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    backend: BackendClient = Depends(get_backend),
):
    """End the session at the identity service and drop the cookie."""
    token = token_from_request(request)
    if token:
        try:
            await backend.with_token(token).sign_out()
        except BackendError as exc:
            logger.warning("Sign-out at identity service failed: %s", exc.message)
    response.delete_cookie(SESSION_COOKIE)
    return {
        "success": True,
        "redirect": "/login",
        "notification": success("Signed out", "You have been successfully signed out.").model_dump(),
    }


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    backend: BackendClient = Depends(get_backend),
):
    """Ask the identity service to email a password reset link."""
    try:
        await backend.reset_password_for_email(body.email, password_reset_redirect())
    except BackendError as exc:
        logger.error("Password reset request failed: %s", exc.message)
        return error_response(
            502,
            exc.message,
            failure("Failed to send reset link. Please try again."),
        )
    return {
        "success": True,
        "notification": success(
            "Check your email",
            "We've sent you a password reset link.",
        ).model_dump(),
    }


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    request: Request,
    backend: BackendClient = Depends(get_backend),
):
    """Set a new password using the recovery session from the reset link."""
    token = body.token or token_from_request(request)
    if not token:
        return error_response(
            400,
            "Password reset token is missing",
            failure("Password reset token is missing"),
        )
    try:
        await backend.with_token(token).update_user(password=body.password)
    except BackendError as exc:
        logger.error("Password update failed: %s", exc.message)
        return error_response(
            502,
            exc.message,
            failure(exc.message or "Failed to reset password. Please try again."),
        )
    return {
        "success": True,
        "redirect": "/login",
        "notification": success(
            "Password updated successfully",
            "You can now sign in with your new password.",
        ).model_dump(),
    }


@router.post("/callback")
async def oauth_callback(
    body: CallbackRequest,
    response: Response,
    backend: BackendClient = Depends(get_backend),
):
    """Finish an OAuth sign-in, either by PKCE code exchange or implicit tokens."""
    if body.error:
        message = body.error_description or body.error
        return error_response(400, message, failure(message, title="Authentication Error"))

    token = body.access_token
    expires_in = None
    try:
        if body.code:
            if not body.code_verifier:
                return error_response(
                    400, "Missing code verifier", failure("Missing code verifier", title="Authentication Error")
                )
            grant = await backend.exchange_code_for_session(body.code, body.code_verifier)
            token = grant.get("access_token")
            expires_in = grant.get("expires_in")
        if not token:
            return {"success": False, "redirect": "/login"}
        session = await resolve_session(backend.with_token(token))
    except (BackendError, AuthenticationRequired) as exc:
        logger.error("Error during auth callback: %s", exc)
        message = getattr(exc, "message", None) or str(exc)
        body_response = error_response(401, message, failure(message, title="Authentication Error"))
        body_response.headers["X-Redirect"] = "/login"
        return body_response

    _set_session_cookie(response, token, expires_in)
    return {"success": True, "redirect": "/dashboard", "session": _session_body(session)}


@router.get("/session")
async def current_session(session: SessionContext = Depends(get_session_context)):
    """Who is signed in and which navigation their role sees."""
    return {"success": True, "session": _session_body(session)}
