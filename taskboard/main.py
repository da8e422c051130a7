# taskboard/main.py
"""FastAPI application for the task manager service."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from taskboard.backend import BackendClient
from taskboard.config import (
    ALLOWED_ORIGINS,
    BACKEND_ANON_KEY,
    BACKEND_URL,
    LOG_LEVEL,
    REQUEST_TIMEOUT,
)
from taskboard.errors import (
    AuthenticationRequired,
    BackendError,
    PermissionDenied,
    TaskValidationError,
)
from taskboard.notifications import error_response, failure
from taskboard.routes.analytics import router as analytics_router
from taskboard.routes.auth import router as auth_router
from taskboard.routes.dashboard import router as dashboard_router
from taskboard.routes.profile import router as profile_router
from taskboard.routes.tasks import router as tasks_router
from taskboard.routes.team import router as team_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open one pooled HTTP client to the backend for the app's lifetime."""
    async with httpx.AsyncClient(base_url=BACKEND_URL, timeout=REQUEST_TIMEOUT) as http:
        app.state.backend = BackendClient(http, BACKEND_ANON_KEY)
        yield


app = FastAPI(title="Taskboard", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(tasks_router)
app.include_router(team_router)
app.include_router(analytics_router)
app.include_router(profile_router)


@app.exception_handler(AuthenticationRequired)
async def authentication_required_handler(request: Request, exc: AuthenticationRequired):
    return error_response(401, str(exc), failure("Please sign in to continue."))


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return error_response(403, str(exc), failure(str(exc)))


@app.exception_handler(TaskValidationError)
async def validation_handler(request: Request, exc: TaskValidationError):
    return error_response(400, str(exc), failure(str(exc)))


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    logger.error("Unhandled backend failure on %s: %s", request.url.path, exc.message)
    return error_response(502, exc.message, failure("Something went wrong. Please try again later."))


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "taskboard", "backend": BACKEND_URL}
