# taskboard/config.py
"""Environment-driven settings for the task manager service."""

import os

BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:54321").rstrip("/")
BACKEND_ANON_KEY = os.getenv("BACKEND_ANON_KEY", "")

ALLOWED_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:5173,http://localhost:8080",
).split(",")

# Password reset links land on the frontend's /reset-password page.
SITE_URL = os.getenv("SITE_URL", "http://localhost:5173").rstrip("/")

SESSION_COOKIE = os.getenv("SESSION_COOKIE", "taskboard_session")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10.0"))
DUE_SOON_DAYS = int(os.getenv("DUE_SOON_DAYS", "3"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def password_reset_redirect() -> str:
    """Return the URL the identity service should link to in reset emails."""
    return f"{SITE_URL}/reset-password"
