# taskboard/notifications.py
"""Transient user-facing notifications returned alongside API responses."""

import json as json_module
from typing import Literal

from fastapi import Response
from pydantic import BaseModel


class Notification(BaseModel):
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


def success(title: str, description: str) -> Notification:
    return Notification(title=title, description=description)


def failure(description: str, title: str = "Error") -> Notification:
    return Notification(title=title, description=description, variant="destructive")


def error_response(status_code: int, error: str, notification: Notification) -> Response:
    """JSON error body carrying the toast the client should display."""
    return Response(
        content=json_module.dumps({
            "success": False,
            "error": error,
            "notification": notification.model_dump(),
        }),
        status_code=status_code,
        media_type="application/json",
    )
