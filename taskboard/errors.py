# taskboard/errors.py
"""Exception types raised by the backend client and the data helpers."""

from typing import Optional


class BackendError(Exception):
    """A call to the hosted backend failed.

    Covers transport failures, rejected queries and authorization denials
    alike; the backend's row-level policy answers with ordinary error
    responses, so they are not told apart here.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __repr__(self) -> str:
        return f"BackendError({self.message!r}, status_code={self.status_code}, code={self.code!r})"


class TaskValidationError(ValueError):
    """Input rejected before any backend call was made."""


class AuthenticationRequired(Exception):
    """No usable session accompanied the request."""


class PermissionDenied(Exception):
    """The current role does not expose this action."""
