"""Domain error taxonomy raised by the verifier, guard, and task store.

Each error carries the HTTP status and the sanitized client-facing message.
Only `app.core.error_handling` turns them into responses.
"""

from __future__ import annotations

from fastapi import status


class TodoAPIError(Exception):
    """Base class for errors that map to a fixed HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal Server Error"
    code: str = "internal"
    retryable: bool = False

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class UnauthorizedError(TodoAPIError):
    """Bearer token missing, malformed, unverifiable, or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"
    code = "unauthorized"


class InvalidTokenError(UnauthorizedError):
    """Token was present but failed verification."""

    default_detail = "Invalid or expired token"
    code = "invalid_token"


class ForbiddenError(TodoAPIError):
    """Verified subject does not own the requested path."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not authorized to access this user's tasks"
    code = "forbidden"


class NotFoundError(TodoAPIError):
    """Resource is absent or belongs to another owner."""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Task not found"
    code = "not_found"


class TaskValidationError(TodoAPIError):
    """Input fields violate a task constraint."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid task payload"
    code = "validation_error"


class StoreUnavailableError(TodoAPIError):
    """Backing store timed out or refused the connection."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Task store temporarily unavailable"
    code = "store_unavailable"
    retryable = True
