"""
Application error taxonomy.

Services raise these; the global handlers in ``safaconnect.middleware.error_handler``
turn them into the standard ``{success: false, message}`` envelope.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, errors: list[dict[str, Any]] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class InvalidInputError(AppError):
    """Malformed or missing fields."""

    status_code = 400
    default_message = "Invalid input"


class UnauthorizedError(AppError):
    """Bad credentials, invalid/expired token or bad OAuth state."""

    status_code = 401
    default_message = "Unauthorized"


class TokenExpiredError(UnauthorizedError):
    """Verification or reset token that expired or was already used."""

    default_message = "Token has expired or has already been used"


class ForbiddenError(AppError):
    """Insufficient role or unverified email."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    """Uniqueness violation."""

    status_code = 409
    default_message = "Resource already exists"


class InternalError(AppError):
    """Datastore or provider failure."""

    status_code = 500
