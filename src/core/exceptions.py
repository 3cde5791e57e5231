"""
Application error taxonomy.

Services raise these; ``src.main`` maps each class to an HTTP status and a
``{"message": ...}`` body so route handlers never build error responses
themselves.
"""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    """Base class for errors with a client-facing message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Missing or invalid input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(AppError):
    """Missing, expired or otherwise unusable credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized"


class ForbiddenError(AppError):
    """Authenticated but not allowed to act on the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not allowed"


class NotFoundError(AppError):
    """Entity absent, or hidden from a non-participant."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    """Invalid state transition or duplicate action."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict"
