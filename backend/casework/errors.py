# Overview: Application error taxonomy shared by services and route layers.

"""
Error Taxonomy

WHY: Services raise typed errors; every HTTP surface (staff API, AJAX
allocation handler, v1 API, gateway) translates them into its own response
shape. The shapes are intentionally not unified.

SECURITY: DatabaseError and UnexpectedError always carry a generic message.
The underlying driver exception is chained (raise ... from exc) for logs,
never rendered into a response body.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = 500
    code = "UNEXPECTED_ERROR"

    def __init__(self, message: str | None = None, *, code: str | None = None, details: dict | None = None):
        super().__init__(message or self.default_message())
        if code:
            self.code = code
        self.details = details

    @classmethod
    def default_message(cls) -> str:
        return "An unexpected error occurred."

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(AppError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "VALIDATION_ERROR"

    @classmethod
    def default_message(cls) -> str:
        return "Invalid input."


class AuthenticationError(AppError):
    """401: missing or invalid session / API key."""
    status_code = 401
    code = "AUTH_UNAUTHORIZED"

    @classmethod
    def default_message(cls) -> str:
        return "Authentication required."


class AuthorizationError(AppError):
    """403: authenticated but outside the caller's scope."""
    status_code = 403
    code = "AUTH_FORBIDDEN"

    @classmethod
    def default_message(cls) -> str:
        return "Permission denied."


class PermissionDeniedError(AuthorizationError):
    """Raised by services when the actor may not perform a specific mutation."""


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    @classmethod
    def default_message(cls) -> str:
        return "Resource not found."


class ConflictError(AppError):
    """409: optimistic concurrency or business-rule conflict."""
    status_code = 409
    code = "VERSION_CONFLICT"

    @classmethod
    def default_message(cls) -> str:
        return "The record was modified by another user. Reload and try again."


class DatabaseError(AppError):
    """500: wraps SQLAlchemy/driver failures with a generic message."""
    status_code = 500
    code = "DB_ERROR"

    @classmethod
    def default_message(cls) -> str:
        return "A database error occurred."


class UnexpectedError(AppError):
    """500 catch-all for failures with no more specific class."""
