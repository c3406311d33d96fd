# recipeshare/core/errors.py
"""
Typed workflow outcomes.

Services raise these; the boundary in ``recipeshare.main`` renders them as
``{"error": CODE, "message": ...}`` responses. Messages are safe to return to
clients, so one-time-token and credential failures stay deliberately generic.
"""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    status_code: int = 500
    error: str = "INTERNAL_ERROR"
    default_message: str = "An internal server error occurred."

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class ValidationFailed(AppError):
    status_code = 400
    error = "VALIDATION_ERROR"
    default_message = "Invalid request."


class InvalidIdentifier(ValidationFailed):
    default_message = "Invalid user ID format in URL."


class Unauthorized(AppError):
    status_code = 401
    error = "UNAUTHORIZED"
    default_message = "Could not validate credentials."

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(AppError):
    status_code = 403
    error = "FORBIDDEN"
    default_message = "You can only act on your own account."


class NotFound(AppError):
    status_code = 404
    error = "NOT_FOUND"
    default_message = "Resource not found."


class Conflict(AppError):
    status_code = 409
    error = "CONFLICT"
    default_message = "Email or username already exists."


class PartialFailure(AppError):
    """The primary state change committed but a dependent side effect did not."""

    status_code = 500
    error = "PARTIAL_FAILURE"


class PersistenceError(AppError):
    status_code = 500
    error = "INTERNAL_ERROR"
