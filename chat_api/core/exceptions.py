"""
core/exceptions.py
------------------
Application error taxonomy.

Domain and repository code raises these; the global handlers registered in
main.py turn them into the standard JSON envelope:

    {"success": false, "message": "...", "error": "<CODE>"}

Routes never build error responses by hand.
"""

from typing import Optional


class AppError(Exception):
    """Base class for every error that maps to an HTTP status."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        self.code = code or self.default_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class AuthError(AppError):
    status_code = 401
    default_code = "INVALID_TOKEN"
    default_message = "Invalid or expired token"


class PermissionDeniedError(AppError):
    status_code = 403
    default_code = "ACCESS_DENIED"
    default_message = "Access denied. You can only access your own resources."


class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    default_code = "CONFLICT"
    default_message = "Resource already exists"


class RateLimitError(AppError):
    status_code = 429
    default_code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(message)
        self.retry_after = retry_after


class StorageError(AppError):
    """Underlying persistence failure. Wraps the driver/ORM exception."""

    status_code = 500
    default_code = "STORAGE_ERROR"
    default_message = "Storage failure"
