"""
Error types raised by AgentDash stores and route handlers.

Each error carries the HTTP status and a stable machine-readable code; the
exception handlers in `agentdash.main` turn them into the standard envelope.
"""
from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        if field:
            message = f"Validation failed for {field}: {message}"
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, record_id: Optional[str] = None) -> None:
        self.resource = resource
        self.record_id = record_id
        if record_id:
            message = f"{resource} with id {record_id} not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden access") -> None:
        super().__init__(message)


class StorageError(AppError):
    """Raised when a collection document cannot be persisted."""

    status_code = 500
    code = "STORAGE_ERROR"

    def __init__(self, message: str, operation: Optional[str] = None) -> None:
        self.operation = operation
        if operation:
            message = f"Storage error during {operation}: {message}"
        else:
            message = f"Storage error: {message}"
        super().__init__(message)
