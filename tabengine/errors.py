"""Exception hierarchy shared by every engine component."""

from __future__ import annotations

from enum import Enum


class ErrorType(str, Enum):
    """Types of errors that can occur."""

    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"


class EngineError(Exception):
    """Base class carrying a machine-readable category alongside the message."""

    error_type: ErrorType

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class NotFoundError(EngineError, LookupError):
    """Raised by mutations that require an existing record."""

    error_type = ErrorType.NOT_FOUND


class InvalidArgumentError(EngineError, ValueError):
    """Raised when a caller supplies a value outside the accepted domain."""

    error_type = ErrorType.VALIDATION_ERROR


class StorageFailure(EngineError):
    """Wraps any error surfaced by the persistence collaborator.

    The original exception is chained via ``__cause__`` so callers can still
    inspect driver-specific details.
    """

    error_type = ErrorType.STORAGE_ERROR

    def __init__(self, operation: str, key: str, *, detail: str | None = None) -> None:
        super().__init__(f"Storage {operation} failed for key '{key}'", detail=detail)
        self.operation = operation
        self.key = key


__all__ = [
    "EngineError",
    "ErrorType",
    "InvalidArgumentError",
    "NotFoundError",
    "StorageFailure",
]
