"""Service error taxonomy.

Every error carries a machine-readable ``kind``, the technical message
for logs, an HTTP status for the API layer, and a user-facing message
template (``user_message``) suitable for display.

Store exceptions raised by SQLAlchemy are translated with
``map_store_error`` so callers only ever see this taxonomy.
"""

from __future__ import annotations

import enum
from typing import Any

from fastapi import status
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)


class ErrorKind(str, enum.Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.NETWORK_ERROR: "Network connection problem. Please check your connection and try again.",
    ErrorKind.PERMISSION_DENIED: "Access denied. You do not have permission to perform this action.",
    ErrorKind.NOT_FOUND: "The requested item could not be found.",
    ErrorKind.ALREADY_EXISTS: "This item already exists in the system.",
    ErrorKind.VALIDATION_ERROR: "Invalid data: {message}",
    ErrorKind.STORAGE_ERROR: "Database error. Please try again later.",
    ErrorKind.AUTHENTICATION_ERROR: "Authentication failed. Please sign in again.",
    ErrorKind.RATE_LIMIT_ERROR: "Too many requests. Please wait a moment and try again.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred. Please try again.",
}


class PackTrackError(Exception):
    """Base exception for PackTrack service errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.operation = operation
        self.context = context or {}
        super().__init__(message)

    @property
    def error_code(self) -> str:
        return self.kind.value

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind].format(message=self.message)

    def technical_details(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "operation": self.operation,
            "message": self.message,
            "cause": repr(self.__cause__) if self.__cause__ else None,
            "context": self.context,
        }


class NetworkError(PackTrackError):
    kind = ErrorKind.NETWORK_ERROR
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class PermissionDeniedError(PackTrackError):
    kind = ErrorKind.PERMISSION_DENIED
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(PackTrackError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class AlreadyExistsError(PackTrackError):
    kind = ErrorKind.ALREADY_EXISTS
    status_code = status.HTTP_409_CONFLICT


class ValidationError(PackTrackError):
    kind = ErrorKind.VALIDATION_ERROR
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InsufficientStockError(ValidationError):
    """A removal would drive a batch allocation below zero."""

    def __init__(self, batch_id: str, available: int, requested: int, **kwargs):
        self.batch_id = batch_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock in Batch {batch_id}. "
            f"Available: {available}, trying to remove: {requested}",
            **kwargs,
        )


class BatchLockedError(ValidationError):
    """The batch is activated and its packing list is immutable."""

    def __init__(self, batch_id: str, **kwargs):
        self.batch_id = batch_id
        super().__init__(
            f"Batch {batch_id} is activated (in_progress); "
            f"its packing list cannot be changed",
            **kwargs,
        )


class StorageError(PackTrackError):
    kind = ErrorKind.STORAGE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class AuthenticationError(PackTrackError):
    kind = ErrorKind.AUTHENTICATION_ERROR
    status_code = status.HTTP_401_UNAUTHORIZED


class RateLimitError(PackTrackError):
    kind = ErrorKind.RATE_LIMIT_ERROR
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class UnknownError(PackTrackError):
    kind = ErrorKind.UNKNOWN_ERROR


def map_store_error(
    exc: Exception,
    operation: str,
    context: dict[str, Any] | None = None,
) -> PackTrackError:
    """Translate a store exception into the service taxonomy.

    The caller is expected to ``raise map_store_error(e, ...) from e``.
    """
    if isinstance(exc, PackTrackError):
        return exc
    if isinstance(exc, IntegrityError):
        return AlreadyExistsError(
            f"{operation}: constraint violation", operation=operation, context=context
        )
    if isinstance(exc, OperationalError) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    ):
        return NetworkError(
            f"{operation}: store unavailable", operation=operation, context=context
        )
    if isinstance(exc, SQLAlchemyError):
        return StorageError(
            f"Failed to {operation}", operation=operation, context=context
        )
    return UnknownError(
        f"{operation}: {exc}", operation=operation, context=context
    )
