"""
AuthorFeed Custom Exceptions
===========================

Exception hierarchy with error codes, structured context and user-facing
messages. Each subclass declares its defaults as class attributes and may
name one keyword argument that is copied into ``context``.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Feed ingestion errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_STATUS = "F005"
    FEED_EMPTY = "F006"

    # Curated source errors (S001-S099)
    SOURCE_NOT_FOUND = "S001"
    SOURCE_REFRESH_FAILED = "S002"
    SOURCE_REGISTRY_UNAVAILABLE = "S003"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"

    # System errors (X001-X099)
    SYSTEM_PERMISSION_DENIED = "X002"
    SYSTEM_MEMORY_ERROR = "X004"
    SYSTEM_UNEXPECTED = "X009"


class AuthorFeedError(Exception):
    """Base exception for all AuthorFeed errors."""

    default_code: Optional[ErrorCode] = None
    default_user_message: Optional[str] = None
    default_recoverable = False
    context_key: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
        **detail: Any,
    ):
        """Initialize AuthorFeed error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code (class default if omitted)
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether retrying later may succeed
            **detail: The subclass's ``context_key`` value, if any
        """
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.user_message = user_message or self._user_message(message)
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

        unexpected = set(detail) - {self.context_key}
        if unexpected:
            raise TypeError(f"{type(self).__name__} got unexpected arguments: {sorted(unexpected)}")
        value = detail.get(self.context_key) if self.context_key else None
        if value is not None and value != "":
            self.context[self.context_key] = value

    def _user_message(self, message: str) -> str:
        if self.default_user_message is None:
            return message
        return self.default_user_message.format(message=message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(AuthorFeedError):
    """Invalid or missing settings."""

    default_code = ErrorCode.CONFIG_INVALID
    default_user_message = "Configuration error: {message}"
    context_key = "config_key"


class DatabaseError(AuthorFeedError):
    """SQLite read or write failed."""

    default_code = ErrorCode.DATABASE_CONNECTION
    default_user_message = "Database operation failed"
    default_recoverable = True
    context_key = "query"


class FeedError(AuthorFeedError):
    """Feed download or parsing failed."""

    default_code = ErrorCode.FEED_NETWORK_ERROR
    default_user_message = "Feed processing failed: {message}"
    default_recoverable = True
    context_key = "feed_url"


class FeedFetchError(FeedError):
    """A single fetch attempt against one URL failed."""


class SourceError(AuthorFeedError):
    """Curated source lookup and refresh errors."""

    default_code = ErrorCode.SOURCE_REFRESH_FAILED
    default_user_message = "Curated source operation failed"
    default_recoverable = True
    context_key = "source_id"


class SourceNotFoundError(SourceError):
    """Requested curated source does not exist."""

    default_code = ErrorCode.SOURCE_NOT_FOUND
    default_user_message = "Curated source not found"
    default_recoverable = False

    def __init__(self, source_id: Any, **kwargs):
        super().__init__(
            f"Curated source not found: {source_id}",
            source_id=source_id if isinstance(source_id, int) else None,
            **kwargs,
        )


class ValidationError(AuthorFeedError):
    """Input failed validation."""

    default_code = ErrorCode.VALIDATION_INVALID_FORMAT
    default_user_message = "Invalid input: {message}"
    context_key = "field_name"


# Exception handling utilities

_FOREIGN_ERRORS = (
    ((ConnectionError, TimeoutError), ErrorCode.FEED_NETWORK_ERROR, "Network connection failed", True),
    ((PermissionError,), ErrorCode.SYSTEM_PERMISSION_DENIED, "Access denied", False),
    ((MemoryError,), ErrorCode.SYSTEM_MEMORY_ERROR, "System resources exhausted", True),
)


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> AuthorFeedError:
    """Log an exception and return it as an AuthorFeedError.

    AuthorFeed errors are logged and returned unchanged; anything else is
    wrapped with an error code chosen from its type.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information
    """
    if isinstance(exception, AuthorFeedError):
        logger.error(f"Operation '{operation}' failed: {exception}", extra=exception.to_dict())
        return exception

    context = {
        **(context or {}),
        "operation": operation,
        "original_exception_type": type(exception).__name__,
    }

    code, user_message, recoverable = ErrorCode.SYSTEM_UNEXPECTED, "An unexpected error occurred", True
    for types, candidate, message, can_retry in _FOREIGN_ERRORS:
        if isinstance(exception, types):
            code, user_message, recoverable = candidate, message, can_retry
            break

    error = AuthorFeedError(
        message=f"{operation} failed: {exception}",
        error_code=code,
        context=context,
        user_message=user_message,
        recoverable=recoverable,
    )
    error.__cause__ = exception

    logger.error(f"Operation '{operation}' failed: {exception}", extra=error.to_dict())
    return error
