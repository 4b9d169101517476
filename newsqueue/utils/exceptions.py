"""
NewsQueue Custom Exceptions
==========================

Exception hierarchy for NewsQueue with error codes, context information
and a classification helper that maps failures onto explicit outcomes.
"""

from typing import Optional, Dict, Any
from enum import Enum

from ..database.models import Outcome


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_ERROR = "D006"

    # Extraction errors (F001-F099)
    EXTRACTION_INVALID_URL = "F001"
    EXTRACTION_TIMEOUT = "F002"
    EXTRACTION_PARSE_ERROR = "F003"
    EXTRACTION_NETWORK_ERROR = "F004"

    # Delivery errors (L001-L099)
    DELIVERY_FAILED = "L001"
    DELIVERY_REJECTED = "L003"
    DELIVERY_TIMEOUT = "L004"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"

    # Scheduling errors (S001-S099)
    SCHEDULE_INVALID = "S001"
    SCHEDULER_UNAVAILABLE = "S002"


class NewsQueueError(Exception):
    """Base exception for all NewsQueue errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        """Initialize NewsQueue error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            recoverable: Whether a later attempt may succeed
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(NewsQueueError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            **kwargs,
        )


class DatabaseError(NewsQueueError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for NewsQueueError
        """
        context = kwargs.pop("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DATABASE_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class ExtractionError(NewsQueueError):
    """Index or detail extraction failed (network or parse)."""

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        """Initialize extraction error.

        Args:
            message: Error message
            url: Source or item URL that failed
            **kwargs: Additional arguments for NewsQueueError
        """
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.EXTRACTION_NETWORK_ERROR),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class DeliveryError(NewsQueueError):
    """Notification delivery errors."""

    def __init__(self, message: str, subscriber_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if subscriber_id:
            context["subscriber_id"] = subscriber_id

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.DELIVERY_FAILED),
            context=context,
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class ValidationError(NewsQueueError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


class SchedulingError(NewsQueueError):
    """Task registry rejected an operation."""

    def __init__(self, message: str, subscriber_id: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if subscriber_id:
            context["subscriber_id"] = subscriber_id

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.SCHEDULE_INVALID),
            context=context,
            recoverable=False,
            **kwargs,
        )


class InvalidScheduleError(SchedulingError):
    """Schedule request with a non-positive interval or missing subscriber."""

    pass


class SchedulerUnavailableError(SchedulingError):
    """Registry operation attempted after shutdown."""

    def __init__(self, message: str = "Task registry has been shut down", **kwargs):
        kwargs.setdefault("error_code", ErrorCode.SCHEDULER_UNAVAILABLE)
        super().__init__(message, **kwargs)


# Exception handling utilities


def classify_error(exception: Exception) -> Outcome:
    """Map an exception onto an explicit ``Outcome``.

    Recoverable NewsQueue errors and network-level failures are transient;
    anything else is fatal for the current operation.

    Args:
        exception: Exception raised by a collaborator or storage call

    Returns:
        ``Outcome.TRANSIENT_ERROR`` or ``Outcome.FATAL``
    """
    if isinstance(exception, NewsQueueError):
        return Outcome.TRANSIENT_ERROR if exception.recoverable else Outcome.FATAL

    if isinstance(exception, (ConnectionError, TimeoutError)):
        return Outcome.TRANSIENT_ERROR

    return Outcome.FATAL
