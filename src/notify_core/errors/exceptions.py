"""
Unified exception hierarchy for the notification pipeline.

Provides typed exceptions with an error category so the consume loop can
decide which failures end the run and which only skip a message.
"""

from notify_core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        category: Error classification
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class TransientError(PipelineError):
    """Base class for transient errors."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Base class for errors that will not succeed on retry."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Consume loop errors
# =============================================================================


class CancellationError(PipelineError):
    """The consume loop observed a shutdown request and stopped reading."""

    category = ErrorCategory.CANCELLED


class TransportError(PipelineError):
    """
    The stream connection failed while reading or committing.

    Fatal to the current run. The category is assigned by the Kafka
    classifier (transient, auth or permanent) so the embedder can decide
    whether a restart is worthwhile.
    """

    category = ErrorCategory.TRANSIENT

    def __init__(
        self,
        message: str,
        category: ErrorCategory | None = None,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        if category is not None:
            self.category = category


class DecodeError(PermanentError):
    """Message payload did not parse as a notification record."""

    pass


# =============================================================================
# Persistence errors
# =============================================================================


class PersistenceError(PipelineError):
    """Base class for errors raised by the notification store."""

    pass


class ConstraintViolation(PersistenceError):
    """Store rejected the row (duplicate primary key, NOT NULL, check)."""

    category = ErrorCategory.PERMANENT


class ConnectivityError(PersistenceError):
    """Store could not be reached or the connection dropped mid-statement."""

    category = ErrorCategory.TRANSIENT


class QueryError(PersistenceError):
    """Store rejected the statement or its parameters."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Error Classification Utilities
# =============================================================================

CONNECTION_ERROR_MARKERS = (
    "connectionerror",
    "connection refused",
    "connection reset",
    "connection aborted",
    "could not connect",
    "server closed the connection",
    "no route to host",
    "network unreachable",
    "name resolution",
    "broken pipe",
)

AUTH_ERROR_MARKERS = (
    "authentication",
    "unauthorized",
    "password authentication failed",
    "sasl",
)


def classify_exception(exc: Exception) -> ErrorCategory:
    """Classify an exception into error category."""
    if isinstance(exc, PipelineError):
        return exc.category

    exc_type = type(exc).__name__.lower()
    exc_str = str(exc).lower()

    if any(m in exc_type or m in exc_str for m in CONNECTION_ERROR_MARKERS):
        return ErrorCategory.TRANSIENT

    if "timeout" in exc_type or "timed out" in exc_str or "timeout" in exc_str:
        return ErrorCategory.TRANSIENT

    if any(m in exc_str for m in AUTH_ERROR_MARKERS):
        return ErrorCategory.AUTH

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    default_class: type = PipelineError,
    context: dict | None = None,
) -> PipelineError:
    """Wrap a generic exception in the PipelineError subclass matching its category."""
    if isinstance(exc, PipelineError):
        if context:
            exc.context.update(context)
        return exc

    category = classify_exception(exc)
    context = context or {}
    context.setdefault("error_type", type(exc).__name__)

    if category == ErrorCategory.TRANSIENT:
        return TransientError(str(exc), cause=exc, context=context)

    if category == ErrorCategory.PERMANENT:
        return PermanentError(str(exc), cause=exc, context=context)

    return default_class(str(exc), cause=exc, context=context)
