"""
Error classification and exception hierarchy.

Provides:
- PipelineError hierarchy for typed exceptions
- Kafka and SQL classifiers that translate library errors into it
"""

from notify_core.errors.exceptions import (
    CancellationError,
    ConnectivityError,
    ConstraintViolation,
    DecodeError,
    PermanentError,
    PersistenceError,
    PipelineError,
    QueryError,
    TransientError,
    TransportError,
    classify_exception,
    wrap_exception,
)
from notify_core.errors.kafka_classifier import KafkaErrorClassifier
from notify_core.errors.sql_classifier import classify_sql_error
from notify_core.types import ErrorCategory

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "PipelineError",
    "TransientError",
    "PermanentError",
    # Consume loop
    "CancellationError",
    "TransportError",
    "DecodeError",
    # Persistence
    "PersistenceError",
    "ConstraintViolation",
    "ConnectivityError",
    "QueryError",
    # Classification utilities
    "classify_exception",
    "wrap_exception",
    "KafkaErrorClassifier",
    "classify_sql_error",
]
