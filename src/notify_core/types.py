"""
Core types shared across the notification pipeline.

ErrorCategory lives here rather than in the errors package so that
classifiers, formatters and the exception hierarchy all compare against
the same enum class.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may succeed later
                   (e.g., broker unavailable, database connection dropped)
        AUTH: Authentication or authorization failures
              (e.g., SASL handshake rejected, topic authorization failed)
        PERMANENT: Failures that will not succeed on retry
                   (e.g., malformed payload, constraint violation)
        CANCELLED: The operation observed a shutdown request
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
