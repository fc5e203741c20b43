"""
Kafka error classification for the notification consumer.

Maps aiokafka exceptions raised while starting the reader, reading or
committing onto TransportError with an error category, so the embedder
can tell a broker outage from a misconfiguration.
"""

from typing import Optional

from notify_core.errors.exceptions import PipelineError, TransportError
from notify_core.types import ErrorCategory

# Kafka error classifications based on aiokafka exception types
KAFKA_ERROR_MAPPINGS = {
    ErrorCategory.TRANSIENT: [
        "BrokerNotAvailableError",
        "KafkaConnectionError",
        "NodeNotReadyError",
        "LeaderNotAvailableError",
        "NotLeaderForPartitionError",
        "RequestTimedOutError",
        "KafkaTimeoutError",
        "CoordinatorNotAvailableError",
        "NotCoordinatorError",
        "RebalanceInProgressError",
        "CommitFailedError",
        "ConsumerStoppedError",
    ],
    ErrorCategory.AUTH: [
        "TopicAuthorizationFailedError",
        "GroupAuthorizationFailedError",
        "ClusterAuthorizationFailedError",
        "SaslAuthenticationError",
        "SaslAuthenticationFailedError",
    ],
    ErrorCategory.PERMANENT: [
        "UnknownTopicOrPartitionError",
        "InvalidTopicError",
        "InvalidConfigurationError",
        "UnsupportedVersionError",
        "IllegalStateError",
        "OffsetOutOfRangeError",
        "InvalidGroupIdError",
        "UnrecognizedBrokerVersion",
    ],
}


def classify_kafka_error_type(error_type_name: str) -> Optional[ErrorCategory]:
    """
    Classify Kafka error by exception type name.

    Args:
        error_type_name: Name of the exception class

    Returns:
        ErrorCategory, or None when the type is not in the mapping table
    """
    for category, error_types in KAFKA_ERROR_MAPPINGS.items():
        if error_type_name in error_types:
            return category
    return None


class KafkaErrorClassifier:
    """Centralized classification for aiokafka consumer failures."""

    @staticmethod
    def classify_error(error: Exception) -> ErrorCategory:
        category = classify_kafka_error_type(type(error).__name__)
        if category is not None:
            return category

        error_str = str(error).lower()
        if any(m in error_str for m in ("unauthorized", "authentication", "authorization", "sasl")):
            return ErrorCategory.AUTH
        if any(m in error_str for m in ("timeout", "connection", "broker", "network", "node not ready")):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.UNKNOWN

    @staticmethod
    def classify_consumer_error(
        error: Exception, context: Optional[dict] = None
    ) -> PipelineError:
        """
        Classify a Kafka consumer error into a TransportError.

        Args:
            error: Original exception from aiokafka consumer
            context: Additional context (merged with default {"service": "kafka_consumer"})

        Returns:
            TransportError carrying the category, or the error itself when it is
            already a PipelineError
        """
        if isinstance(error, PipelineError):
            return error

        ctx = {"service": "kafka_consumer", "error_type": type(error).__name__}
        if context:
            ctx.update(context)

        category = KafkaErrorClassifier.classify_error(error)

        if category == ErrorCategory.AUTH:
            label = "Kafka consumer authentication failed"
        elif category == ErrorCategory.PERMANENT:
            label = "Kafka consumer permanent error"
        elif category == ErrorCategory.TRANSIENT:
            label = "Kafka consumer connection error"
        else:
            label = "Kafka consumer error"

        return TransportError(
            f"{label}: {error}",
            category=category,
            cause=error,
            context=ctx,
        )


__all__ = [
    "KAFKA_ERROR_MAPPINGS",
    "KafkaErrorClassifier",
    "classify_kafka_error_type",
]
