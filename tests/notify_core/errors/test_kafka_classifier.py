"""
Tests for Kafka error classification.
"""

from aiokafka.errors import (
    KafkaConnectionError,
    TopicAuthorizationFailedError,
    UnknownTopicOrPartitionError,
)

from notify_core.errors.exceptions import DecodeError, TransportError
from notify_core.errors.kafka_classifier import (
    KAFKA_ERROR_MAPPINGS,
    KafkaErrorClassifier,
    classify_kafka_error_type,
)
from notify_core.types import ErrorCategory


def _named_error(name: str, message: str = "") -> Exception:
    """Instance of a throwaway exception class with the given type name."""
    return type(name, (Exception,), {})(message)


class TestKafkaErrorTypeClassification:
    """Test Kafka error type classification function."""

    def test_every_mapped_type_resolves_to_its_category(self):
        for category, error_types in KAFKA_ERROR_MAPPINGS.items():
            for error_type in error_types:
                assert classify_kafka_error_type(error_type) == category, error_type

    def test_unknown_error_type(self):
        assert classify_kafka_error_type("UnknownError") is None
        assert classify_kafka_error_type("") is None


class TestClassifyError:
    def test_real_aiokafka_types(self):
        assert KafkaErrorClassifier.classify_error(KafkaConnectionError("down")) == ErrorCategory.TRANSIENT
        assert KafkaErrorClassifier.classify_error(TopicAuthorizationFailedError()) == ErrorCategory.AUTH
        assert KafkaErrorClassifier.classify_error(UnknownTopicOrPartitionError()) == ErrorCategory.PERMANENT

    def test_string_fallback_for_auth(self):
        error = _named_error("CustomError", "SASL handshake failed")
        assert KafkaErrorClassifier.classify_error(error) == ErrorCategory.AUTH

    def test_string_fallback_for_transient(self):
        error = _named_error("CustomError", "Request timeout after 30s")
        assert KafkaErrorClassifier.classify_error(error) == ErrorCategory.TRANSIENT

    def test_unknown(self):
        assert KafkaErrorClassifier.classify_error(RuntimeError("odd")) == ErrorCategory.UNKNOWN


class TestKafkaConsumerErrorClassifier:
    """Test Kafka consumer error classification."""

    def test_connection_error_becomes_transient_transport_error(self):
        cause = KafkaConnectionError("Unable to bootstrap from localhost:9092")
        result = KafkaErrorClassifier.classify_consumer_error(cause)

        assert isinstance(result, TransportError)
        assert result.category == ErrorCategory.TRANSIENT
        assert result.cause is cause
        assert result.context["service"] == "kafka_consumer"
        assert result.context["error_type"] == "KafkaConnectionError"

    def test_auth_error_by_type(self):
        result = KafkaErrorClassifier.classify_consumer_error(_named_error("SaslAuthenticationFailedError"))
        assert isinstance(result, TransportError)
        assert result.category == ErrorCategory.AUTH
        assert "authentication failed" in result.message

    def test_permanent_error_by_type(self):
        result = KafkaErrorClassifier.classify_consumer_error(_named_error("InvalidTopicError"))
        assert result.category == ErrorCategory.PERMANENT

    def test_context_is_merged(self):
        result = KafkaErrorClassifier.classify_consumer_error(
            _named_error("CommitFailedError"),
            context={"operation": "commit", "topic": "notifications"},
        )
        assert result.category == ErrorCategory.TRANSIENT
        assert result.context["operation"] == "commit"
        assert result.context["topic"] == "notifications"
        assert result.context["service"] == "kafka_consumer"

    def test_pipeline_error_passes_through(self):
        original = DecodeError("bad payload")
        assert KafkaErrorClassifier.classify_consumer_error(original) is original
