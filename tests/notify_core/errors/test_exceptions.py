"""
Tests for the exception hierarchy and generic classification.
"""

import pytest

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
from notify_core.types import ErrorCategory


class TestPipelineError:
    def test_message_and_defaults(self):
        error = PipelineError("something failed")
        assert error.message == "something failed"
        assert error.cause is None
        assert error.context == {}
        assert error.category == ErrorCategory.UNKNOWN
        assert str(error) == "something failed"

    def test_str_includes_cause(self):
        cause = OSError("disk full")
        error = PipelineError("write failed", cause=cause)
        assert str(error) == "write failed | Caused by: disk full"

    def test_context_is_kept(self):
        error = PipelineError("x", context={"topic": "notifications"})
        assert error.context["topic"] == "notifications"

    @pytest.mark.parametrize(
        "error_class, category",
        [
            (TransientError, ErrorCategory.TRANSIENT),
            (PermanentError, ErrorCategory.PERMANENT),
            (CancellationError, ErrorCategory.CANCELLED),
            (DecodeError, ErrorCategory.PERMANENT),
            (ConstraintViolation, ErrorCategory.PERMANENT),
            (ConnectivityError, ErrorCategory.TRANSIENT),
            (QueryError, ErrorCategory.PERMANENT),
        ],
    )
    def test_subclass_categories(self, error_class, category):
        assert error_class("x").category == category

    def test_persistence_subclasses(self):
        for error_class in (ConstraintViolation, ConnectivityError, QueryError):
            assert issubclass(error_class, PersistenceError)
            assert issubclass(error_class, PipelineError)


class TestTransportError:
    def test_defaults_to_transient(self):
        assert TransportError("broker down").category == ErrorCategory.TRANSIENT

    def test_category_override_is_per_instance(self):
        auth = TransportError("denied", category=ErrorCategory.AUTH)
        assert auth.category == ErrorCategory.AUTH
        assert TransportError("other").category == ErrorCategory.TRANSIENT


class TestClassifyException:
    def test_pipeline_error_keeps_category(self):
        assert classify_exception(DecodeError("bad")) == ErrorCategory.PERMANENT

    def test_connection_refused_is_transient(self):
        assert classify_exception(ConnectionRefusedError("Connection refused")) == ErrorCategory.TRANSIENT

    def test_timeout_is_transient(self):
        assert classify_exception(TimeoutError("operation timed out")) == ErrorCategory.TRANSIENT

    def test_auth_marker(self):
        error = RuntimeError('FATAL: password authentication failed for user "postgres"')
        assert classify_exception(error) == ErrorCategory.AUTH

    def test_value_error_is_permanent(self):
        assert classify_exception(ValueError("bad value")) == ErrorCategory.PERMANENT

    def test_unrecognized_is_unknown(self):
        assert classify_exception(RuntimeError("strange")) == ErrorCategory.UNKNOWN


class TestWrapException:
    def test_transient_wrapped(self):
        cause = ConnectionResetError("connection reset by peer")
        wrapped = wrap_exception(cause)
        assert isinstance(wrapped, TransientError)
        assert wrapped.cause is cause
        assert wrapped.context["error_type"] == "ConnectionResetError"

    def test_permanent_wrapped(self):
        wrapped = wrap_exception(KeyError("id"))
        assert isinstance(wrapped, PermanentError)

    def test_unknown_uses_default_class(self):
        wrapped = wrap_exception(RuntimeError("strange"), default_class=QueryError)
        assert isinstance(wrapped, QueryError)

    def test_pipeline_error_returned_with_context(self):
        original = ConstraintViolation("duplicate", context={"operation": "save"})
        wrapped = wrap_exception(original, context={"notification_id": "abc"})
        assert wrapped is original
        assert wrapped.context == {"operation": "save", "notification_id": "abc"}
