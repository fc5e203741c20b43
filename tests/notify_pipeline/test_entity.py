"""Tests for notification decoding and the pagination window."""

import json
from datetime import UTC, datetime
from uuid import UUID

import pytest

from notify_core.errors import DecodeError
from notify_core.types import ErrorCategory
from notify_pipeline.entity import Notification, Page, decode_notification

NID = "0b6f3c1e-8a55-4f5e-9a55-0c1d2e3f4a5b"


def _payload(**fields) -> bytes:
    return json.dumps(fields).encode("utf-8")


class TestDecodeNotification:
    def test_full_record(self):
        n = decode_notification(
            _payload(
                id=NID,
                created_at="2024-01-01T00:00:00Z",
                modified_at="2024-01-02T00:00:00Z",
                expiration_date="2024-02-01T00:00:00Z",
                message="hello",
                error="",
                user_uid="user-1",
                message_type="email",
                link="https://example.com/n/1",
                status="PENDING",
                subject="Greetings",
                created_by="billing",
            )
        )

        assert n.id == UUID(NID)
        assert n.created_at == datetime(2024, 1, 1, tzinfo=UTC)
        assert n.modified_at == datetime(2024, 1, 2, tzinfo=UTC)
        assert n.message == "hello"
        assert n.status == "PENDING"
        assert n.created_by == "billing"

    def test_missing_keys_take_zero_values(self):
        n = decode_notification(b"{}")

        assert n.id is None
        assert n.created_at is None
        assert n.message == ""
        assert n.subject == ""

    def test_unknown_keys_ignored(self):
        n = decode_notification(_payload(id=NID, message="hi", priority="high", tags=["a"]))
        assert n.message == "hi"
        assert not hasattr(n, "priority")

    def test_null_strings_become_empty(self):
        n = decode_notification(_payload(message="hi", error=None, link=None))
        assert n.error == ""
        assert n.link == ""

    def test_naive_timestamp_is_utc(self):
        n = decode_notification(_payload(created_at="2024-03-01T10:30:00"))
        assert n.created_at == datetime(2024, 3, 1, 10, 30, tzinfo=UTC)
        assert n.created_at.tzinfo is UTC

    def test_offset_timestamp_converted_to_utc(self):
        n = decode_notification(_payload(created_at="2024-03-01T12:30:00+02:00"))
        assert n.created_at == datetime(2024, 3, 1, 10, 30, tzinfo=UTC)
        assert n.created_at.utcoffset().total_seconds() == 0

    def test_zero_time_means_unset(self):
        n = decode_notification(_payload(modified_at="0001-01-01T00:00:00Z"))
        assert n.modified_at is None

    def test_offset_pushing_timestamp_out_of_range(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_notification(_payload(created_at="0001-01-01T00:00:00+01:00"))

        assert "out of range" in str(exc_info.value.cause)

    def test_accepts_str_payload(self):
        assert decode_notification(json.dumps({"message": "hi"})).message == "hi"

    def test_no_payload(self):
        with pytest.raises(DecodeError, match="no payload"):
            decode_notification(None)

    @pytest.mark.parametrize(
        "payload",
        [
            b"not json",
            b"",
            b'"just a string"',
            b"[1, 2, 3]",
            b'{"id": "not-a-uuid"}',
            b'{"created_at": "yesterday"}',
            b'{"message": "unterminated',
            b'{"created_at": "0001-01-01T00:00:00+01:00"}',
            b'{"expiration_date": "9999-12-31T23:30:00-01:00"}',
        ],
    )
    def test_malformed_payloads(self, payload):
        with pytest.raises(DecodeError) as exc_info:
            decode_notification(payload)

        assert exc_info.value.cause is not None
        assert exc_info.value.category == ErrorCategory.PERMANENT


class TestNotificationRows:
    def test_to_row_has_every_column(self, make_notification):
        row = make_notification().to_row()
        assert set(row) == {
            "id",
            "created_at",
            "modified_at",
            "expiration_date",
            "message",
            "error",
            "user_uid",
            "message_type",
            "link",
            "status",
            "subject",
            "created_by",
        }

    def test_from_row(self, make_notification):
        original = make_notification()
        assert Notification.from_row(original.to_row()) == original

    def test_from_row_attaches_utc_to_naive_values(self, make_notification):
        row = make_notification().to_row()
        row["created_at"] = datetime(2024, 1, 1)
        assert Notification.from_row(row).created_at == datetime(2024, 1, 1, tzinfo=UTC)


class TestPage:
    def test_defaults(self):
        assert Page() == Page(offset=0, limit=10)

    def test_frozen(self):
        page = Page()
        with pytest.raises(AttributeError):
            page.limit = 5
