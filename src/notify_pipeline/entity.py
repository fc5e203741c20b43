"""
Notification record and pagination window.

Contains the Pydantic model decoded from stream payloads and persisted one
row per record in the ``notifications`` table.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ValidationError, field_validator

from notify_core.errors import DecodeError

STRING_FIELDS = (
    "message",
    "error",
    "user_uid",
    "message_type",
    "link",
    "status",
    "subject",
    "created_by",
)
TIMESTAMP_FIELDS = ("created_at", "modified_at", "expiration_date")

# Serialized zero time from producers that cannot express "unset"
ZERO_TIME = datetime(1, 1, 1, tzinfo=UTC)


class Notification(BaseModel):
    """A notification addressed to a user.

    Decoding is lenient: missing keys take zero values (None for id and
    timestamps, "" for strings) and unknown keys are ignored. The store's
    NOT NULL and primary key constraints are what reject incomplete records.

    Attributes:
        id: Natural key assigned by the producer, never generated here
        created_at: Creation time (UTC), required by the store
        modified_at: Last update time (UTC), None until first update
        expiration_date: Expiry time (UTC), required by the store
        message: Message body, required by the store
        error: Last delivery/processing error text, informational
        status: Opaque lifecycle token (e.g. PENDING)

    Example:
        >>> n = Notification.model_validate_json(
        ...     b'{"id": "0b6f3c1e-8a55-4f5e-9a55-0c1d2e3f4a5b",'
        ...     b' "created_at": "2024-01-01T00:00:00Z", "message": "hello"}'
        ... )
        >>> n.message
        'hello'
    """

    id: UUID | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    expiration_date: datetime | None = None
    message: str = ""
    error: str = ""
    user_uid: str = ""
    message_type: str = ""
    link: str = ""
    status: str = ""
    subject: str = ""
    created_by: str = ""

    @field_validator(*STRING_FIELDS, mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator(*TIMESTAMP_FIELDS)
    @classmethod
    def normalize_to_utc(cls, v: datetime | None) -> datetime | None:
        """Interpret naive timestamps as UTC and treat the zero time as unset."""
        if v is None:
            return None
        if v.tzinfo is None:
            v = v.replace(tzinfo=UTC)
        else:
            try:
                v = v.astimezone(UTC)
            except OverflowError as e:
                raise ValueError("timestamp out of range once converted to UTC") from e
        if v == ZERO_TIME:
            return None
        return v

    def to_row(self) -> dict[str, Any]:
        """Column values for the notifications table."""
        return self.model_dump()

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        """Build from a SQLAlchemy row mapping."""
        return cls.model_validate(dict(row))

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "examples": [
                {
                    "id": "0b6f3c1e-8a55-4f5e-9a55-0c1d2e3f4a5b",
                    "created_at": "2024-01-01T00:00:00Z",
                    "expiration_date": "2024-02-01T00:00:00Z",
                    "message": "hello",
                    "status": "PENDING",
                },
            ]
        },
    }


def decode_notification(payload: bytes | str | None) -> Notification:
    """
    Decode a UTF-8 JSON object into a Notification.

    Raises:
        DecodeError: Payload is missing, not JSON, not an object, or holds an
            unparseable UUID or timestamp
    """
    if payload is None:
        raise DecodeError("Message has no payload", context={"error_type": "EmptyPayload"})

    try:
        return Notification.model_validate_json(payload)
    except ValidationError as e:
        raise DecodeError(
            f"Payload is not a valid notification ({e.error_count()} errors)",
            cause=e,
            context={"error_type": type(e).__name__},
        ) from e


@dataclass(frozen=True)
class Page:
    """Pagination window: skip ``offset`` rows, return at most ``limit``."""

    offset: int = 0
    limit: int = 10
