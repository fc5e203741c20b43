"""Shared JSON serialization helpers for log records and CLI output."""

from datetime import date, datetime
from pathlib import Path
from typing import Any
from uuid import UUID


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, (datetime, date)):
        return True, obj.isoformat()
    if isinstance(obj, UUID):
        return True, str(obj)
    if isinstance(obj, Path):
        return True, str(obj)
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    `default=` hook for json.dumps.

    - datetime/date → ISO 8601 string
    - UUID → canonical string
    - Path → string
    - Enums → value
    - Everything else → string (fallback)
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "value"):
        return obj.value
    return str(obj)


__all__ = ["json_serializer"]
