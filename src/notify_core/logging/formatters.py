"""Log formatters for JSON and console output."""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from notify_core.logging.context import get_log_context
from notify_core.logging.message_context import get_message_context
from notify_core.utils.json_serializers import json_serializer


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Redacts credentials embedded in connection URLs.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Correlation
        "trace_id",
        "notification_id",
        "duration_ms",
        # Errors
        "error_category",
        "error_message",
        "error_type",
        "error",
        # Processing counters
        "records_consumed",
        "records_saved",
        "decode_failures",
        "persistence_failures",
        "rows_returned",
        # Transport
        "topic",
        "group_id",
        "brokers",
        "partition",
        "offset",
        "client_id",
        # Store
        "operation",
        "table",
        "database",
        "host",
        "port",
        "database_url",
        "limit",
        "revision",
        # Configuration
        "config_path",
        "log_level",
        "signal",
    ]

    NUMERIC_FIELDS = {
        "duration_ms": float,
        "records_consumed": int,
        "records_saved": int,
        "decode_failures": int,
        "persistence_failures": int,
        "rows_returned": int,
        "partition": int,
        "offset": int,
        "port": int,
        "limit": int,
    }

    # Fields that may contain connection URLs with credentials
    URL_FIELDS = ["database_url", "error", "error_message"]

    # user:password@host -> user:[REDACTED]@host
    CREDENTIALS_PATTERN = re.compile(r"(://[^:/@\s]+:)[^@\s]+(@)")

    def __init__(
        self,
        local_time: bool = False,
        include_caller: bool = False,
        include_stacktrace: bool = True,
    ):
        super().__init__()
        self.local_time = local_time
        self.include_caller = include_caller
        self.include_stacktrace = include_stacktrace

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.URL_FIELDS and isinstance(value, str):
            return self.CREDENTIALS_PATTERN.sub(r"\1[REDACTED]\2", value)
        return value

    def _ensure_type(self, field: str, value: Any) -> Any:
        """Coerce numeric fields so they are never serialized as strings."""
        if field not in self.NUMERIC_FIELDS or value is None:
            return value

        expected_type = self.NUMERIC_FIELDS[field]
        try:
            return expected_type(value)
        except (ValueError, TypeError):
            return None

    def _timestamp(self) -> str:
        if self.local_time:
            return datetime.now().astimezone().isoformat(timespec="milliseconds")
        return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"

    def _base_log_entry(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": self._timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _inject_context(log_entry: dict[str, Any]) -> None:
        for field, value in get_log_context().items():
            if value:
                log_entry[field] = value
        log_entry.update(get_message_context())

    def _should_include_source_location(self, record: logging.LogRecord) -> bool:
        return self.include_caller or record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL)

    def _inject_extra_fields(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                typed_value = self._ensure_type(field, value)
                log_entry[field] = self._sanitize_value(field, typed_value)

    def _inject_exception(self, log_entry: dict[str, Any], record: logging.LogRecord) -> None:
        if not record.exc_info:
            return

        exc_type, exc_value, _ = record.exc_info
        exception = {
            "type": exc_type.__name__ if exc_type else None,
            "message": self._sanitize_value("error", str(exc_value)) if exc_value else None,
        }
        if self.include_stacktrace:
            exception["stacktrace"] = self.formatException(record.exc_info)
        log_entry["exception"] = exception

    def format(self, record: logging.LogRecord) -> str:
        log_entry = self._base_log_entry(record)
        self._inject_context(log_entry)

        if self._should_include_source_location(record):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        self._inject_extra_fields(log_entry, record)
        self._inject_exception(log_entry, record)

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with color-coded log levels.

    Colors are auto-disabled when output is not a TTY (pipes, files).
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_stacktrace: bool = False):
        super().__init__()
        self._use_colors = use_colors and sys.stdout.isatty()
        self.include_stacktrace = include_stacktrace

    def _format_level_name(self, record: logging.LogRecord) -> str:
        level_name = record.levelname
        if not self._use_colors:
            return level_name

        color = self.COLORS.get(record.levelno, "")
        if not color:
            return level_name

        return f"{color}{level_name}{self.RESET}"

    @staticmethod
    def _build_prefix(level_name: str, log_context: dict[str, str]) -> str:
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            level_name,
        ]

        if log_context["stage"]:
            parts.append(f"[{log_context['stage']}]")

        return " - ".join(parts)

    @staticmethod
    def _build_tags(record: logging.LogRecord) -> list[str]:
        message_context = get_message_context()
        notification_id = getattr(record, "notification_id", None)

        tags = []
        if message_context:
            tags.append(
                f"[{message_context['message_topic']}:"
                f"{message_context['message_partition']}@{message_context['message_offset']}]"
            )
        if notification_id:
            tags.append(f"[nid:{str(notification_id)[:8]}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        level_name = self._format_level_name(record)
        prefix = self._build_prefix(level_name, get_log_context())
        tags = self._build_tags(record)

        if tags:
            line = f"{prefix} - {' '.join(tags)} {record.getMessage()}"
        else:
            line = f"{prefix} - {record.getMessage()}"

        if self.include_stacktrace and record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
