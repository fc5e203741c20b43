"""
Structured logging module.

Provides JSON logging with context propagation and rotating file output.
"""

from notify_core.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from notify_core.logging.formatters import ConsoleFormatter, JSONFormatter
from notify_core.logging.message_context import (
    MessageLogContext,
    clear_message_context,
    get_message_context,
    set_message_context,
)
from notify_core.logging.setup import (
    SizedTimedRotatingFileHandler,
    apply_log_level,
    parse_log_level,
    setup_logging,
    setup_logging_from_config,
)
from notify_core.logging.utilities import (
    log_exception,
    log_startup_banner,
    log_with_context,
)

__all__ = [
    # Setup
    "setup_logging",
    "setup_logging_from_config",
    "apply_log_level",
    "parse_log_level",
    "SizedTimedRotatingFileHandler",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Message Context
    "set_message_context",
    "get_message_context",
    "clear_message_context",
    "MessageLogContext",
    # Utilities
    "log_with_context",
    "log_exception",
    "log_startup_banner",
]
