"""Logging setup and configuration."""

import gzip
import io
import logging
import os
import shutil
import sys
import time
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from notify_core.logging.context import set_log_context
from notify_core.logging.formatters import ConsoleFormatter, JSONFormatter

if TYPE_CHECKING:
    from notify_config.config import LogConfig

# Default settings
DEFAULT_LOG_DIR = Path("logs")
DEFAULT_LOG_FILE = "notify-pipeline.log"
DEFAULT_ROTATION_WHEN = "midnight"
DEFAULT_MAX_SIZE_MB = 100
DEFAULT_MAX_AGE_DAYS = 30
DEFAULT_LEVEL = logging.INFO

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
    "CRITICAL": logging.CRITICAL,
}

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiokafka",
    "kafka",
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic",
]


def parse_log_level(level: str | int) -> int:
    """Resolve a level name (case-insensitive) or number to a logging level."""
    if isinstance(level, int):
        return level
    try:
        return LOG_LEVELS[level.strip().upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r}") from None


def _gzip_namer(name: str) -> str:
    return f"{name}.gz"


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


class SizedTimedRotatingFileHandler(TimedRotatingFileHandler):
    """
    Log file handler with time + size rotation triggers.

    Rotates when EITHER condition is met:
    - Time boundary reached (default: midnight)
    - File would grow past max_bytes

    Rotated files get a second-resolution timestamp suffix and are optionally
    gzip-compressed. Rotated files older than max_age_days are deleted on
    startup and after every rollover.
    """

    def __init__(
        self,
        filename,
        when=DEFAULT_ROTATION_WHEN,
        interval=1,
        encoding="utf-8",
        delay=False,
        utc=True,
        max_bytes=DEFAULT_MAX_SIZE_MB * 1024 * 1024,
        max_age_days=DEFAULT_MAX_AGE_DAYS,
        compress=False,
    ):
        super().__init__(filename, when, interval, 0, encoding, delay, utc)
        self.max_bytes = max_bytes
        self.max_age_days = max_age_days
        if compress:
            self.namer = _gzip_namer
            self.rotator = _gzip_rotator

        self._purge_expired()

    def shouldRollover(self, record):
        """
        Determine if rollover should occur.
        Rollover happens if EITHER time OR size limit is reached.
        """
        if super().shouldRollover(record):
            return 1

        if self.max_bytes > 0:
            if self.stream is None:
                self.stream = self._open()
            msg = f"{self.format(record)}\n"
            self.stream.seek(0, 2)
            if self.stream.tell() + len(msg.encode("utf-8")) >= self.max_bytes:
                return 1

        return 0

    def _rotated_path(self, now: float) -> str:
        time_tuple = time.gmtime(now) if self.utc else time.localtime(now)
        stem = f"{self.baseFilename}.{time.strftime('%Y-%m-%dT%H-%M-%S', time_tuple)}"
        candidate = self.rotation_filename(stem)
        counter = 1
        while os.path.exists(candidate):
            candidate = self.rotation_filename(f"{stem}.{counter}")
            counter += 1
        return candidate

    def doRollover(self):
        if self.stream:
            self.stream.close()
            self.stream = None

        now = time.time()
        if os.path.exists(self.baseFilename):
            self.rotate(self.baseFilename, self._rotated_path(now))

        self.rolloverAt = self.computeRollover(int(now))
        if not self.delay:
            self.stream = self._open()

        self._purge_expired()

    def _purge_expired(self):
        """Remove rotated files older than the retention period."""
        if self.max_age_days <= 0:
            return

        log_path = Path(self.baseFilename)
        cutoff_time = time.time() - (self.max_age_days * 86400)

        for rotated_file in log_path.parent.glob(f"{log_path.name}.*"):
            try:
                if rotated_file.stat().st_mtime < cutoff_time:
                    rotated_file.unlink()
            except OSError as e:
                # Not logged through logging to avoid recursion
                print(f"Warning: Failed to remove expired log {rotated_file}: {e}", file=sys.stderr)


def _console_stream():
    if sys.platform == "win32":
        return io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
    return sys.stdout


def setup_logging(
    name: str = "notify_pipeline",
    stage: str | None = None,
    log_dir: Path | None = None,
    log_file_name: str | None = None,
    json_format: bool = True,
    level: str | int = DEFAULT_LEVEL,
    enable_console: bool = True,
    use_colors: bool = True,
    include_caller: bool = False,
    include_stacktrace: bool = True,
    local_time: bool = False,
    max_size_mb: int = DEFAULT_MAX_SIZE_MB,
    max_age_days: int = DEFAULT_MAX_AGE_DAYS,
    compress: bool = False,
    suppress_noisy: bool = True,
    worker_id: str | None = None,
    log_to_stdout: bool = False,
) -> logging.Logger:
    """
    Configure root logging with a console handler and a rotating file handler.

    Args:
        name: Logger name to return
        stage: Stage name for log context (e.g. "consume", "list")
        log_dir: Directory for log files (default: ./logs)
        log_file_name: Log file name inside log_dir (default: notify-pipeline.log)
        json_format: Use JSON format for file logs (default: True)
        level: Minimum level for all handlers, name or number
        enable_console: Attach the console handler
        use_colors: Color level names on a TTY console
        include_caller: Always include file:line in JSON output
        include_stacktrace: Include tracebacks in exception output
        local_time: JSON timestamps in local time instead of UTC
        max_size_mb: Size trigger for file rotation (0 disables)
        max_age_days: Retention for rotated files (0 keeps forever)
        compress: Gzip rotated files
        suppress_noisy: Quiet down Kafka client and SQL loggers
        worker_id: Worker identifier for context
        log_to_stdout: Send all log output to stdout only, skipping file handlers.
            Useful for containerized deployments where logs are captured from stdout.

    Returns:
        Configured logger instance
    """
    log_level = parse_log_level(level)

    if worker_id:
        set_log_context(worker_id=worker_id)
    if stage:
        set_log_context(stage=stage)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_formatter = ConsoleFormatter(use_colors=use_colors, include_stacktrace=include_stacktrace)
    log_file = None

    if log_to_stdout:
        # Stdout-only mode: JSON lines on stdout, no file handlers
        console_handler = logging.StreamHandler(_console_stream())
        if json_format:
            console_handler.setFormatter(
                JSONFormatter(
                    local_time=local_time,
                    include_caller=include_caller,
                    include_stacktrace=include_stacktrace,
                )
            )
        else:
            console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)
    else:
        log_dir = log_dir or DEFAULT_LOG_DIR
        log_file = log_dir / (log_file_name or DEFAULT_LOG_FILE)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        if json_format:
            file_formatter = JSONFormatter(
                local_time=local_time,
                include_caller=include_caller,
                include_stacktrace=include_stacktrace,
            )
        else:
            file_formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
            )

        file_handler = SizedTimedRotatingFileHandler(
            log_file,
            utc=not local_time,
            max_bytes=max_size_mb * 1024 * 1024,
            max_age_days=max_age_days,
            compress=compress,
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

        if enable_console:
            console_handler = logging.StreamHandler(_console_stream())
            console_handler.setFormatter(console_formatter)
            root_logger.addHandler(console_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(max(logging.WARNING, log_level))

    logger = logging.getLogger(name)
    if log_file is None:
        logger.debug("Logging initialized: stdout-only mode")
    else:
        logger.debug(f"Logging initialized: file={log_file}, json={json_format}")

    return logger


def setup_logging_from_config(
    log_config: "LogConfig",
    name: str = "notify_pipeline",
    stage: str | None = None,
    level_override: str | None = None,
    worker_id: str | None = None,
    log_to_stdout: bool = False,
) -> logging.Logger:
    """Configure logging from the ``log`` section of the service configuration."""
    return setup_logging(
        name=name,
        stage=stage,
        log_dir=Path(log_config.save_path),
        log_file_name=log_config.file_name,
        level=level_override or log_config.level,
        enable_console=log_config.enable_console,
        use_colors=log_config.enable_color,
        include_caller=log_config.enable_caller,
        include_stacktrace=log_config.enable_stacktrace,
        local_time=log_config.local_time,
        max_size_mb=log_config.max_size,
        max_age_days=log_config.max_age,
        compress=log_config.compress,
        worker_id=worker_id,
        log_to_stdout=log_to_stdout,
    )


def apply_log_level(level: str | int) -> None:
    """Change the root log level in place, keeping existing handlers."""
    logging.getLogger().setLevel(parse_log_level(level))
