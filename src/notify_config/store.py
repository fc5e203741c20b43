"""Hot-reloadable configuration snapshot and file watcher."""

import asyncio
import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from notify_config.config import ServiceConfig, load_config, resolve_config_path

logger = logging.getLogger(__name__)

DEFAULT_WATCH_INTERVAL_SECONDS = 2.0


class ConfigStore:
    """
    Holds the current immutable ServiceConfig snapshot.

    Readers call snapshot() once per unit of work and keep using that object.
    reload() builds and validates a fresh snapshot outside the lock and only
    swaps the reference under it, so readers never see a half-applied config.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        overrides: dict[str, Any] | None = None,
        initial: ServiceConfig | None = None,
    ):
        self.config_path = resolve_config_path(config_path)
        self._overrides = overrides
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[ServiceConfig], None]] = []
        self._config = initial if initial is not None else load_config(self.config_path, overrides)

    def snapshot(self) -> ServiceConfig:
        with self._lock:
            return self._config

    def subscribe(self, callback: Callable[[ServiceConfig], None]) -> None:
        """Register a callback invoked with the new snapshot after each reload."""
        self._subscribers.append(callback)

    def reload(self) -> ServiceConfig:
        """
        Load, validate and swap in a new snapshot.

        Raises whatever load_config raises; the previous snapshot stays active.
        """
        new_config = load_config(self.config_path, self._overrides)

        with self._lock:
            self._config = new_config

        for callback in list(self._subscribers):
            try:
                callback(new_config)
            except Exception:
                logger.exception("Config reload subscriber failed")

        return new_config


class ConfigWatcher:
    """
    Polls the config file's mtime and reloads the store on change.

    Reload failures are logged and the previous snapshot stays active.
    """

    def __init__(self, store: ConfigStore, interval_seconds: float = DEFAULT_WATCH_INTERVAL_SECONDS):
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None
        self._last_mtime: int | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling task."""
        if self._task is not None:
            logger.warning("Config watcher already running")
            return

        self._last_mtime = self._current_mtime()
        self._task = asyncio.create_task(self._run())
        logger.debug(
            "Config watcher started",
            extra={"config_path": str(self.store.config_path)},
        )

    async def stop(self) -> None:
        """Stop the polling task."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def _current_mtime(self) -> int | None:
        try:
            return self.store.config_path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def check_once(self) -> bool:
        """Reload if the file changed since the last check. Returns True on a successful reload."""
        mtime = self._current_mtime()
        if mtime is None or mtime == self._last_mtime:
            return False

        self._last_mtime = mtime
        try:
            self.store.reload()
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(
                "Config reload failed, keeping previous configuration",
                extra={
                    "config_path": str(self.store.config_path),
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            return False

        logger.info(
            "Configuration reloaded",
            extra={"config_path": str(self.store.config_path)},
        )
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.check_once()
