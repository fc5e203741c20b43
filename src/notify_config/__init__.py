"""Configuration loading and hot reload for the notification pipeline."""

from notify_config.config import (
    DEFAULT_CONFIG_FILE,
    AppConfig,
    KafkaConfig,
    LogConfig,
    PostgresConfig,
    ServiceConfig,
    load_config,
    resolve_config_path,
)
from notify_config.store import ConfigStore, ConfigWatcher

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "AppConfig",
    "KafkaConfig",
    "LogConfig",
    "PostgresConfig",
    "ServiceConfig",
    "load_config",
    "resolve_config_path",
    "ConfigStore",
    "ConfigWatcher",
]
