"""Notification pipeline configuration from YAML file.

Loads from notify_config/config.yaml with all settings in one place:
- Service identity (env, app)
- Kafka connection and consumer settings
- PostgreSQL connection and pool settings
- Log output settings

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
APP_* environment variables override individual values after expansion.
"""

import json
import logging
import os
import re
import sys
import typing
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from notify_core.logging.setup import LOG_LEVELS

# Configure module logger
logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "NOTIFY_CONFIG_PATH"

# Default config file: config.yaml next to this module
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"

TRUE_STR = "true"

_REDACTED = "[REDACTED]"
_SECRET_KEYS = {"password", "sasl_plain_password"}


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _validate_enum(value: Any, valid_values: List[Any], key: str, context: str) -> None:
    if value not in valid_values:
        raise ValueError(f"{context}: {key} must be one of {valid_values}, got '{value}'")


def _validate_min(value: float, min_value: float, key: str, context: str) -> None:
    if value < min_value:
        raise ValueError(f"{context}: {key} must be >= {min_value}, got {value}")


def _validate_required(value: Any, key: str, context: str) -> None:
    if not value:
        raise ValueError(f"{context}: {key} is required")


@dataclass(frozen=True)
class AppConfig:
    name: str = "notification-service"


@dataclass(frozen=True)
class KafkaConfig:
    """Kafka connection and consumer settings.

    All timing values in milliseconds.
    """

    # =========================================================================
    # CONNECTION SETTINGS
    # =========================================================================
    brokers: Tuple[str, ...] = ("localhost:9092",)
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""
    client_id: str = "notify-pipeline"
    request_timeout_ms: int = 120000  # 2 minutes
    metadata_max_age_ms: int = 300000  # 5 minutes
    connections_max_idle_ms: int = 540000  # 9 minutes

    # =========================================================================
    # CONSUMER SETTINGS
    # =========================================================================
    topic: str = "notifications"
    group_id: str = "notification-service-group"
    auto_offset_reset: str = "earliest"
    session_timeout_ms: int = 45000
    heartbeat_interval_ms: int = 3000
    max_poll_interval_ms: int = 300000

    @property
    def bootstrap_servers(self) -> str:
        return ",".join(self.brokers)

    def validate(self) -> None:
        """Check required fields, Kafka timeout constraints, and enum values."""
        context = "kafka"
        if not self.brokers or not all(b.strip() for b in self.brokers):
            raise ValueError(f"{context}: brokers is required")
        _validate_required(self.topic, "topic", context)
        _validate_required(self.group_id, "group_id", context)

        _validate_enum(
            self.security_protocol,
            ["PLAINTEXT", "SSL", "SASL_PLAINTEXT", "SASL_SSL"],
            "security_protocol",
            context,
        )
        if self.security_protocol.startswith("SASL"):
            _validate_enum(
                self.sasl_mechanism,
                ["PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512"],
                "sasl_mechanism",
                context,
            )
        _validate_enum(self.auto_offset_reset, ["earliest", "latest", "none"], "auto_offset_reset", context)

        for key in (
            "request_timeout_ms",
            "metadata_max_age_ms",
            "connections_max_idle_ms",
            "session_timeout_ms",
            "heartbeat_interval_ms",
            "max_poll_interval_ms",
        ):
            _validate_min(getattr(self, key), 1, key, context)

        if self.heartbeat_interval_ms >= self.session_timeout_ms / 3:
            raise ValueError(
                f"{context}: heartbeat_interval_ms ({self.heartbeat_interval_ms}) must be < "
                f"session_timeout_ms/3 ({self.session_timeout_ms / 3:.0f}). "
                f"Recommended: heartbeat_interval_ms <= {self.session_timeout_ms // 3}"
            )
        if self.session_timeout_ms >= self.max_poll_interval_ms:
            raise ValueError(
                f"{context}: session_timeout_ms ({self.session_timeout_ms}) must be < "
                f"max_poll_interval_ms ({self.max_poll_interval_ms})"
            )


@dataclass(frozen=True)
class PostgresConfig:
    """PostgreSQL connection and pool settings. Timeouts in seconds."""

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    database: str = "notifications"
    sslmode: str = "disable"
    idle_timeout: int = 300
    connect_timeout: int = 10
    max_idle_conns: int = 5
    max_overflow: int = 5

    def validate(self) -> None:
        context = "postgres"
        _validate_required(self.host, "host", context)
        _validate_required(self.user, "user", context)
        _validate_required(self.database, "database", context)
        if not 1 <= self.port <= 65535:
            raise ValueError(f"{context}: port must be between 1 and 65535, got {self.port}")
        _validate_min(self.idle_timeout, 0, "idle_timeout", context)
        _validate_min(self.connect_timeout, 0, "connect_timeout", context)
        _validate_min(self.max_idle_conns, 1, "max_idle_conns", context)
        _validate_min(self.max_overflow, 0, "max_overflow", context)
        _validate_enum(
            self.sslmode,
            ["disable", "allow", "prefer", "require", "verify-ca", "verify-full"],
            "sslmode",
            context,
        )


@dataclass(frozen=True)
class LogConfig:
    """Log output settings. max_size is in megabytes, max_age in days."""

    save_path: str = "logs"
    file_name: str = "notify-pipeline.log"
    max_size: int = 100
    max_age: int = 30
    local_time: bool = False
    compress: bool = False
    level: str = "info"
    enable_console: bool = True
    enable_color: bool = True
    enable_caller: bool = False
    enable_stacktrace: bool = True

    def validate(self) -> None:
        context = "log"
        if self.level.strip().upper() not in LOG_LEVELS:
            raise ValueError(
                f"{context}: level must be one of {sorted(k.lower() for k in LOG_LEVELS)}, got '{self.level}'"
            )
        _validate_required(self.file_name, "file_name", context)
        _validate_min(self.max_size, 0, "max_size", context)
        _validate_min(self.max_age, 0, "max_age", context)


@dataclass(frozen=True)
class ServiceConfig:
    """Immutable configuration snapshot for the whole service.

    Configuration structure:
        env: local
        app: {...}        # Service identity
        kafka: {...}      # Connection + consumer settings
        postgres: {...}   # Connection + pool settings
        log: {...}        # Output, rotation and level
    """

    env: str = "local"
    app: AppConfig = field(default_factory=AppConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    log: LogConfig = field(default_factory=LogConfig)

    def validate(self) -> None:
        """Validate every section, raising ValueError on the first problem."""
        _validate_required(self.env, "env", "root")
        _validate_required(self.app.name, "name", "app")
        self.kafka.validate()
        self.postgres.validate()
        self.log.validate()

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        data["kafka"]["brokers"] = list(self.kafka.brokers)
        if redact:
            for section in data.values():
                if not isinstance(section, dict):
                    continue
                for key in _SECRET_KEYS & section.keys():
                    if section[key]:
                        section[key] = _REDACTED
        return data


# (environment variable, section, key)
ENV_OVERRIDES: List[Tuple[str, Optional[str], str]] = [
    ("APP_ENV", None, "env"),
    ("APP_APP_NAME", "app", "name"),
    ("APP_KAFKA_BROKERS", "kafka", "brokers"),
    ("APP_KAFKA_TOPIC", "kafka", "topic"),
    ("APP_KAFKA_GROUP_ID", "kafka", "group_id"),
    ("APP_POSTGRES_HOST", "postgres", "host"),
    ("APP_POSTGRES_PORT", "postgres", "port"),
    ("APP_POSTGRES_USERNAME", "postgres", "user"),
    ("APP_POSTGRES_PASSWORD", "postgres", "password"),
    ("APP_POSTGRES_DB_NAME", "postgres", "database"),
    ("APP_POSTGRES_IDLE_TIMEOUT", "postgres", "idle_timeout"),
    ("APP_POSTGRES_CONNECT_TIMEOUT", "postgres", "connect_timeout"),
    ("APP_LOG_SAVE_PATH", "log", "save_path"),
    ("APP_LOG_FILE_NAME", "log", "file_name"),
    ("APP_LOG_MAX_SIZE", "log", "max_size"),
    ("APP_LOG_MAX_AGE", "log", "max_age"),
    ("APP_LOG_LOCAL_TIME", "log", "local_time"),
    ("APP_LOG_COMPRESS", "log", "compress"),
    ("APP_LOG_LEVEL", "log", "level"),
    ("APP_LOG_ENABLE_CONSOLE", "log", "enable_console"),
    ("APP_LOG_ENABLE_COLOR", "log", "enable_color"),
    ("APP_LOG_ENABLE_CALLER", "log", "enable_caller"),
    ("APP_LOG_ENABLE_STACKTRACE", "log", "enable_stacktrace"),
]

_SECTIONS = {
    "app": AppConfig,
    "kafka": KafkaConfig,
    "postgres": PostgresConfig,
    "log": LogConfig,
}


def _field_type(cls: type, key: str) -> Any:
    for f in fields(cls):
        if f.name == key:
            return f.type
    raise KeyError(key)


def _env_value(raw: str, target_type: Any) -> Any:
    """Convert an override string; unparseable integers are ignored (returns None)."""
    if target_type is bool:
        return raw.strip().lower() == TRUE_STR
    if target_type is int:
        try:
            return int(raw)
        except ValueError:
            return None
    return raw


def apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply APP_* environment variable overrides on top of the expanded YAML data."""
    result = dict(data)
    for env_var, section, key in ENV_OVERRIDES:
        raw = os.getenv(env_var)
        if not raw:
            continue

        if section is None:
            result[key] = raw
            continue

        value = _env_value(raw, _field_type(_SECTIONS[section], key))
        if value is None:
            logger.warning(f"Ignoring {env_var}: expected an integer, got '{raw}'")
            continue

        section_data = dict(result.get(section) or {})
        section_data[key] = value
        result[section] = section_data
        logger.debug(f"Applied environment override {env_var}")
    return result


def _coerce(value: Any, target_type: Any, key: str, context: str) -> Any:
    """Coerce YAML/placeholder values (often strings after ${VAR} expansion)."""
    if typing.get_origin(target_type) is tuple:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        if isinstance(value, (list, tuple)):
            return tuple(str(part) for part in value)
        raise ValueError(f"{context}: {key} must be a list or comma separated string, got {value!r}")
    if target_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() == TRUE_STR
        raise ValueError(f"{context}: {key} must be a boolean, got {value!r}")
    if target_type is int:
        if isinstance(value, bool):
            raise ValueError(f"{context}: {key} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{context}: {key} must be an integer, got {value!r}") from None
    if target_type is str:
        return "" if value is None else str(value)
    return value


def _build_section(cls: type, data: Any, context: str) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{context}: section must be a mapping, got {type(data).__name__}")

    known = {f.name: f.type for f in fields(cls)}
    unknown = sorted(set(data) - known.keys())
    if unknown:
        logger.warning(f"Ignoring unknown keys in '{context}' section: {unknown}")

    kwargs = {
        key: _coerce(value, known[key], key, context)
        for key, value in data.items()
        if key in known
    }
    return cls(**kwargs)


def build_config(data: Dict[str, Any]) -> ServiceConfig:
    """Build (without validating) a ServiceConfig from merged config data."""
    return ServiceConfig(
        env=str(data.get("env") or "local"),
        **{name: _build_section(cls, data.get(name), name) for name, cls in _SECTIONS.items()},
    )


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    """Explicit path, then NOTIFY_CONFIG_PATH, then the packaged config.yaml."""
    if config_path is not None:
        return Path(config_path)
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_merged_data(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Return the fully merged configuration dict (YAML, placeholders, APP_* env, overrides)."""
    config_path = resolve_config_path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Set {CONFIG_PATH_ENV} or pass --config"
        )

    logger.info(f"Loading configuration from file: {config_path}")
    yaml_data = load_yaml(config_path)
    if not isinstance(yaml_data, dict):
        raise ValueError(f"Invalid config file: top level must be a mapping: {config_path}")

    yaml_data = _expand_env_vars(yaml_data)
    yaml_data = apply_env_overrides(yaml_data)

    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        yaml_data = _deep_merge(yaml_data, overrides)

    return yaml_data


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ServiceConfig:
    """Load and validate the service configuration.

    Raises:
        FileNotFoundError: The config file does not exist
        ValueError: A value is missing, mistyped or out of range
        yaml.YAMLError: The file is not valid YAML
    """
    config = build_config(load_merged_data(config_path, overrides))

    logger.debug("Configuration loaded successfully:")
    logger.debug(f"  - Kafka brokers: {config.kafka.bootstrap_servers}")
    logger.debug(f"  - Topic: {config.kafka.topic} (group {config.kafka.group_id})")
    logger.debug(f"  - Postgres: {config.postgres.host}:{config.postgres.port}/{config.postgres.database}")

    logger.debug("Validating configuration...")
    config.validate()
    logger.debug("Configuration validation passed")

    return config


def _cli_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Notification Pipeline Configuration Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration
  python -m notify_config.config --validate

  # Show merged configuration (secrets redacted)
  python -m notify_config.config --show-merged

  # Use custom config file
  python -m notify_config.config --config /path/to/config.yaml --validate

  # JSON output for automation
  python -m notify_config.config --validate --json
        """,
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration structure and values",
    )
    parser.add_argument(
        "--show-merged",
        action="store_true",
        help="Display merged configuration as YAML",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml file (default: $NOTIFY_CONFIG_PATH or the packaged config.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format instead of human-readable",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if not args.validate and not args.show_merged:
        parser.print_help()
        return 0

    try:
        config = load_config(config_path=args.config)
        output = {}

        if args.validate:
            # Validation happens during load_config(), if we got here it passed
            if args.json:
                output["validation"] = {"passed": True, "errors": []}
            else:
                print("✓ Configuration validation passed")
                print(f"  - Kafka: {config.kafka.bootstrap_servers} topic={config.kafka.topic}")
                print(f"  - Postgres: {config.postgres.host}:{config.postgres.port}/{config.postgres.database}")
                print(f"  - Log level: {config.log.level}")

        if args.show_merged:
            merged = config.to_dict(redact=True)
            if args.json:
                output["merged_config"] = merged
            else:
                print("\nConfiguration:")
                print("=" * 80)
                print(yaml.safe_dump(merged, default_flow_style=False, sort_keys=False))
                print("=" * 80)

        if args.json:
            print(json.dumps(output, indent=2))

        return 0

    except FileNotFoundError as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"✗ Error: {e}", file=sys.stderr)
        return 1

    except (ValueError, yaml.YAMLError) as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"✗ Validation error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(_cli_main())
