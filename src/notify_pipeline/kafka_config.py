"""Kafka client settings built from KafkaConfig."""

import ssl
from typing import Any

from notify_config.config import KafkaConfig


def build_kafka_security_config(config: KafkaConfig) -> dict:
    """Build Kafka security config dict from KafkaConfig.

    Handles SSL context creation and PLAIN/SCRAM SASL credentials.
    Returns an empty dict for PLAINTEXT connections.
    """
    if config.security_protocol == "PLAINTEXT":
        return {}

    security_config: dict[str, Any] = {"security_protocol": config.security_protocol}

    if "SSL" in config.security_protocol:
        security_config["ssl_context"] = ssl.create_default_context()

    if config.security_protocol.startswith("SASL"):
        security_config["sasl_mechanism"] = config.sasl_mechanism
        security_config["sasl_plain_username"] = config.sasl_plain_username
        security_config["sasl_plain_password"] = config.sasl_plain_password

    return security_config


def build_consumer_config(config: KafkaConfig) -> dict:
    """Keyword arguments for AIOKafkaConsumer, offsets committed manually."""
    consumer_config = {
        "bootstrap_servers": config.bootstrap_servers,
        "group_id": config.group_id,
        "client_id": config.client_id,
        "auto_offset_reset": config.auto_offset_reset,
        "enable_auto_commit": False,
        "session_timeout_ms": config.session_timeout_ms,
        "heartbeat_interval_ms": config.heartbeat_interval_ms,
        "max_poll_interval_ms": config.max_poll_interval_ms,
        "request_timeout_ms": config.request_timeout_ms,
        "metadata_max_age_ms": config.metadata_max_age_ms,
        "connections_max_idle_ms": config.connections_max_idle_ms,
    }
    consumer_config.update(build_kafka_security_config(config))
    return consumer_config
