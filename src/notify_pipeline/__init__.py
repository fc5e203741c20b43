"""
Notification ingestion pipeline.

Kafka -> NotificationConsumer (decode) -> NotificationService -> NotificationStore (PostgreSQL)
"""

from notify_pipeline.consumer import ConsumerStats, NotificationConsumer
from notify_pipeline.entity import Notification, Page, decode_notification
from notify_pipeline.repository import (
    NotificationStore,
    SqlNotificationRepository,
    create_db_engine,
)
from notify_pipeline.service import NotificationService

__all__ = [
    "ConsumerStats",
    "Notification",
    "NotificationConsumer",
    "NotificationService",
    "NotificationStore",
    "Page",
    "SqlNotificationRepository",
    "create_db_engine",
    "decode_notification",
]
