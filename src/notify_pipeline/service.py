"""Processing stage between the consumer and the notification store."""

import logging

from notify_core.logging import log_exception
from notify_pipeline.entity import Notification, Page
from notify_pipeline.repository import NotificationStore

logger = logging.getLogger(__name__)


class NotificationService:
    """Persists decoded notifications and serves paginated reads."""

    def __init__(self, store: NotificationStore):
        self.store = store

    async def save_notification(self, notification: Notification) -> Notification:
        """
        Persist one record.

        Failures are logged and re-raised unchanged; no field validation
        happens here.
        """
        try:
            await self.store.save(notification)
        except Exception as e:
            log_exception(
                logger,
                e,
                "Failed to save notification",
                include_traceback=False,
                notification_id=notification.id,
            )
            raise

        logger.info(
            "Saved notification",
            extra={"notification_id": notification.id},
        )
        return notification

    async def list_notifications(self, page: Page) -> list[Notification]:
        return await self.store.find_all_by_page(page)
