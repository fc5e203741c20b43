"""Notification consumer: reads, decodes and forwards records, one at a time."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from aiokafka import AIOKafkaConsumer
from aiokafka.structs import ConsumerRecord

from notify_config.config import KafkaConfig
from notify_core.errors import (
    CancellationError,
    DecodeError,
    KafkaErrorClassifier,
    wrap_exception,
)
from notify_core.logging import MessageLogContext, log_exception, set_log_context
from notify_core.utils import generate_worker_id
from notify_pipeline.entity import Notification, decode_notification
from notify_pipeline.kafka_config import build_consumer_config
from notify_pipeline.types import PipelineMessage, from_consumer_record

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def save_notification(self, notification: Notification) -> Notification: ...


@dataclass
class ConsumerStats:
    """Cumulative counters for one consumer instance."""

    consumed: int = 0
    saved: int = 0
    decode_failures: int = 0
    persistence_failures: int = 0

    def as_log_extra(self) -> dict[str, int]:
        return {f"records_{k}" if k in ("consumed", "saved") else k: v for k, v in asdict(self).items()}


class NotificationConsumer:
    """
    Sequential Kafka consumer for notification records.

    Each read is raced against the shutdown event; a read that completes is
    always decoded, forwarded and committed before the next shutdown check.
    Decode and persistence failures are logged and the message is skipped;
    the position is committed after every message either way.

    Lifecycle:
        consumer = NotificationConsumer.from_config(config.kafka, service)
        try:
            await consumer.run(shutdown_event)   # raises CancellationError on shutdown
        finally:
            await consumer.close()
    """

    def __init__(
        self,
        brokers: Sequence[str],
        topic: str,
        group_id: str,
        sink: NotificationSink,
        consumer_options: dict[str, Any] | None = None,
        instance_id: str | None = None,
    ):
        if not brokers:
            raise ValueError("At least one broker must be specified")
        if not topic:
            raise ValueError("Topic must be specified")
        if not group_id:
            raise ValueError("Consumer group must be specified")

        self.brokers = list(brokers)
        self.topic = topic
        self.group_id = group_id
        self.sink = sink
        self.consumer_options = dict(consumer_options or {})
        self.stats = ConsumerStats()
        self._consumer: AIOKafkaConsumer | None = None
        self._closed = False

        prefix = f"{topic}-consumer"
        if instance_id:
            prefix = f"{prefix}-{instance_id}"
        self.worker_id = generate_worker_id(prefix)

        logger.info(
            "Initialized notification consumer",
            extra={
                "topic": topic,
                "group_id": group_id,
                "brokers": ",".join(self.brokers),
            },
        )

    @classmethod
    def from_config(
        cls,
        config: KafkaConfig,
        sink: NotificationSink,
        instance_id: str | None = None,
    ) -> "NotificationConsumer":
        """Build a consumer from one configuration snapshot."""
        options = build_consumer_config(config)
        options.pop("bootstrap_servers")
        options.pop("group_id")
        return cls(
            brokers=config.brokers,
            topic=config.topic,
            group_id=config.group_id,
            sink=sink,
            consumer_options=options,
            instance_id=instance_id,
        )

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._closed

    def _build_kafka_config(self) -> dict:
        cfg = {
            "auto_offset_reset": "earliest",
            **self.consumer_options,
            "bootstrap_servers": ",".join(self.brokers),
            "group_id": self.group_id,
            # Positions are committed after every message
            "enable_auto_commit": False,
        }
        return cfg

    def _error_context(self, operation: str) -> dict:
        return {"operation": operation, "topic": self.topic, "group_id": self.group_id}

    async def _start_reader(self) -> None:
        logger.info("Starting notification consumer", extra={"topic": self.topic, "group_id": self.group_id})

        consumer = AIOKafkaConsumer(self.topic, **self._build_kafka_config())
        try:
            await consumer.start()
        except Exception as e:
            try:
                await consumer.stop()
            except Exception:
                logger.debug("Error stopping consumer after failed start", exc_info=True)
            raise KafkaErrorClassifier.classify_consumer_error(e, context=self._error_context("start")) from e

        self._consumer = consumer
        logger.info("Notification consumer started", extra={"topic": self.topic, "group_id": self.group_id})

    def _cancellation(self) -> CancellationError:
        return CancellationError(
            "Shutdown requested, consumer stopped reading",
            context={"topic": self.topic, "group_id": self.group_id},
        )

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """
        Consume until shutdown or a transport failure.

        Raises:
            CancellationError: shutdown_event was set (normal termination)
            TransportError: starting, reading or committing failed
        """
        if self._closed:
            raise RuntimeError("Consumer is closed")

        set_log_context(stage="consume", worker_id=self.worker_id)

        if shutdown_event.is_set():
            raise self._cancellation()

        if self._consumer is None:
            await self._start_reader()

        try:
            while True:
                if shutdown_event.is_set():
                    raise self._cancellation()

                record = await self._read_next(shutdown_event)
                await self._process_record(record)
        except CancellationError:
            logger.info("Shutdown requested, consumer loop stopping")
            raise
        except asyncio.CancelledError:
            logger.info("Consumer task cancelled")
            raise
        except Exception:
            logger.error("Consumer loop terminated with error", exc_info=True)
            raise
        finally:
            logger.info("Consumer loop stopped", extra=self.stats.as_log_extra())

    async def _read_next(self, shutdown_event: asyncio.Event) -> ConsumerRecord:
        """Wait for the next record or the shutdown event, whichever comes first."""
        read_task = asyncio.ensure_future(self._consumer.getone())
        shutdown_task = asyncio.ensure_future(shutdown_event.wait())
        try:
            done, _ = await asyncio.wait(
                {read_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            pending = [task for task in (read_task, shutdown_task) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if read_task not in done:
            raise self._cancellation()

        try:
            return read_task.result()
        except Exception as e:
            raise KafkaErrorClassifier.classify_consumer_error(e, context=self._error_context("read")) from e

    async def _process_record(self, record: ConsumerRecord) -> None:
        message = from_consumer_record(record)
        self.stats.consumed += 1

        with MessageLogContext(
            topic=message.topic,
            partition=message.partition,
            offset=message.offset,
            key=message.key_str,
            consumer_group=self.group_id,
        ):
            notification = self._decode(message)
            if notification is not None:
                await self._forward(notification)
            await self._commit(message)

    def _decode(self, message: PipelineMessage) -> Notification | None:
        try:
            return decode_notification(message.value)
        except DecodeError as e:
            self.stats.decode_failures += 1
            log_exception(
                logger,
                e,
                "Failed to decode notification, skipping message",
                include_traceback=False,
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
            )
            return None

    async def _forward(self, notification: Notification) -> None:
        logger.info("Received notification", extra={"notification_id": notification.id})
        try:
            await self.sink.save_notification(notification)
        except Exception as e:
            self.stats.persistence_failures += 1
            classified = wrap_exception(e)
            logger.error(
                "Failed to persist notification, skipping message",
                extra={
                    "notification_id": notification.id,
                    "error_category": classified.category.value,
                    "error_type": classified.context.get("error_type", type(e).__name__),
                    "error_message": str(e),
                },
            )
            return
        self.stats.saved += 1

    async def _commit(self, message: PipelineMessage) -> None:
        try:
            await self._consumer.commit()
        except Exception as e:
            raise KafkaErrorClassifier.classify_consumer_error(e, context=self._error_context("commit")) from e
        logger.debug(
            "Committed offset",
            extra={"topic": message.topic, "partition": message.partition, "offset": message.offset},
        )

    async def close(self) -> None:
        """Stop the reader. Safe to call more than once and after run returns."""
        if self._closed:
            return
        self._closed = True

        consumer, self._consumer = self._consumer, None
        if consumer is None:
            logger.debug("Consumer was never started")
            return

        logger.info("Stopping notification consumer")
        try:
            await consumer.stop()
        except Exception as e:
            raise KafkaErrorClassifier.classify_consumer_error(e, context=self._error_context("close")) from e
        logger.info("Notification consumer stopped", extra=self.stats.as_log_extra())


__all__ = [
    "ConsumerStats",
    "NotificationConsumer",
    "NotificationSink",
]
