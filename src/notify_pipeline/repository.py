"""
Notification persistence: table definition, store protocol and SQL store.

The SQL store runs each blocking SQLAlchemy call in a worker thread via
asyncio.to_thread so the consume loop's event loop keeps running.
"""

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Protocol

import sqlalchemy as sa
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import TypeDecorator

from notify_config.config import PostgresConfig
from notify_core.errors import ConnectivityError, classify_sql_error
from notify_pipeline.entity import Notification, Page

logger = logging.getLogger(__name__)

TABLE_NAME = "notifications"


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp stored and returned in UTC."""

    impl = sa.DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        # SQLite has no timezone support; store naive UTC
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


metadata = sa.MetaData()

notifications = sa.Table(
    TABLE_NAME,
    metadata,
    sa.Column("id", sa.Uuid, primary_key=True, nullable=False),
    sa.Column("created_at", UTCDateTime(timezone=True), nullable=False),
    sa.Column("modified_at", UTCDateTime(timezone=True), nullable=True),
    sa.Column("expiration_date", UTCDateTime(timezone=True), nullable=False),
    sa.Column("message", sa.Text, nullable=False),
    sa.Column("error", sa.Text, nullable=False, server_default=""),
    sa.Column("user_uid", sa.Text, nullable=False, server_default=""),
    sa.Column("message_type", sa.Text, nullable=False, server_default=""),
    sa.Column("link", sa.Text, nullable=False, server_default=""),
    sa.Column("status", sa.Text, nullable=False, server_default=""),
    sa.Column("subject", sa.Text, nullable=False, server_default=""),
    sa.Column("created_by", sa.Text, nullable=False, server_default=""),
    sa.CheckConstraint("message <> ''", name="ck_notifications_message_not_empty"),
    sa.Index("ix_notifications_created_at", "created_at"),
)


class NotificationStore(Protocol):
    """Persistence port used by the processing service."""

    async def save(self, notification: Notification) -> None:
        """Insert one record. Duplicate id raises ConstraintViolation."""
        ...

    async def find_all_by_page(self, page: Page) -> list[Notification]:
        """Records ordered by created_at descending, limit then offset."""
        ...


def build_database_url(pg_config: PostgresConfig) -> URL:
    return URL.create(
        "postgresql+psycopg2",
        username=pg_config.user,
        password=pg_config.password or None,
        host=pg_config.host,
        port=pg_config.port,
        database=pg_config.database,
        query={"sslmode": pg_config.sslmode},
    )


def create_db_engine(pg_config: PostgresConfig, **engine_kwargs) -> Engine:
    """
    Create the pooled engine for the notification store.

    Keeps up to max_idle_conns pooled connections plus max_overflow extra,
    recycles connections older than idle_timeout seconds, and pings each
    connection on checkout. No connection is opened here.
    """
    url = build_database_url(pg_config)
    options = {
        "pool_size": pg_config.max_idle_conns,
        "max_overflow": pg_config.max_overflow,
        "pool_recycle": pg_config.idle_timeout if pg_config.idle_timeout > 0 else -1,
        "pool_pre_ping": True,
        "connect_args": {"connect_timeout": pg_config.connect_timeout},
    }
    options.update(engine_kwargs)

    engine = sa.create_engine(url, **options)
    logger.info(
        "Created database engine",
        extra={
            "database_url": url.render_as_string(hide_password=True),
            "host": pg_config.host,
            "port": pg_config.port,
            "database": pg_config.database,
        },
    )
    return engine


class SqlNotificationRepository:
    """
    NotificationStore backed by a SQLAlchemy engine.

    Construction verifies connectivity with a SELECT 1 round trip. Each
    save/find is a single statement in its own transaction.
    """

    def __init__(self, engine: Engine, verify_connection: bool = True):
        self.engine = engine
        if verify_connection:
            self.ping()

    def ping(self) -> None:
        """Raise ConnectivityError unless the store answers SELECT 1."""
        try:
            with self.engine.connect() as conn:
                conn.execute(sa.text("SELECT 1"))
        except SQLAlchemyError as e:
            raise ConnectivityError(
                "Notification store is unreachable",
                cause=e,
                context={"operation": "ping", "error_type": type(e).__name__},
            ) from e

    def _insert(self, notification: Notification) -> None:
        with self.engine.begin() as conn:
            conn.execute(notifications.insert(), notification.to_row())

    def _select_page(self, page: Page) -> list[Notification]:
        stmt = (
            sa.select(notifications)
            .order_by(notifications.c.created_at.desc(), notifications.c.id)
            .limit(page.limit)
            .offset(page.offset)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [Notification.from_row(row) for row in rows]

    async def save(self, notification: Notification) -> None:
        start_time = time.perf_counter()
        try:
            await asyncio.to_thread(self._insert, notification)
        except (SQLAlchemyError, ValueError) as e:
            raise classify_sql_error(
                e, "save", {"notification_id": str(notification.id), "table": TABLE_NAME}
            ) from e

        logger.debug(
            "Inserted notification",
            extra={
                "notification_id": notification.id,
                "table": TABLE_NAME,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )

    async def find_all_by_page(self, page: Page) -> list[Notification]:
        start_time = time.perf_counter()
        try:
            result = await asyncio.to_thread(self._select_page, page)
        except SQLAlchemyError as e:
            raise classify_sql_error(
                e,
                "find_all_by_page",
                {"offset": page.offset, "limit": page.limit, "table": TABLE_NAME},
            ) from e

        logger.debug(
            "Selected notification page",
            extra={
                "offset": page.offset,
                "limit": page.limit,
                "rows_returned": len(result),
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
            },
        )
        return result
