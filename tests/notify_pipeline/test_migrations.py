"""Tests for packaged schema migrations (SQLite in memory)."""

from unittest.mock import Mock

import pytest
import sqlalchemy as sa
from sqlalchemy import exc as sa_exc

from notify_core.errors import ConnectivityError
from notify_pipeline.entity import Page
from notify_pipeline.migrations import current_revision, head_revision, run_migrations
from notify_pipeline.repository import SqlNotificationRepository


class TestRunMigrations:
    def test_head_revision(self):
        assert head_revision() == "0001"

    def test_fresh_database_has_no_revision(self, bare_sqlite_engine):
        assert current_revision(bare_sqlite_engine) is None

    def test_upgrade_creates_table(self, bare_sqlite_engine):
        assert run_migrations(bare_sqlite_engine) == "0001"

        inspector = sa.inspect(bare_sqlite_engine)
        assert "notifications" in inspector.get_table_names()
        columns = {c["name"] for c in inspector.get_columns("notifications")}
        assert {"id", "created_at", "expiration_date", "message", "status"} <= columns
        indexes = {i["name"] for i in inspector.get_indexes("notifications")}
        assert "ix_notifications_created_at" in indexes

    def test_free_form_columns_are_text(self, bare_sqlite_engine):
        run_migrations(bare_sqlite_engine)

        columns = {c["name"]: c["type"] for c in sa.inspect(bare_sqlite_engine).get_columns("notifications")}
        for name in ("status", "message_type", "user_uid", "created_by"):
            assert isinstance(columns[name], sa.Text)

    def test_rerun_is_noop(self, bare_sqlite_engine):
        run_migrations(bare_sqlite_engine)
        assert run_migrations(bare_sqlite_engine) == "0001"
        assert current_revision(bare_sqlite_engine) == "0001"

    async def test_migrated_schema_accepts_notifications(self, bare_sqlite_engine, make_notification):
        run_migrations(bare_sqlite_engine)
        repository = SqlNotificationRepository(bare_sqlite_engine)
        notification = make_notification()

        await repository.save(notification)

        assert await repository.find_all_by_page(Page()) == [notification]

    def test_unreachable_database(self):
        engine = Mock()
        engine.begin.side_effect = sa_exc.OperationalError("BEGIN", {}, Exception("connection refused"))

        with pytest.raises(ConnectivityError) as exc_info:
            run_migrations(engine)

        assert exc_info.value.context["operation"] == "migrate"
        assert exc_info.value.context["revision"] == "head"
