"""
pytest configuration for the notification pipeline tests.

Adds src directory to Python path for imports and provides shared fixtures.
"""

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import uuid4

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


@pytest.fixture(autouse=True)
def _clean_log_context():
    """Context variables leak between tests that run in the same thread."""
    from notify_core.logging import clear_log_context, clear_message_context

    clear_log_context()
    clear_message_context()
    yield
    clear_log_context()
    clear_message_context()


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with the notifications table, shared across threads."""
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool

    from notify_pipeline.repository import metadata

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def bare_sqlite_engine():
    """In-memory SQLite engine with no tables (for migration tests)."""
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def make_notification():
    """Factory for complete Notification records."""
    from notify_pipeline.entity import Notification

    base_time = datetime(2024, 1, 1, tzinfo=UTC)

    def _make(**overrides) -> Notification:
        created_at = overrides.pop("created_at", base_time)
        fields = {
            "id": uuid4(),
            "created_at": created_at,
            "modified_at": None,
            "expiration_date": created_at + timedelta(days=31),
            "message": "hello",
            "error": "",
            "user_uid": "user-1",
            "message_type": "email",
            "link": "https://example.com/n/1",
            "status": "PENDING",
            "subject": "Greetings",
            "created_by": "tests",
        }
        fields.update(overrides)
        return Notification(**fields)

    return _make
