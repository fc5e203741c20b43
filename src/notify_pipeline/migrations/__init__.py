"""
Versioned schema migrations for the notification store.

The Alembic environment ships inside the package so the service can apply
pending revisions at startup on a connection from its own engine.
"""

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from notify_core.errors import classify_sql_error

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent


def alembic_config(connection=None) -> Config:
    """Alembic config pointing at the packaged scripts, optionally bound to a connection."""
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    if connection is not None:
        cfg.attributes["connection"] = connection
    return cfg


def head_revision() -> str | None:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    """Revision currently applied to the database, None before the first migration."""
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    except SQLAlchemyError as e:
        raise classify_sql_error(e, "current_revision") from e


def run_migrations(engine: Engine, revision: str = "head") -> str | None:
    """
    Upgrade the schema to ``revision`` in one transaction.

    Re-running at the target revision is a no-op. Returns the applied revision.

    Raises:
        ConnectivityError: Database unreachable
        QueryError: A migration statement was rejected
    """
    logger.info("Applying database migrations", extra={"revision": revision})
    try:
        with engine.begin() as connection:
            command.upgrade(alembic_config(connection), revision)
    except SQLAlchemyError as e:
        raise classify_sql_error(e, "migrate", {"revision": revision}) from e

    applied = current_revision(engine)
    logger.info("Database schema is up to date", extra={"revision": applied})
    return applied


__all__ = [
    "MIGRATIONS_DIR",
    "alembic_config",
    "current_revision",
    "head_revision",
    "run_migrations",
]
