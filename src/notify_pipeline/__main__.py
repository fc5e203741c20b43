"""Notification pipeline entry point. Use --help for usage."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv

from notify_config.config import ServiceConfig
from notify_config.store import ConfigStore, ConfigWatcher
from notify_core.errors import CancellationError, PersistenceError, TransportError
from notify_core.logging import (
    apply_log_level,
    log_exception,
    log_startup_banner,
    set_log_context,
    setup_logging_from_config,
)
from notify_pipeline.consumer import NotificationConsumer
from notify_pipeline.entity import Page
from notify_pipeline.migrations import run_migrations
from notify_pipeline.repository import SqlNotificationRepository, create_db_engine
from notify_pipeline.service import NotificationService
from notify_pipeline.signals import (
    remove_shutdown_signal_handlers,
    setup_shutdown_signal_handlers,
)

# Project root directory (where .env file is located)
# __main__.py is at src/notify_pipeline/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m notify_pipeline",
        description="Consume notifications from Kafka into PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Apply migrations, then consume until SIGINT/SIGTERM
    python -m notify_pipeline

    # Consume without touching the schema or watching the config file
    python -m notify_pipeline consume --skip-migrations --no-watch

    # Print the 10 most recent notifications as JSON lines
    python -m notify_pipeline list --offset 0 --limit 10

    # Only apply migrations
    python -m notify_pipeline migrate
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml (default: $NOTIFY_CONFIG_PATH or the packaged config.yaml)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override log.level from the configuration file",
    )

    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all log output to stdout only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )

    parser.set_defaults(
        command="consume",
        skip_migrations=False,
        no_watch=False,
        offset=0,
        limit=10,
    )

    subparsers = parser.add_subparsers(dest="command", metavar="{consume,list,migrate}")

    consume = subparsers.add_parser("consume", help="Run the consumer (default)")
    consume.add_argument(
        "--skip-migrations",
        action="store_true",
        help="Do not apply pending migrations before consuming",
    )
    consume.add_argument(
        "--no-watch",
        action="store_true",
        help="Do not reload the configuration file when it changes",
    )

    list_parser = subparsers.add_parser("list", help="Print a page of stored notifications")
    list_parser.add_argument("--offset", type=int, default=0, help="Rows to skip (default: 0)")
    list_parser.add_argument("--limit", type=int, default=10, help="Maximum rows (default: 10)")

    subparsers.add_parser("migrate", help="Apply pending migrations and exit")

    return parser.parse_args(argv)


def _log_to_stdout(args: argparse.Namespace) -> bool:
    return args.log_to_stdout or os.getenv("LOG_TO_STDOUT", "false").lower() == "true"


def _config_reload_handler(running: ServiceConfig, level_pinned: bool):
    """Build the ConfigStore subscriber for a running consumer."""

    def _on_reload(new_config: ServiceConfig) -> None:
        if not level_pinned:
            apply_log_level(new_config.log.level)
            logger.info("Applied reloaded log level", extra={"log_level": new_config.log.level})

        if new_config.kafka != running.kafka or new_config.postgres != running.postgres:
            logger.warning("Kafka or Postgres settings changed; restart the service to apply them")

    return _on_reload


async def _await_consumer(consumer_task: asyncio.Task) -> int:
    try:
        await consumer_task
    except CancellationError:
        logger.info("Consumer stopped after shutdown request")
        return EXIT_OK
    except asyncio.CancelledError:
        logger.warning("Consumer task cancelled before finishing its message")
        return EXIT_OK
    except TransportError as e:
        log_exception(logger, e, "Consumer stopped by transport failure")
        return EXIT_FAILURE
    return EXIT_OK


async def run_consume(store: ConfigStore, args: argparse.Namespace) -> int:
    """Build the pipeline, consume until shutdown, then tear down in order."""
    config = store.snapshot()
    engine = create_db_engine(config.postgres)
    shutdown_event = asyncio.Event()
    consumer: NotificationConsumer | None = None
    watcher: ConfigWatcher | None = None
    handlers_installed = False

    try:
        if not args.skip_migrations:
            await asyncio.to_thread(run_migrations, engine)

        repository = await asyncio.to_thread(SqlNotificationRepository, engine)
        service = NotificationService(repository)
        consumer = NotificationConsumer.from_config(config.kafka, service)

        log_startup_banner(
            logger,
            worker_name="Notification Consumer",
            worker_id=consumer.worker_id,
            topic=consumer.topic,
            group_id=consumer.group_id,
            brokers=config.kafka.bootstrap_servers,
            database=f"{config.postgres.host}:{config.postgres.port}/{config.postgres.database}",
            env=config.env,
        )

        consumer_task = asyncio.create_task(consumer.run(shutdown_event), name="notification-consumer")

        def handle_signal() -> None:
            if not shutdown_event.is_set():
                logger.info("Received signal, initiating graceful shutdown")
                shutdown_event.set()
            else:
                logger.warning("Received second signal, forcing immediate shutdown...")
                consumer_task.cancel()

        setup_shutdown_signal_handlers(handle_signal)
        handlers_installed = True

        if not args.no_watch:
            store.subscribe(_config_reload_handler(config, level_pinned=args.log_level is not None))
            watcher = ConfigWatcher(store)
            watcher.start()

        return await _await_consumer(consumer_task)

    finally:
        if handlers_installed:
            remove_shutdown_signal_handlers()
        if consumer is not None:
            try:
                await consumer.close()
            except TransportError as e:
                log_exception(logger, e, "Error closing consumer", include_traceback=False)
        if watcher is not None:
            await watcher.stop()
        await asyncio.to_thread(engine.dispose)
        logger.info("Shutdown complete")


async def run_list(config: ServiceConfig, offset: int, limit: int) -> int:
    """Print one page of notifications as JSON lines, most recent first."""
    engine = create_db_engine(config.postgres)
    try:
        repository = await asyncio.to_thread(SqlNotificationRepository, engine)
        service = NotificationService(repository)
        notifications = await service.list_notifications(Page(offset=offset, limit=limit))
        for notification in notifications:
            print(notification.model_dump_json())
        logger.info(
            "Listed notifications",
            extra={"offset": offset, "limit": limit, "rows_returned": len(notifications)},
        )
        return EXIT_OK
    finally:
        await asyncio.to_thread(engine.dispose)


def run_migrate(config: ServiceConfig) -> int:
    engine = create_db_engine(config.postgres)
    try:
        revision = run_migrations(engine)
        print(f"Database at revision {revision}")
        return EXIT_OK
    finally:
        engine.dispose()


def main(argv: list[str] | None = None) -> int:
    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    try:
        store = ConfigStore(args.config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        print(f"✗ Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    config = store.snapshot()
    setup_logging_from_config(
        config.log,
        stage=args.command,
        level_override=args.log_level,
        log_to_stdout=_log_to_stdout(args),
    )
    set_log_context(service=config.app.name)

    try:
        if args.command == "migrate":
            return run_migrate(config)
        if args.command == "list":
            return asyncio.run(run_list(config, args.offset, args.limit))
        return asyncio.run(run_consume(store, args))
    except PersistenceError as e:
        log_exception(logger, e, "Notification store unavailable")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
