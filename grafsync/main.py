"""
grafsync service entry point.

Watches annotated ConfigMaps (or a Redis stream of their snapshots) and
pushes their dashboards and datasources into Grafana. No HTTP server;
all output goes to logs.
"""

import asyncio
import signal
import sys
from functools import partial

from grafsync.config.settings import Settings
from grafsync.errors import ConfigurationError, EventSourceError
from grafsync.events.client import RedisClient
from grafsync.events.configmap_watcher import ConfigMapWatcher
from grafsync.events.source import EventSource
from grafsync.events.subscriber import StreamSubscriber
from grafsync.handlers.reconcile_handler import ReconcileHandler
from grafsync.logger.logger import LogWriter, get_logger, init_logger
from grafsync.logger.stream_writer import StreamWriter
from grafsync.logger.types import Category, Level, category, param
from grafsync.orchestrator import Orchestrator
from grafsync.services.folders import FolderResolver
from grafsync.services.grafana import GrafanaClient
from grafsync.store.dedup import ContentDedupStore


async def create_log_writer(settings: Settings) -> LogWriter:
    """PostgreSQL sink when LOG_POSTGRES_DSN is set, JSON lines on stdout otherwise."""
    if not settings.log.postgres_dsn:
        return StreamWriter()

    from grafsync.logger.postgres_writer import PostgresWriter

    writer = PostgresWriter(dsn=settings.log.postgres_dsn, batch_size=100, flush_interval=5.0)
    try:
        await writer.connect()
    except Exception:
        print("[LOGGER ERROR] Falling back to stdout logging", file=sys.stderr)
        return StreamWriter()
    return writer


async def create_event_source(settings: Settings) -> tuple[EventSource, RedisClient | None]:
    if settings.event_source == "redis":
        redis_client = RedisClient(settings.redis)
        await redis_client.connect()
        get_logger().info(
            "Connected to messenger (Redis)",
            category(Category.MESSENGER),
            param("host", settings.redis.host),
            param("port", settings.redis.port),
        )
        subscriber = StreamSubscriber(
            redis_client=redis_client,
            consumer_group=settings.redis.consumer_group,
            stream=settings.redis.stream,
        )
        return subscriber, redis_client

    watcher = ConfigMapWatcher(settings.kubernetes)
    # Credential discovery failures are fatal; surface them before bootstrap
    watcher.connect()
    return watcher, None


async def main() -> None:
    """Main entry point."""
    try:
        settings = Settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        raise SystemExit(1) from e

    log_writer = await create_log_writer(settings)
    logger = init_logger(
        service_name=settings.service_name,
        environment=settings.environment,
        writer=log_writer,
        min_level=Level.parse(settings.log.level, Level.INFO),
    )

    logger.info(
        "Starting grafsync",
        param("environment", settings.environment),
        param("version", settings.service_version),
        param("grafana_url", settings.grafana.display_url),
        param("event_source", settings.event_source),
        param("folders", settings.grafana.folder_names),
        param("home_page", settings.grafana.home_page),
    )

    client = GrafanaClient(settings.grafana)
    redis_client: RedisClient | None = None
    orchestrator: Orchestrator | None = None

    try:
        try:
            source, redis_client = await create_event_source(settings)
        except (ConfigurationError, EventSourceError) as e:
            logger.fatal("Event source unavailable", e)

        folders = FolderResolver(client, settings.grafana.folder_names)
        dedup = ContentDedupStore(max_entries=settings.dedup_max_entries)
        handler = ReconcileHandler(client, folders, dedup)
        orchestrator = Orchestrator(
            client=client,
            folders=folders,
            handler=handler,
            source=source,
            home_page=settings.grafana.home_page,
        )

        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        def signal_handler(sig: int) -> None:
            logger.info("Received signal", param("signal", sig))
            stop_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, partial(signal_handler, sig))

        try:
            await orchestrator.run(stop_event)
        except Exception as e:
            logger.error("Fatal error in event consumer", e)
            raise SystemExit(1) from e
    finally:
        logger.info("Shutting down grafsync...")
        if orchestrator is not None:
            await orchestrator.shutdown()
        if redis_client is not None:
            await redis_client.close()
        await client.close()
        logger.info("Shutdown complete")
        await log_writer.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
