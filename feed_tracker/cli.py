"""
Command-line interface for feed-tracker.

Usage:
    feed-tracker init-db                 # Create storage tables
    feed-tracker add-source --url URL    # Configure one feed
    feed-tracker import-sources FILE     # Bulk-add feeds from JSON
    feed-tracker run-once                # Run a single polling cycle
    feed-tracker poll                    # Poll continuously
    feed-tracker serve                   # Start the query API
    feed-tracker health                  # Check dependencies
"""

import asyncio
import signal
import sys
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path

import click

from feed_tracker.config.settings import get_settings
from feed_tracker.observability.logging import setup_logging
from feed_tracker.observability.metrics import get_metrics
from feed_tracker.scheduler.schemas import CycleReport
from feed_tracker.storage.gateway import FeedStorage


@asynccontextmanager
async def open_storage() -> AsyncIterator[FeedStorage]:
    """Yield the PostgreSQL storage backend, closing the pool afterwards."""
    from feed_tracker.storage.database import Database
    from feed_tracker.storage.repository import FeedRepository

    async with Database() as db:
        yield FeedRepository(db)


@asynccontextmanager
async def open_scheduler(sink_kind: str | None = None):
    """Yield a FeedScheduler with its fetcher and item sink started."""
    from feed_tracker.delivery.sinks import build_item_sink
    from feed_tracker.fetching.fetcher import FeedFetcher
    from feed_tracker.scheduler.service import FeedScheduler

    async with AsyncExitStack() as stack:
        fetcher = await stack.enter_async_context(FeedFetcher())
        sink = await stack.enter_async_context(build_item_sink(sink_kind))
        yield FeedScheduler(fetcher, sink)


def _print_report(report: CycleReport) -> None:
    click.echo(f"\nCycle {report.cycle_id} ({report.duration_seconds:.1f}s)")
    click.echo("-" * 40)
    if report.nothing_configured:
        click.echo("  No source feeds configured")
    click.echo(f"  Sources loaded:   {report.sources_loaded}")
    click.echo(f"  Snapshots stored: {len(report.snapshots_stored)}")
    click.echo(f"  Unchanged:        {len(report.unchanged)}")
    click.echo(f"  New items:        {report.total_new_items}")
    for url, items in report.new_items.items():
        click.echo(f"    {url}")
        for item in items:
            click.echo(f"      + {item.title or item.guid or item.link}")
    if report.errors:
        click.echo(click.style(f"  Errors:           {len(report.errors)}", fg="red"))
        for error in report.errors:
            where = error.source_url or "<cycle>"
            click.echo(click.style(f"    [{error.kind.value}] {where}: {error.message}", fg="red"))
    click.echo("-" * 40)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Feed Tracker - RSS polling with change detection."""
    if debug:
        import os

        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""

    async def run():
        async with open_storage() as storage:
            await storage.create_tables()
        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command("add-source")
@click.option("--url", required=True, help="Feed URL")
@click.option("--title", default="", help="Display title")
def add_source(url: str, title: str) -> None:
    """Add one source feed."""
    from feed_tracker.errors import DuplicateSourceFeedError
    from feed_tracker.sources.service import SourceFeedService

    async def run() -> int:
        async with open_storage() as storage:
            try:
                source = await SourceFeedService(storage).add_source(url, title)
            except DuplicateSourceFeedError as e:
                click.echo(click.style(str(e), fg="yellow"))
                return 1
            except ValueError as e:
                click.echo(click.style(f"Invalid source feed: {e}", fg="red"))
                return 1
        click.echo(f"Added source feed {source.url} ({source.hash_hex})")
        return 0

    sys.exit(asyncio.run(run()))


@main.command("import-sources")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_sources(file: Path) -> None:
    """Bulk-add source feeds from a JSON list of {"url", "title"} objects.

    Nothing is written if any entry is invalid.
    """
    from feed_tracker.sources.service import SourceFeedService

    async def run() -> int:
        async with open_storage() as storage:
            try:
                added, skipped = await SourceFeedService(storage).import_from_json(file)
            except ValueError as e:
                click.echo(click.style(f"Cannot import {file}: {e}", fg="red"))
                return 1
        click.echo(f"Imported {added} source feeds ({skipped} already present)")
        return 0

    sys.exit(asyncio.run(run()))


@main.command("run-once")
@click.option(
    "--sink",
    type=click.Choice(["log", "redis", "download"]),
    default=None,
    help="Item sink (default from ITEM_SINK)",
)
def run_once(sink: str | None) -> None:
    """Run one polling cycle and print a summary.

    Exits with status 1 if any source failed.
    """

    async def run() -> int:
        async with open_storage() as storage, open_scheduler(sink) as scheduler:
            report = await scheduler.run_cycle(storage)
        _print_report(report)
        return 1 if report.has_errors else 0

    sys.exit(asyncio.run(run()))


@main.command()
@click.option("--interval", type=float, default=None, help="Seconds between cycles")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def poll(interval: float | None, metrics: bool) -> None:
    """Poll all source feeds continuously."""
    from feed_tracker.services.polling_service import PollingService

    async def run():
        if metrics:
            get_metrics().start_server()

        async with open_storage() as storage, open_scheduler() as scheduler:
            service = PollingService(storage, scheduler, poll_interval=interval)

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

            await service.start()

    asyncio.run(run())


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the query API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "feed_tracker.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog

    logger = structlog.get_logger()

    async def check() -> bool:
        results: dict[str, bool] = {}

        try:
            from feed_tracker.storage.database import Database

            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        if get_settings().item_sink == "redis":
            try:
                import redis.asyncio as redis

                client = redis.from_url(str(get_settings().redis_url))
                try:
                    results["redis"] = bool(await client.ping())
                finally:
                    await client.aclose()
            except Exception as e:
                results["redis"] = False
                logger.error("Redis health check failed", error=str(e))

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        click.echo("-" * 40)

        return all(results.values())

    if asyncio.run(check()):
        click.echo(click.style("All services healthy!", fg="green"))
        sys.exit(0)
    click.echo(click.style("Some services unhealthy!", fg="red"))
    sys.exit(1)


if __name__ == "__main__":
    main()
