"""
Polling cycle: fetch, hash-compare, diff, hand off, persist.

For every configured source the scheduler loads the last stored snapshot,
fetches a fresh one and compares content hashes. Equal hashes mean nothing
changed and nothing is written. Otherwise the new items are handed to the
item sink and the new snapshot is appended to storage. Items are handed
off before the snapshot is written, so a crash in between re-reports them
on the next cycle rather than losing them.

Sources run concurrently under a semaphore and the whole cycle runs under
a deadline. Failures are collected into the CycleReport; run_cycle() does
not raise.
"""

import asyncio
import time
import uuid

import structlog

from feed_tracker.delivery.sinks import ItemSink
from feed_tracker.errors import (
    ContentHashError,
    DeliveryError,
    FeedFetchError,
    FeedParseError,
    MissingGuidError,
    StorageError,
)
from feed_tracker.feeds.diff import find_new_items
from feed_tracker.feeds.schemas import SourceFeed
from feed_tracker.fetching.fetcher import FeedFetcher
from feed_tracker.observability.metrics import MetricsCollector, get_metrics
from feed_tracker.scheduler.config import SchedulerConfig
from feed_tracker.scheduler.schemas import (
    CycleError,
    CycleReport,
    ErrorKind,
    SourceOutcome,
)
from feed_tracker.storage.gateway import SchedulerStorage

logger = structlog.get_logger(__name__)

_ERROR_KINDS: list[tuple[type[Exception], ErrorKind]] = [
    (FeedFetchError, ErrorKind.FETCH),
    (FeedParseError, ErrorKind.PARSE),
    (ContentHashError, ErrorKind.PARSE),
    (MissingGuidError, ErrorKind.DIFF),
    (StorageError, ErrorKind.STORAGE),
    (DeliveryError, ErrorKind.DELIVERY),
]


def classify_error(exc: BaseException) -> ErrorKind:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return ErrorKind.INTERNAL


class FeedScheduler:
    """
    Runs polling cycles over all configured source feeds.

    Usage:
        async with FeedFetcher() as fetcher, LoggingItemSink() as sink:
            scheduler = FeedScheduler(fetcher, sink)
            report = await scheduler.run_cycle(storage)
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        sink: ItemSink,
        config: SchedulerConfig | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._fetcher = fetcher
        self._sink = sink
        self._config = config or SchedulerConfig()
        self._metrics = metrics or get_metrics()

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    async def run_cycle(self, storage: SchedulerStorage) -> CycleReport:
        """
        Run one polling cycle against `storage`.

        Returns:
            CycleReport with per-source outcomes and collected errors
        """
        report = CycleReport(cycle_id=uuid.uuid4().hex[:12])
        log = logger.bind(cycle_id=report.cycle_id)
        start = time.monotonic()

        try:
            sources = await storage.list_source_feeds()
        except StorageError as e:
            log.error("Failed to load source feeds", error=str(e))
            report.errors.append(CycleError(None, ErrorKind.STORAGE, str(e), e))
            return self._finish(report, start, log)

        report.sources_loaded = len(sources)
        self._metrics.sources_configured.set(len(sources))

        if not sources:
            log.info("No source feeds configured")
            return self._finish(report, start, log)

        semaphore = asyncio.Semaphore(self._config.max_concurrency)
        tasks = {
            asyncio.create_task(
                self._process_source(storage, source, semaphore, log),
                name=f"source:{url}",
            ): url
            for url, source in sources.items()
        }

        try:
            _, pending = await asyncio.wait(
                tasks, timeout=self._config.cycle_timeout_seconds
            )
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for task, url in tasks.items():
            if task in pending:
                message = f"Cycle deadline of {self._config.cycle_timeout_seconds}s exceeded"
                report.errors.append(CycleError(url, ErrorKind.TIMEOUT, message))
                continue
            exc = task.exception()
            if exc is not None:
                kind = classify_error(exc)
                log.warning(
                    "Source failed",
                    source_url=url,
                    kind=kind.value,
                    error=str(exc),
                )
                report.errors.append(CycleError(url, kind, str(exc), exc))
                continue
            report.outcomes[url] = task.result()

        for error in report.errors:
            self._metrics.record_error(error.kind.value)

        return self._finish(report, start, log)

    async def _process_source(
        self,
        storage: SchedulerStorage,
        source: SourceFeed,
        semaphore: asyncio.Semaphore,
        log: structlog.stdlib.BoundLogger,
    ) -> SourceOutcome:
        log = log.bind(source_url=source.url)

        async with semaphore:
            previous = await storage.get_latest_snapshot(source.url)

            fetch_start = time.monotonic()
            try:
                snapshot = await self._fetcher.fetch(source)
            except Exception:
                self._metrics.record_fetch(time.monotonic() - fetch_start, "error")
                raise
            self._metrics.record_fetch(time.monotonic() - fetch_start)

            outcome = SourceOutcome(source_url=source.url)

            if previous is not None and previous.content_hash == snapshot.content_hash:
                log.debug("Feed unchanged", content_hash=snapshot.hash_hex)
                return outcome

            outcome.new_items = find_new_items(
                previous, snapshot, self._config.diff_policy
            )

            for item in outcome.new_items:
                await self._sink.deliver(source.url, item)

            outcome.snapshot_id = await storage.put_snapshot(snapshot)

        self._metrics.snapshots_stored.inc()
        self._metrics.new_items.inc(len(outcome.new_items))
        log.info(
            "Snapshot stored",
            snapshot_id=outcome.snapshot_id,
            content_hash=snapshot.hash_hex,
            new_items=len(outcome.new_items),
            first_fetch=previous is None,
        )
        return outcome

    def _finish(
        self,
        report: CycleReport,
        start: float,
        log: structlog.stdlib.BoundLogger,
    ) -> CycleReport:
        report.duration_seconds = time.monotonic() - start
        self._metrics.record_cycle(report.duration_seconds, report.status)
        log.info(
            "Cycle completed",
            status=report.status,
            sources=report.sources_loaded,
            snapshots_stored=len(report.snapshots_stored),
            new_items=report.total_new_items,
            errors=len(report.errors),
            duration_seconds=round(report.duration_seconds, 2),
        )
        return report
