"""
Polling service - runs scheduler cycles on a fixed interval.

Runs until stopped. A stop request lets the in-flight cycle finish (it is
bounded by the cycle deadline) and interrupts the wait between cycles.
"""

import asyncio
from typing import Any

import structlog

from feed_tracker.scheduler.config import SchedulerConfig
from feed_tracker.scheduler.schemas import CycleReport
from feed_tracker.scheduler.service import FeedScheduler
from feed_tracker.storage.gateway import SchedulerStorage

logger = structlog.get_logger(__name__)


class PollingService:
    """
    Repeats FeedScheduler.run_cycle() every poll interval.

    Usage:
        service = PollingService(storage, scheduler)
        await service.start()  # Runs until stop() is called
    """

    def __init__(
        self,
        storage: SchedulerStorage,
        scheduler: FeedScheduler,
        poll_interval: float | None = None,
    ):
        self._storage = storage
        self._scheduler = scheduler
        self._poll_interval = poll_interval or SchedulerConfig().poll_interval_seconds
        self._running = False
        self._stop_event = asyncio.Event()
        self._cycles_run = 0
        self._last_report: CycleReport | None = None

    async def start(self) -> None:
        """Run cycles until stop() is called."""
        self._running = True
        self._stop_event.clear()
        logger.info("Starting polling service", poll_interval=self._poll_interval)

        try:
            while self._running:
                await self.run_once()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self._poll_interval
                    )
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("Polling service cancelled")
        finally:
            self._running = False
            logger.info("Polling service stopped", cycles=self._cycles_run)

    async def stop(self) -> None:
        """Stop after the current cycle."""
        logger.info("Stopping polling service")
        self._running = False
        self._stop_event.set()

    async def run_once(self) -> CycleReport:
        """Run a single cycle and remember its report."""
        report = await self._scheduler.run_cycle(self._storage)
        self._cycles_run += 1
        self._last_report = report
        return report

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    def health_check(self) -> dict[str, Any]:
        report = self._last_report
        return {
            "running": self._running,
            "cycles_run": self._cycles_run,
            "last_cycle_status": report.status if report else None,
            "last_cycle_errors": len(report.errors) if report else 0,
        }
