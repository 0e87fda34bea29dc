"""Polling cycle orchestration."""

from feed_tracker.scheduler.config import SchedulerConfig
from feed_tracker.scheduler.schemas import CycleError, CycleReport, ErrorKind, SourceOutcome
from feed_tracker.scheduler.service import FeedScheduler

__all__ = [
    "CycleError",
    "CycleReport",
    "ErrorKind",
    "FeedScheduler",
    "SchedulerConfig",
    "SourceOutcome",
]
