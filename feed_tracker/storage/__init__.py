"""Persistence for source feeds and snapshot history."""

from feed_tracker.storage.config import StorageConfig
from feed_tracker.storage.database import Database
from feed_tracker.storage.gateway import (
    FeedQueryStorage,
    FeedStorage,
    SchedulerStorage,
    SnapshotRecord,
)
from feed_tracker.storage.memory import InMemoryFeedStorage
from feed_tracker.storage.repository import FeedRepository

__all__ = [
    "Database",
    "FeedQueryStorage",
    "FeedRepository",
    "FeedStorage",
    "InMemoryFeedStorage",
    "SchedulerStorage",
    "SnapshotRecord",
    "StorageConfig",
]
