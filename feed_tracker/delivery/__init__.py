"""New item handoff."""

from feed_tracker.delivery.queue import NewItemMessage, RedisItemQueue
from feed_tracker.delivery.sinks import (
    EnclosureDownloader,
    ItemSink,
    LoggingItemSink,
    build_item_sink,
)

__all__ = [
    "EnclosureDownloader",
    "ItemSink",
    "LoggingItemSink",
    "NewItemMessage",
    "RedisItemQueue",
    "build_item_sink",
]
