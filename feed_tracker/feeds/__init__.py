"""Feed entity model, parsing and change detection."""

from feed_tracker.feeds.diff import DiffPolicy, find_new_items, item_key
from feed_tracker.feeds.hashing import canonical_bytes, compute_hash, format_hash
from feed_tracker.feeds.parser import parse_feed_document
from feed_tracker.feeds.schemas import (
    FeedCategory,
    FeedEnclosure,
    FeedImage,
    FeedItem,
    FeedSnapshot,
    Metadata,
    SourceFeed,
)

__all__ = [
    "DiffPolicy",
    "FeedCategory",
    "FeedEnclosure",
    "FeedImage",
    "FeedItem",
    "FeedSnapshot",
    "Metadata",
    "SourceFeed",
    "canonical_bytes",
    "compute_hash",
    "find_new_items",
    "format_hash",
    "item_key",
    "parse_feed_document",
]
