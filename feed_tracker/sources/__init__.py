"""Source feed management."""

from feed_tracker.sources.service import SourceFeedService

__all__ = ["SourceFeedService"]
