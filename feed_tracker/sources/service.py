"""Source feed management and bulk import."""

import json
import logging
from pathlib import Path

from feed_tracker.errors import DuplicateSourceFeedError
from feed_tracker.feeds.schemas import SourceFeed
from feed_tracker.storage.gateway import FeedStorage

logger = logging.getLogger(__name__)


def _parse_entry(index: int, entry: object) -> SourceFeed:
    """Convert a JSON import entry to a SourceFeed."""
    if not isinstance(entry, dict) or not str(entry.get("url", "")).strip():
        raise ValueError(f"Entry {index} must be an object with a non-empty 'url'")
    return SourceFeed.create(str(entry["url"]), str(entry.get("title") or ""))


class SourceFeedService:
    """Adds, lists and imports source feeds against a storage backend."""

    def __init__(self, storage: FeedStorage) -> None:
        self._storage = storage

    async def add_source(self, url: str, title: str = "") -> SourceFeed:
        """
        Create and store a new source feed.

        Raises:
            DuplicateSourceFeedError: If the URL is already configured
            ValueError: If the URL is empty
        """
        source = SourceFeed.create(url, title)
        await self._storage.put_source_feed(source)
        logger.info("Added source feed %s", source.url)
        return source

    async def list_sources(self) -> list[SourceFeed]:
        sources = await self._storage.list_source_feeds()
        return list(sources.values())

    async def get_source(self, url: str) -> SourceFeed | None:
        return await self._storage.get_source_feed(url.strip())

    async def import_from_json(self, path: Path) -> tuple[int, int]:
        """Import source feeds from a JSON list of {"url", "title"} objects.

        URLs that are already stored, or repeated within the file, are
        skipped. The whole file is validated before anything is written.

        Returns (added, skipped).
        """
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)
        if not isinstance(entries, list):
            raise ValueError(f"{path}: expected a JSON list of source feeds")

        candidates = [_parse_entry(i, e) for i, e in enumerate(entries)]
        existing = await self._storage.list_source_feeds()
        seen = set(existing)

        added = skipped = 0
        for source in candidates:
            if source.url in seen:
                skipped += 1
                continue
            seen.add(source.url)
            try:
                await self._storage.put_source_feed(source)
            except DuplicateSourceFeedError:
                skipped += 1
                continue
            added += 1

        logger.info("Imported %d source feeds from %s (%d skipped)", added, path, skipped)
        return added, skipped
