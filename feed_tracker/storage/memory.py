"""In-process storage backend for tests and dry runs."""

import asyncio
from datetime import datetime, timezone
from typing import NamedTuple

from feed_tracker.errors import DuplicateSourceFeedError
from feed_tracker.feeds.schemas import FeedSnapshot, SourceFeed
from feed_tracker.storage.config import StorageConfig
from feed_tracker.storage.gateway import FeedStorage, SnapshotRecord, decode_entity


class _StoredSnapshot(NamedTuple):
    source_url: str
    stored_at: datetime
    document: str


class InMemoryFeedStorage(FeedStorage):
    """
    Dict-backed FeedStorage.

    Entities are kept as their JSON documents and decoded on every read,
    so hash verification behaves exactly as it does against PostgreSQL.
    Reads scoped to one URL only decode that URL's snapshots.
    """

    def __init__(self, config: StorageConfig | None = None) -> None:
        self._config = config or StorageConfig()
        self._lock = asyncio.Lock()
        self._sources: dict[str, str] = {}
        self._snapshots: dict[int, _StoredSnapshot] = {}
        self._ids_by_url: dict[str, list[int]] = {}
        self._next_id = 1

    def _decode(self, snapshot_id: int) -> SnapshotRecord:
        stored = self._snapshots[snapshot_id]
        return SnapshotRecord(
            snapshot_id=snapshot_id,
            stored_at=stored.stored_at,
            snapshot=decode_entity(
                FeedSnapshot, stored.document, self._config.verify_hash_on_read
            ),
        )

    def _newest_first(self, url: str) -> list[int]:
        """Snapshot ids for one URL ordered by (stored_at, id) descending."""
        ids = self._ids_by_url.get(url, [])
        return sorted(
            ids,
            key=lambda sid: (self._snapshots[sid].stored_at, sid),
            reverse=True,
        )

    async def list_source_feeds(self) -> dict[str, SourceFeed]:
        async with self._lock:
            return {
                url: decode_entity(SourceFeed, doc, self._config.verify_hash_on_read)
                for url, doc in sorted(self._sources.items())
            }

    async def get_source_feed(self, url: str) -> SourceFeed | None:
        async with self._lock:
            doc = self._sources.get(url)
        if doc is None:
            return None
        return decode_entity(SourceFeed, doc, self._config.verify_hash_on_read)

    async def put_source_feed(self, source: SourceFeed) -> None:
        async with self._lock:
            if source.url in self._sources:
                raise DuplicateSourceFeedError(source.url)
            self._sources[source.url] = source.model_dump_json()

    async def get_latest_snapshot(self, url: str) -> FeedSnapshot | None:
        async with self._lock:
            ids = self._newest_first(url)
            if not ids:
                return None
            return self._decode(ids[0]).snapshot

    async def put_snapshot(self, snapshot: FeedSnapshot) -> int:
        async with self._lock:
            snapshot_id = self._next_id
            self._next_id += 1
            self._snapshots[snapshot_id] = _StoredSnapshot(
                source_url=snapshot.source_url,
                stored_at=datetime.now(timezone.utc),
                document=snapshot.model_dump_json(),
            )
            self._ids_by_url.setdefault(snapshot.source_url, []).append(snapshot_id)
            return snapshot_id

    async def list_snapshots(self) -> dict[str, list[SnapshotRecord]]:
        async with self._lock:
            return {
                url: [self._decode(sid) for sid in self._newest_first(url)]
                for url in sorted(self._ids_by_url)
            }

    async def latest_snapshots(self) -> dict[str, SnapshotRecord]:
        async with self._lock:
            return {
                url: self._decode(self._newest_first(url)[0])
                for url in sorted(self._ids_by_url)
            }

    async def get_snapshot(self, snapshot_id: int) -> SnapshotRecord | None:
        async with self._lock:
            if snapshot_id not in self._snapshots:
                return None
            return self._decode(snapshot_id)

    async def list_snapshots_by_url(self, url: str) -> list[SnapshotRecord]:
        async with self._lock:
            return [self._decode(sid) for sid in self._newest_first(url)]
