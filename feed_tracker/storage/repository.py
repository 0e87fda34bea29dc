"""PostgreSQL adapter for source feeds and the snapshot history."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from feed_tracker.errors import DuplicateSourceFeedError, StorageError
from feed_tracker.feeds.hashing import format_hash, parse_hash
from feed_tracker.feeds.schemas import FeedSnapshot, SourceFeed
from feed_tracker.storage.config import StorageConfig
from feed_tracker.storage.database import Database
from feed_tracker.storage.gateway import FeedStorage, SnapshotRecord, decode_entity

logger = logging.getLogger(__name__)

# Hashes are unsigned 64-bit, so they are stored as 16-digit hex TEXT
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS {sources} (
    url          TEXT PRIMARY KEY,
    title        TEXT NOT NULL DEFAULT '',
    content_hash TEXT NOT NULL,
    created_at   TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS {snapshots} (
    id           BIGSERIAL PRIMARY KEY,
    source_url   TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    created_at   TIMESTAMPTZ NOT NULL,
    stored_at    TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    document     JSONB NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_{snapshots}_source_stored
    ON {snapshots}(source_url, stored_at DESC, id DESC);
"""

_INSERT_SOURCE_SQL = """
INSERT INTO {sources} (url, title, content_hash, created_at)
VALUES ($1, $2, $3, $4)
ON CONFLICT (url) DO NOTHING
RETURNING url
"""

_SELECT_SOURCES_SQL = """
SELECT url, title, content_hash, created_at FROM {sources} ORDER BY url
"""

_SELECT_SOURCE_SQL = """
SELECT url, title, content_hash, created_at FROM {sources} WHERE url = $1
"""

_INSERT_SNAPSHOT_SQL = """
INSERT INTO {snapshots} (source_url, content_hash, created_at, document)
VALUES ($1, $2, $3, $4::jsonb)
RETURNING id
"""

_SNAPSHOT_COLUMNS = "id, stored_at, document"

_SELECT_LATEST_FOR_URL_SQL = f"""
SELECT {_SNAPSHOT_COLUMNS} FROM {{snapshots}}
WHERE source_url = $1
ORDER BY stored_at DESC, id DESC
LIMIT 1
"""

_SELECT_LATEST_SQL = f"""
SELECT DISTINCT ON (source_url) {_SNAPSHOT_COLUMNS} FROM {{snapshots}}
ORDER BY source_url, stored_at DESC, id DESC
"""

_SELECT_ALL_SNAPSHOTS_SQL = f"""
SELECT {_SNAPSHOT_COLUMNS} FROM {{snapshots}}
ORDER BY source_url, stored_at DESC, id DESC
"""

_SELECT_SNAPSHOTS_FOR_URL_SQL = f"""
SELECT {_SNAPSHOT_COLUMNS} FROM {{snapshots}}
WHERE source_url = $1
ORDER BY stored_at DESC, id DESC
"""

_SELECT_SNAPSHOT_SQL = f"""
SELECT {_SNAPSHOT_COLUMNS} FROM {{snapshots}} WHERE id = $1
"""


@asynccontextmanager
async def _storage_errors(operation: str) -> AsyncIterator[None]:
    """Translate driver failures into StorageError."""
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        raise StorageError(f"{operation} failed: {e}") from e


class FeedRepository(FeedStorage):
    """
    Source feeds and snapshot history in PostgreSQL.

    Snapshots are append-only. Each row keeps the full snapshot document as
    JSONB alongside its hash, and every read re-verifies the hash.

    Usage:
        repo = FeedRepository(database)
        await repo.create_tables()
        snapshot_id = await repo.put_snapshot(snapshot)
    """

    def __init__(self, database: Database, config: StorageConfig | None = None) -> None:
        self._db = database
        self._config = config or StorageConfig()

    def _sql(self, template: str) -> str:
        return template.format(
            sources=self._config.source_table,
            snapshots=self._config.snapshot_table,
        )

    def _to_source(self, record) -> SourceFeed:
        try:
            content_hash = parse_hash(record["content_hash"])
        except ValueError as e:
            raise StorageError(f"Corrupt hash for source {record['url']}") from e
        data = {
            "url": record["url"],
            "title": record["title"],
            "metadata": {"created_at": record["created_at"], "content_hash": content_hash},
        }
        return decode_entity(SourceFeed, data, self._config.verify_hash_on_read)

    def _to_record(self, record) -> SnapshotRecord:
        snapshot = decode_entity(
            FeedSnapshot, record["document"], self._config.verify_hash_on_read
        )
        return SnapshotRecord(
            snapshot_id=record["id"],
            stored_at=record["stored_at"],
            snapshot=snapshot,
        )

    async def create_tables(self) -> None:
        """Create tables and indexes in one transaction (idempotent)."""
        async with _storage_errors("create_tables"):
            async with self._db.transaction() as conn:
                await conn.execute(self._sql(_CREATE_TABLES_SQL))
        logger.info("Feed storage tables ensured")

    async def list_source_feeds(self) -> dict[str, SourceFeed]:
        async with _storage_errors("list_source_feeds"):
            records = await self._db.fetch(self._sql(_SELECT_SOURCES_SQL))
        sources = [self._to_source(r) for r in records]
        return {s.url: s for s in sources}

    async def get_source_feed(self, url: str) -> SourceFeed | None:
        async with _storage_errors("get_source_feed"):
            record = await self._db.fetchrow(self._sql(_SELECT_SOURCE_SQL), url)
        return self._to_source(record) if record else None

    async def put_source_feed(self, source: SourceFeed) -> None:
        async with _storage_errors("put_source_feed"):
            inserted = await self._db.fetchval(
                self._sql(_INSERT_SOURCE_SQL),
                source.url,
                source.title,
                source.hash_hex,
                source.created_at,
            )
        if inserted is None:
            raise DuplicateSourceFeedError(source.url)
        logger.info(f"Stored source feed {source.url}")

    async def get_latest_snapshot(self, url: str) -> FeedSnapshot | None:
        async with _storage_errors("get_latest_snapshot"):
            record = await self._db.fetchrow(
                self._sql(_SELECT_LATEST_FOR_URL_SQL), url
            )
        return self._to_record(record).snapshot if record else None

    async def put_snapshot(self, snapshot: FeedSnapshot) -> int:
        async with _storage_errors("put_snapshot"):
            snapshot_id = await self._db.fetchval(
                self._sql(_INSERT_SNAPSHOT_SQL),
                snapshot.source_url,
                format_hash(snapshot.content_hash),
                snapshot.created_at,
                snapshot.model_dump_json(),
            )
        logger.debug(f"Stored snapshot {snapshot_id} for {snapshot.source_url}")
        return snapshot_id

    async def list_snapshots(self) -> dict[str, list[SnapshotRecord]]:
        async with _storage_errors("list_snapshots"):
            records = await self._db.fetch(self._sql(_SELECT_ALL_SNAPSHOTS_SQL))
        grouped: dict[str, list[SnapshotRecord]] = {}
        for record in records:
            snapshot_record = self._to_record(record)
            grouped.setdefault(snapshot_record.source_url, []).append(snapshot_record)
        return grouped

    async def latest_snapshots(self) -> dict[str, SnapshotRecord]:
        async with _storage_errors("latest_snapshots"):
            records = await self._db.fetch(self._sql(_SELECT_LATEST_SQL))
        latest = [self._to_record(r) for r in records]
        return {r.source_url: r for r in latest}

    async def get_snapshot(self, snapshot_id: int) -> SnapshotRecord | None:
        async with _storage_errors("get_snapshot"):
            record = await self._db.fetchrow(
                self._sql(_SELECT_SNAPSHOT_SQL), snapshot_id
            )
        return self._to_record(record) if record else None

    async def list_snapshots_by_url(self, url: str) -> list[SnapshotRecord]:
        async with _storage_errors("list_snapshots_by_url"):
            records = await self._db.fetch(
                self._sql(_SELECT_SNAPSHOTS_FOR_URL_SQL), url
            )
        return [self._to_record(r) for r in records]
