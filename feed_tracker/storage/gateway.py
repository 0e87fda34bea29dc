"""
Storage capability interfaces.

The scheduler only needs to list sources, read the latest snapshot of a
source and append new records. Query consumers (API, CLI) need read access
to the snapshot history. Both are expressed as ABCs so that any backend
(PostgreSQL, in-memory) can serve either side.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from pydantic import ValidationError

from feed_tracker.errors import StorageError
from feed_tracker.feeds.schemas import FeedSnapshot, HashedModel, SourceFeed

EntityT = TypeVar("EntityT", bound=HashedModel)


@dataclass(frozen=True)
class SnapshotRecord:
    """A stored snapshot together with its storage identity."""

    snapshot_id: int
    stored_at: datetime
    snapshot: FeedSnapshot

    @property
    def source_url(self) -> str:
        return self.snapshot.source_url


class SchedulerStorage(ABC):
    """Operations the polling scheduler depends on."""

    @abstractmethod
    async def list_source_feeds(self) -> dict[str, SourceFeed]:
        """All configured source feeds keyed by URL."""

    @abstractmethod
    async def get_latest_snapshot(self, url: str) -> FeedSnapshot | None:
        """Most recently stored snapshot of a source, or None if never stored."""

    @abstractmethod
    async def put_source_feed(self, source: SourceFeed) -> None:
        """
        Store a new source feed.

        Raises:
            DuplicateSourceFeedError: If a source with the same URL exists
        """

    @abstractmethod
    async def put_snapshot(self, snapshot: FeedSnapshot) -> int:
        """Append a snapshot to the history. Returns its snapshot_id."""


class FeedQueryStorage(ABC):
    """Read-side operations for the API and CLI."""

    @abstractmethod
    async def get_source_feed(self, url: str) -> SourceFeed | None: ...

    @abstractmethod
    async def list_snapshots(self) -> dict[str, list[SnapshotRecord]]:
        """Full history grouped by source URL, newest first within a group."""

    @abstractmethod
    async def latest_snapshots(self) -> dict[str, SnapshotRecord]: ...

    @abstractmethod
    async def get_snapshot(self, snapshot_id: int) -> SnapshotRecord | None: ...

    @abstractmethod
    async def list_snapshots_by_url(self, url: str) -> list[SnapshotRecord]:
        """History of one source, newest first."""


class FeedStorage(SchedulerStorage, FeedQueryStorage):
    """A backend serving both the scheduler and query consumers."""

    async def create_tables(self) -> None:
        """Prepare backing storage. No-op unless the backend needs a schema."""


def decode_entity(
    model: type[EntityT],
    data: str | bytes | dict[str, Any],
    verify: bool = True,
) -> EntityT:
    """
    Rebuild a stored entity and check it still matches its stored hash.

    Raises:
        StorageError: If the data is not a valid entity or its recomputed
            hash differs from the stored one
    """
    try:
        if isinstance(data, dict):
            entity = model.model_validate(data)
        else:
            entity = model.model_validate_json(data)
    except ValidationError as e:
        raise StorageError(f"Corrupt {model.__name__} record: {e}") from e

    if verify and not entity.has_valid_hash():
        raise StorageError(
            f"{model.__name__} hash mismatch: stored {entity.hash_hex}"
        )
    return entity
