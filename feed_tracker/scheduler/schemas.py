"""Outcome records for a polling cycle."""

from dataclasses import dataclass, field
from enum import Enum

from feed_tracker.feeds.schemas import FeedItem


class ErrorKind(str, Enum):
    """Where in the per-source pipeline an error happened."""

    FETCH = "fetch"
    PARSE = "parse"
    DIFF = "diff"
    STORAGE = "storage"
    DELIVERY = "delivery"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class CycleError:
    """One collected failure. source_url is None for cycle-level failures."""

    source_url: str | None
    kind: ErrorKind
    message: str
    exception: BaseException | None = field(default=None, repr=False)


@dataclass
class SourceOutcome:
    """Result of processing one source that did not fail."""

    source_url: str
    new_items: list[FeedItem] = field(default_factory=list)
    snapshot_id: int | None = None

    @property
    def changed(self) -> bool:
        return self.snapshot_id is not None


@dataclass
class CycleReport:
    """
    Summary of one run_cycle() call.

    A caller can tell apart three situations:
        - nothing configured: sources_loaded == 0 and no errors
        - nothing changed: no errors, no stored snapshots
        - partial failure: errors is non-empty
    """

    cycle_id: str
    sources_loaded: int = 0
    errors: list[CycleError] = field(default_factory=list)
    outcomes: dict[str, SourceOutcome] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def nothing_configured(self) -> bool:
        return self.sources_loaded == 0 and not self.errors

    @property
    def new_items(self) -> dict[str, list[FeedItem]]:
        """New items per source URL, only for sources that had any."""
        return {url: o.new_items for url, o in self.outcomes.items() if o.new_items}

    @property
    def snapshots_stored(self) -> dict[str, int]:
        """snapshot_id per source URL for sources that were persisted."""
        return {url: o.snapshot_id for url, o in self.outcomes.items() if o.changed}

    @property
    def unchanged(self) -> list[str]:
        return sorted(url for url, o in self.outcomes.items() if not o.changed)

    @property
    def total_new_items(self) -> int:
        return sum(len(o.new_items) for o in self.outcomes.values())

    @property
    def status(self) -> str:
        if any(e.source_url is None for e in self.errors):
            return "aborted"
        return "partial" if self.errors else "clean"
