"""
Exception hierarchy for feed-tracker.

Every error the ingestion engine raises derives from FeedTrackerError so
callers can catch the whole family at a service boundary. The scheduler
never lets these escape a cycle; it converts them into CycleError records.
"""


class FeedTrackerError(Exception):
    """Base exception for all feed-tracker errors."""


class ContentHashError(FeedTrackerError):
    """Canonical serialization or hashing of an entity failed."""


class FeedFetchError(FeedTrackerError):
    """Network failure or non-2xx response while retrieving a feed document."""

    def __init__(self, message: str, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FeedParseError(FeedTrackerError):
    """Document was fetched but is not a valid syndication feed."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class MissingGuidError(FeedTrackerError):
    """An item has no guid and the diff policy forbids a synthetic key."""


class StorageError(FeedTrackerError):
    """Read or write against the storage gateway failed."""


class DuplicateSourceFeedError(StorageError):
    """A source feed with the same URL is already stored."""

    def __init__(self, url: str):
        super().__init__(f"Source feed already exists: {url}")
        self.url = url


class DeliveryError(FeedTrackerError):
    """Handing a new item to the item sink failed."""
