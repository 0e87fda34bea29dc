"""
Content-addressed entity model for source feeds and their snapshots.

Every entity carries a Metadata block holding its creation time and a
content hash. The hash covers the entity's content fields only: nested
entities contribute their own content (never their metadata), so two
captures of an unchanged feed hash identically no matter when they were
taken.

Entities are frozen. They are only built through their create() factories,
which compute the hash before returning, so an entity without a hash never
exists. "Updating" an entity means creating a new one.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from feed_tracker.feeds.hashing import HASH_BITS, format_hash, hash_payload


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Metadata(BaseModel):
    """Creation timestamp and content hash attached to every entity."""

    model_config = ConfigDict(frozen=True)

    created_at: datetime = Field(..., description="UTC time the entity was built")
    content_hash: int = Field(
        ...,
        ge=0,
        lt=2**HASH_BITS,
        description="64-bit hash of the entity's canonical content",
    )

    @classmethod
    def for_payload(
        cls,
        payload: dict[str, Any],
        created_at: datetime | None = None,
    ) -> "Metadata":
        return cls(
            created_at=created_at or _utc_now(),
            content_hash=hash_payload(payload),
        )


def _canonical_value(value: Any) -> Any:
    if isinstance(value, HashedModel):
        return value.canonical_payload()
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_canonical_value(v) for v in value]
    return value


class HashedModel(BaseModel):
    """Base for entities whose identity is their content hash."""

    model_config = ConfigDict(frozen=True)

    metadata: Metadata

    @classmethod
    def _hash_input(cls, fields: dict[str, Any]) -> dict[str, Any]:
        return {name: _canonical_value(value) for name, value in fields.items()}

    @classmethod
    def _build(cls, fields: dict[str, Any], created_at: datetime | None):
        metadata = Metadata.for_payload(cls._hash_input(fields), created_at)
        return cls(metadata=metadata, **fields)

    def _content_fields(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name != "metadata"
        }

    def canonical_payload(self) -> dict[str, Any]:
        """The hash input: content fields, nested metadata stripped."""
        return self._hash_input(self._content_fields())

    @property
    def content_hash(self) -> int:
        return self.metadata.content_hash

    @property
    def created_at(self) -> datetime:
        return self.metadata.created_at

    @property
    def hash_hex(self) -> str:
        return format_hash(self.metadata.content_hash)

    def has_valid_hash(self) -> bool:
        """Recompute the hash from content and compare with the stored one."""
        return hash_payload(self.canonical_payload()) == self.metadata.content_hash


def _unique_categories(categories: Iterable["FeedCategory"]) -> tuple["FeedCategory", ...]:
    # Categories are a set: order-insensitive, duplicates collapse.
    seen: dict[tuple[str, str], FeedCategory] = {}
    for category in categories:
        key = (category.domain or "", category.name)
        seen.setdefault(key, category)
    return tuple(seen[key] for key in sorted(seen))


class FeedCategory(HashedModel):
    """A category tag on a feed or item, optionally namespaced by domain."""

    name: str
    domain: str | None = None

    @classmethod
    def create(
        cls,
        name: str,
        domain: str | None = None,
        created_at: datetime | None = None,
    ) -> "FeedCategory":
        return cls._build({"name": name, "domain": domain}, created_at)


class FeedEnclosure(BaseModel):
    """Downloadable payload attached to an item (e.g. an audio file)."""

    model_config = ConfigDict(frozen=True)

    url: str
    mime_type: str | None = None
    length: str | None = None


class FeedImage(BaseModel):
    """Channel image, passed through as-is."""

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    title: str | None = None
    link: str | None = None


class FeedItem(HashedModel):
    """One entry of a feed snapshot (an episode, article or post)."""

    title: str | None = None
    link: str | None = None
    description: str | None = None
    pub_date: str | None = None
    comments: str | None = None
    author: str | None = None
    enclosure: FeedEnclosure | None = None
    guid: str | None = None
    categories: tuple[FeedCategory, ...] = ()

    @classmethod
    def create(
        cls,
        *,
        title: str | None = None,
        link: str | None = None,
        description: str | None = None,
        pub_date: str | None = None,
        comments: str | None = None,
        author: str | None = None,
        enclosure: FeedEnclosure | None = None,
        guid: str | None = None,
        categories: Iterable[FeedCategory] = (),
        created_at: datetime | None = None,
    ) -> "FeedItem":
        fields = {
            "title": title,
            "link": link,
            "description": description,
            "pub_date": pub_date,
            "comments": comments,
            "author": author,
            "enclosure": enclosure,
            "guid": guid or None,
            "categories": _unique_categories(categories),
        }
        return cls._build(fields, created_at)

    @property
    def enclosure_url(self) -> str | None:
        return self.enclosure.url if self.enclosure else None


class FeedSnapshot(HashedModel):
    """
    One fetched-and-parsed capture of a source feed.

    The content hash covers every item, so any item-level change produces a
    new hash. The capture time lives in metadata and is not hashed.
    """

    source_url: str
    title: str = ""
    link: str = ""
    description: str = ""
    language: str | None = None
    pub_date: str | None = None
    last_build_date: str | None = None
    image: FeedImage | None = None
    categories: tuple[FeedCategory, ...] = ()
    items: tuple[FeedItem, ...] = ()

    @classmethod
    def create(
        cls,
        *,
        source_url: str,
        items: Iterable[FeedItem] = (),
        categories: Iterable[FeedCategory] = (),
        title: str = "",
        link: str = "",
        description: str = "",
        language: str | None = None,
        pub_date: str | None = None,
        last_build_date: str | None = None,
        image: FeedImage | None = None,
        created_at: datetime | None = None,
    ) -> "FeedSnapshot":
        fields = {
            "source_url": source_url,
            "title": title,
            "link": link,
            "description": description,
            "language": language,
            "pub_date": pub_date,
            "last_build_date": last_build_date,
            "image": image,
            "categories": _unique_categories(categories),
            "items": tuple(items),
        }
        return cls._build(fields, created_at)


class SourceFeed(HashedModel):
    """A configured remote feed URL. The URL is the system-wide natural key."""

    url: str
    title: str = ""

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Source feed URL must not be empty")
        return v

    @classmethod
    def create(
        cls,
        url: str,
        title: str = "",
        created_at: datetime | None = None,
    ) -> "SourceFeed":
        return cls._build({"url": url.strip(), "title": title}, created_at)
