"""
Feed document parsing.

Turns a fetched RSS/Atom document into a FeedSnapshot. Descriptive fields
are passed through as the document states them; dates stay as the raw
strings the publisher wrote so re-parsing the same bytes always yields the
same hash.
"""

import io
import logging
from typing import Any

import feedparser

from feed_tracker.errors import FeedParseError
from feed_tracker.feeds.schemas import (
    FeedCategory,
    FeedEnclosure,
    FeedImage,
    FeedItem,
    FeedSnapshot,
)

logger = logging.getLogger(__name__)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _categories(tags: list[dict[str, Any]] | None) -> list[FeedCategory]:
    categories = []
    for tag in tags or []:
        term = _text(tag.get("term"))
        if term:
            categories.append(FeedCategory.create(term, _text(tag.get("scheme"))))
    return categories


def _enclosure(entry: dict[str, Any]) -> FeedEnclosure | None:
    for enclosure in entry.get("enclosures", []):
        href = _text(enclosure.get("href"))
        if href:
            return FeedEnclosure(
                url=href,
                mime_type=_text(enclosure.get("type")),
                length=_text(enclosure.get("length")),
            )
    return None


def _image(feed: dict[str, Any]) -> FeedImage | None:
    image = feed.get("image")
    if not image:
        return None
    return FeedImage(
        url=_text(image.get("href") or image.get("url")),
        title=_text(image.get("title")),
        link=_text(image.get("link")),
    )


def _item(entry: dict[str, Any]) -> FeedItem:
    return FeedItem.create(
        title=_text(entry.get("title")),
        link=_text(entry.get("link")),
        description=_text(entry.get("summary") or entry.get("description")),
        pub_date=_text(entry.get("published")),
        comments=_text(entry.get("comments")),
        author=_text(entry.get("author")),
        enclosure=_enclosure(entry),
        guid=_text(entry.get("id")),
        categories=_categories(entry.get("tags")),
    )


def parse_feed_document(source_url: str, content: str | bytes) -> FeedSnapshot:
    """
    Parse an RSS/Atom document into a snapshot tagged with its source URL.

    Args:
        source_url: URL of the SourceFeed the document was fetched from
        content: Raw document body

    Returns:
        A fully hashed FeedSnapshot with items in document order

    Raises:
        FeedParseError: If the document is not a recognizable syndication feed
            or an entity in it cannot be hashed
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    # A stream, so feedparser never treats the body as a path or URL
    parsed = feedparser.parse(io.BytesIO(content))

    if not parsed.get("version") and not parsed.get("entries"):
        reason = parsed.get("bozo_exception") or "no syndication format detected"
        raise FeedParseError(f"Not a feed document: {reason}", url=source_url)

    if parsed.get("bozo"):
        logger.debug(f"Feed {source_url} parsed leniently: {parsed.get('bozo_exception')}")

    feed = parsed.get("feed", {})
    try:
        items = [_item(entry) for entry in parsed.get("entries", [])]
        return FeedSnapshot.create(
            source_url=source_url,
            items=items,
            categories=_categories(feed.get("tags")),
            title=_text(feed.get("title")) or "",
            link=_text(feed.get("link")) or "",
            description=_text(feed.get("subtitle") or feed.get("description")) or "",
            language=_text(feed.get("language")),
            pub_date=_text(feed.get("published")),
            last_build_date=_text(feed.get("updated")),
            image=_image(feed),
        )
    except FeedParseError:
        raise
    except Exception as e:
        raise FeedParseError(f"Failed to build snapshot: {e}", url=source_url) from e
