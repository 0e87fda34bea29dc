"""
Item sinks: where the scheduler hands off newly discovered items.

The scheduler calls deliver(source_url, item) once per new item. A sink
that raises DeliveryError makes the scheduler skip persisting that
snapshot, so the same items are offered again on the next cycle. Sinks
must therefore tolerate seeing an item more than once.
"""

import re
from abc import ABC, abstractmethod
from pathlib import Path
from types import TracebackType
from urllib.parse import urlparse

import httpx
import structlog

from feed_tracker.config.settings import get_settings
from feed_tracker.errors import DeliveryError
from feed_tracker.feeds.diff import item_key
from feed_tracker.feeds.hashing import format_hash, hash_payload
from feed_tracker.feeds.schemas import FeedItem

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ItemSink(ABC):
    """Receives new items discovered by a polling cycle."""

    async def start(self) -> None:
        """Acquire resources. Called once before the first delivery."""

    async def close(self) -> None:
        """Release resources."""

    async def __aenter__(self) -> "ItemSink":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @abstractmethod
    async def deliver(self, source_url: str, item: FeedItem) -> None:
        """
        Hand off one new item.

        Raises:
            DeliveryError: If the item could not be handed off
        """


class LoggingItemSink(ItemSink):
    """Logs each new item. The default sink."""

    async def deliver(self, source_url: str, item: FeedItem) -> None:
        logger.info(
            "New feed item",
            source_url=source_url,
            title=item.title,
            guid=item.guid,
            enclosure_url=item.enclosure_url,
        )


def enclosure_file_name(source_url: str, item: FeedItem) -> str:
    """
    Stable file name for an item's enclosure.

    Combines a sanitized title with a short hash of the source URL and the
    item's identifier, keeping the extension of the enclosure URL.
    Re-delivering the same item always maps to the same file, and equal
    guids from different feeds do not collide.
    """
    key_hash = format_hash(hash_payload([source_url, item_key(item)]))[:12]
    stem = _UNSAFE_CHARS.sub("_", item.title or "").strip("._")[:80] or "item"
    suffix = Path(urlparse(item.enclosure_url or "").path).suffix
    if not re.fullmatch(r"\.[A-Za-z0-9]{1,8}", suffix):
        suffix = ""
    return f"{stem}-{key_hash}{suffix}"


class EnclosureDownloader(ItemSink):
    """
    Downloads item enclosures (e.g. podcast audio) into a directory.

    Items without an enclosure are skipped with a log line. Files that
    already exist are left alone, so redelivered items are not downloaded
    twice. Bodies are streamed to a .part file and renamed on completion.

    Usage:
        async with EnclosureDownloader(Path("download")) as sink:
            await sink.deliver(source_url, item)
    """

    def __init__(
        self,
        download_dir: Path | None = None,
        timeout: float | None = None,
        chunk_size: int = 64 * 1024,
    ):
        settings = get_settings()
        self.download_dir = Path(download_dir or settings.download_dir)
        self.timeout = timeout or settings.fetch_timeout_seconds
        self.user_agent = settings.user_agent
        self.chunk_size = chunk_size
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        self.download_dir.mkdir(parents=True, exist_ok=True)
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def deliver(self, source_url: str, item: FeedItem) -> None:
        if not item.enclosure_url:
            logger.info(
                "Item has no enclosure, skipping download",
                source_url=source_url,
                title=item.title,
            )
            return
        if self._client is None:
            raise RuntimeError("EnclosureDownloader must be started before delivery")

        target = self.download_dir / enclosure_file_name(source_url, item)
        if target.exists():
            logger.debug("Enclosure already downloaded", path=str(target))
            return

        partial = target.with_name(target.name + ".part")
        completed = False
        try:
            async with self._client.stream("GET", item.enclosure_url) as response:
                response.raise_for_status()
                with partial.open("wb") as fh:
                    async for chunk in response.aiter_bytes(self.chunk_size):
                        fh.write(chunk)
            partial.replace(target)
            completed = True
        except (httpx.HTTPError, OSError) as e:
            raise DeliveryError(
                f"Failed to download {item.enclosure_url}: {e}"
            ) from e
        finally:
            # Also runs when the cycle deadline cancels the download
            if not completed:
                partial.unlink(missing_ok=True)

        logger.info(
            "Enclosure downloaded",
            source_url=source_url,
            path=str(target),
        )


def build_item_sink(kind: str | None = None) -> ItemSink:
    """Construct the sink named by settings.item_sink (or `kind`)."""
    kind = kind or get_settings().item_sink
    if kind == "log":
        return LoggingItemSink()
    if kind == "download":
        return EnclosureDownloader()
    if kind == "redis":
        from feed_tracker.delivery.queue import RedisItemQueue

        return RedisItemQueue()
    raise ValueError(f"Unknown item sink: {kind}")
