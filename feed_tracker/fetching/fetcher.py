"""Fetch a source feed over HTTP and parse it into a snapshot."""

import logging
import time

import httpx

from feed_tracker.config.settings import get_settings
from feed_tracker.errors import FeedFetchError
from feed_tracker.feeds.parser import parse_feed_document
from feed_tracker.feeds.schemas import FeedSnapshot, SourceFeed
from feed_tracker.fetching.http_client import HTTPClient, HTTPClientError, RetryConfig

logger = logging.getLogger(__name__)


class FeedFetcher:
    """
    Retrieves feed documents and turns them into FeedSnapshots.

    Owns an HTTPClient for its lifetime; use as an async context manager.

    Usage:
        async with FeedFetcher() as fetcher:
            snapshot = await fetcher.fetch(source)
    """

    def __init__(self, http_client: HTTPClient | None = None):
        if http_client is None:
            settings = get_settings()
            http_client = HTTPClient(
                retry_config=RetryConfig(
                    max_retries=settings.max_http_retries,
                    max_backoff_seconds=settings.max_backoff_seconds,
                ),
                timeout=settings.fetch_timeout_seconds,
                user_agent=settings.user_agent,
            )
        self._http = http_client

    async def __aenter__(self) -> "FeedFetcher":
        await self._http.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._http.__aexit__(exc_type, exc_val, exc_tb)

    async def fetch(self, source: SourceFeed) -> FeedSnapshot:
        """
        Fetch and parse one source feed.

        Raises:
            FeedFetchError: Network failure or error status after retries
            FeedParseError: Body is not a syndication document
        """
        start = time.monotonic()
        try:
            response = await self._http.get(source.url)
        except HTTPClientError as e:
            raise FeedFetchError(str(e), url=source.url, status_code=e.status_code) from e
        except httpx.HTTPError as e:
            raise FeedFetchError(f"Request failed: {e}", url=source.url) from e

        logger.debug(
            f"Fetched {source.url} ({len(response.content)} bytes) "
            f"in {time.monotonic() - start:.2f}s"
        )
        return parse_feed_document(source.url, response.content)
