"""Feed retrieval over HTTP."""

from feed_tracker.fetching.fetcher import FeedFetcher
from feed_tracker.fetching.http_client import HTTPClient, HTTPClientError, RateLimitError, RetryConfig

__all__ = ["FeedFetcher", "HTTPClient", "HTTPClientError", "RateLimitError", "RetryConfig"]
