"""Tests for the retrying HTTP client."""

import httpx
import pytest
import respx

from feed_tracker.fetching.http_client import (
    HTTPClient,
    HTTPClientError,
    RateLimitError,
    RetryConfig,
)

URL = "https://example.test/feed.xml"


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Retry config with no backoff delay."""
    return RetryConfig(max_retries=2, base_delay=0.0)


class TestRetryConfig:
    def test_backoff_grows_exponentially(self):
        config = RetryConfig(base_delay=1.0, jitter_factor=0.0)
        assert [config.calculate_backoff(a) for a in range(3)] == [1.0, 2.0, 4.0]

    def test_backoff_capped(self):
        config = RetryConfig(base_delay=1.0, max_backoff_seconds=5.0, jitter_factor=0.0)
        assert config.calculate_backoff(10) == 5.0

    def test_jitter_bounded(self):
        config = RetryConfig(base_delay=1.0, jitter_factor=0.1)
        assert 1.0 <= config.calculate_backoff(0) <= 1.1

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert RetryConfig().is_retryable_status(status)

    @pytest.mark.parametrize("status", [400, 401, 404, 410])
    def test_non_retryable_statuses(self, status):
        assert not RetryConfig().is_retryable_status(status)


class TestHTTPClient:
    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        with pytest.raises(RuntimeError):
            await HTTPClient().get(URL)

    @pytest.mark.asyncio
    @respx.mock
    async def test_success(self, fast_retry):
        respx.get(URL).mock(return_value=httpx.Response(200, text="<rss/>"))

        async with HTTPClient(fast_retry) as client:
            response = await client.get(URL)

        assert response.text == "<rss/>"

    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_user_agent(self, fast_retry):
        route = respx.get(URL).mock(return_value=httpx.Response(200))

        async with HTTPClient(fast_retry, user_agent="feed-tracker-test") as client:
            await client.get(URL)

        assert route.calls.last.request.headers["User-Agent"] == "feed-tracker-test"

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_server_errors(self, fast_retry):
        route = respx.get(URL).mock(
            side_effect=[httpx.Response(503), httpx.Response(502), httpx.Response(200)]
        )

        async with HTTPClient(fast_retry) as client:
            response = await client.get(URL)

        assert response.status_code == 200
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_exhausted(self, fast_retry):
        route = respx.get(URL).mock(return_value=httpx.Response(500, text="boom"))

        async with HTTPClient(fast_retry) as client:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get(URL)

        assert exc_info.value.status_code == 500
        assert exc_info.value.response_body == "boom"
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_exhausted(self, fast_retry):
        respx.get(URL).mock(return_value=httpx.Response(429))

        async with HTTPClient(fast_retry) as client:
            with pytest.raises(RateLimitError):
                await client.get(URL)

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_not_retried(self, fast_retry):
        route = respx.get(URL).mock(return_value=httpx.Response(404))

        async with HTTPClient(fast_retry) as client:
            with pytest.raises(HTTPClientError) as exc_info:
                await client.get(URL)

        assert exc_info.value.status_code == 404
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_connect_error_retried(self, fast_retry):
        route = respx.get(URL).mock(
            side_effect=[httpx.ConnectError("refused"), httpx.Response(200)]
        )

        async with HTTPClient(fast_retry) as client:
            response = await client.get(URL)

        assert response.status_code == 200
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_exhausted(self, fast_retry):
        respx.get(URL).mock(side_effect=httpx.ReadTimeout("slow"))

        async with HTTPClient(fast_retry) as client:
            with pytest.raises(HTTPClientError, match="after 3 attempts"):
                await client.get(URL)
