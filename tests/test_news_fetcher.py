import asyncio
import time

import httpx
import pytest

from app.news.errors import (
    ServiceMisconfigured,
    UpstreamAuthFailed,
    UpstreamRateLimited,
    UpstreamTimeout,
    UpstreamUnexpected,
)
from app.news.fetcher import USER_AGENT, NewsAPIFetcher, create_newsapi_fetcher

from conftest import SAMPLE_SOURCE, articles_body


def _fetcher(handler) -> NewsAPIFetcher:
    return NewsAPIFetcher(
        api_key="test-key",
        base_url="https://newsapi.test/v2/",
        timeout_seconds=2.0,
        transport=httpx.MockTransport(handler),
    )


class TestNewsAPIFetcher:
    """Test the NewsAPI client against a mock transport."""

    @pytest.mark.asyncio
    async def test_sends_key_in_header_and_drops_empty_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=articles_body())

        await _fetcher(handler).fetch("top-headlines", {"category": "general", "page": 1, "q": None})

        request = seen[0]
        assert request.url.path == "/v2/top-headlines"
        assert request.headers["X-Api-Key"] == "test-key"
        assert request.headers["User-Agent"] == USER_AGENT
        assert dict(request.url.params) == {"category": "general", "page": "1"}

    @pytest.mark.asyncio
    async def test_fetch_articles_filters_incomplete(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, json=articles_body("berlin")))

        data = await fetcher.fetch_articles("everything", {"q": "berlin"})

        assert data["status"] == "ok"
        assert data["totalResults"] == 1
        assert [a["title"] for a in data["articles"]] == ["berlin one"]
        assert data["articles"][0]["urlToImage"] == "https://news.example.com/image.jpg"

    @pytest.mark.asyncio
    async def test_fetch_sources(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, json={"status": "ok", "sources": [SAMPLE_SOURCE]}))

        data = await fetcher.fetch_sources({"language": "en"})

        assert data["status"] == "ok"
        assert data["sources"][0]["id"] == "bbc-news"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamTimeout):
            await _fetcher(handler).fetch("everything", {"q": "x"})

    @pytest.mark.asyncio
    async def test_slow_trickling_body_hits_total_timeout(self):
        class TrickleStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                for _ in range(40):
                    await asyncio.sleep(0.05)
                    yield b" "

        fetcher = NewsAPIFetcher(
            api_key="test-key",
            base_url="https://newsapi.test/v2",
            timeout_seconds=0.3,
            transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=TrickleStream())),
        )

        started = time.perf_counter()
        with pytest.raises(UpstreamTimeout):
            await fetcher.fetch("everything", {"q": "x"})

        # Each chunk arrives well inside the per-read limit; only the total bound stops it
        assert time.perf_counter() - started < 1.5

    @pytest.mark.asyncio
    async def test_connection_error_is_unexpected(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(UpstreamUnexpected):
            await _fetcher(handler).fetch("everything", {"q": "x"})

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        fetcher = _fetcher(lambda request: httpx.Response(429, json={"status": "error", "code": "rateLimited"}))

        with pytest.raises(UpstreamRateLimited):
            await fetcher.fetch("top-headlines", {})

    @pytest.mark.asyncio
    async def test_auth_failure_keeps_detail_out_of_payload(self):
        body = {"status": "error", "code": "apiKeyInvalid", "message": "Your API key is invalid"}
        fetcher = _fetcher(lambda request: httpx.Response(401, json=body))

        with pytest.raises(UpstreamAuthFailed) as excinfo:
            await fetcher.fetch("top-headlines", {})

        assert "apiKeyInvalid" in excinfo.value.detail
        assert "apiKeyInvalid" not in str(excinfo.value.to_payload())

    @pytest.mark.asyncio
    async def test_server_error(self):
        fetcher = _fetcher(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(UpstreamUnexpected):
            await fetcher.fetch("top-headlines", {})

    @pytest.mark.asyncio
    async def test_error_status_in_body(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, json={"status": "error", "message": "parameterInvalid"}))

        with pytest.raises(UpstreamUnexpected) as excinfo:
            await fetcher.fetch("everything", {})

        assert excinfo.value.detail == "parameterInvalid"

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        fetcher = _fetcher(lambda request: httpx.Response(200, content=b"<html>not json</html>"))

        with pytest.raises(UpstreamUnexpected):
            await fetcher.fetch("everything", {})


class TestCreateFetcher:
    def test_missing_key(self):
        with pytest.raises(ServiceMisconfigured):
            create_newsapi_fetcher(None, "https://newsapi.org/v2", 8.0)

    def test_builds_with_profile_timeout(self):
        fetcher = create_newsapi_fetcher("abc", "https://newsapi.org/v2", 10.0)
        assert fetcher.timeout_seconds == 10.0
        assert fetcher.base_url == "https://newsapi.org/v2"
