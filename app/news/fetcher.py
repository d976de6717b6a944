import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.news.errors import (
    ServiceMisconfigured,
    UpstreamAuthFailed,
    UpstreamRateLimited,
    UpstreamTimeout,
    UpstreamUnexpected,
)
from app.news.models import ArticlesPayload, SourcesPayload, filter_articles
from app.observability.logger import log_event, log_warning, timing

logger = logging.getLogger(__name__)

USER_AGENT = "Advisory-News-Proxy/1.0"


class NewsAPIFetcher:
    """NewsAPI.org client with a bounded timeout and classified failures."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://newsapi.org/v2",
        timeout_seconds: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def fetch(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call a NewsAPI endpoint and return the decoded JSON body.

        Args:
            endpoint: Path under the base URL, e.g. ``top-headlines``
            params: Query parameters; ``None`` values are left out

        Returns:
            Decoded body whose ``status`` is ``ok``

        Raises:
            UpstreamTimeout: the whole call, body included, exceeded ``timeout_seconds``
            UpstreamRateLimited: NewsAPI answered 429
            UpstreamAuthFailed: NewsAPI answered 401
            UpstreamUnexpected: any other failure
        """
        url = f"{self.base_url}/{endpoint}"
        headers = {
            "X-Api-Key": self.api_key,
            "User-Agent": USER_AGENT,
        }
        query = {k: v for k, v in params.items() if v is not None}

        try:
            with timing(f"newsapi_{endpoint}") as timer:
                async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                    # httpx limits each phase; wait_for bounds the whole call
                    response = await asyncio.wait_for(
                        client.get(url, headers=headers, params=query),
                        timeout=self.timeout_seconds,
                    )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            log_warning("NewsAPI timeout", {"endpoint": endpoint, "timeout_seconds": self.timeout_seconds})
            raise UpstreamTimeout(detail=f"timeout after {self.timeout_seconds}s")
        except httpx.HTTPError as exc:
            log_warning("NewsAPI transport error", {"endpoint": endpoint, "error": str(exc)})
            raise UpstreamUnexpected(detail=str(exc))

        if response.status_code == 429:
            log_warning("NewsAPI rate limit exceeded", {"endpoint": endpoint})
            raise UpstreamRateLimited(detail=response.text)
        if response.status_code == 401:
            # Credential problems stay in the server log
            logger.error(f"NewsAPI authentication failed - check API key: {response.text}")
            raise UpstreamAuthFailed(detail=response.text)
        if response.status_code != 200:
            log_warning("NewsAPI error", {"endpoint": endpoint, "status_code": response.status_code})
            raise UpstreamUnexpected(detail=f"{response.status_code} {response.text}")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamUnexpected(detail=f"invalid JSON from NewsAPI: {exc}")

        if not isinstance(data, dict) or data.get("status") != "ok":
            message = data.get("message") if isinstance(data, dict) else None
            raise UpstreamUnexpected(detail=message or "NewsAPI returned error")

        log_event("upstream_fetched", duration_ms=timer.get_duration_ms(), endpoint=endpoint)
        return data

    async def fetch_articles(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Fetch an article listing and keep only complete articles."""
        data = await self.fetch(endpoint, params)
        try:
            payload = ArticlesPayload.model_validate(data)
        except PydanticValidationError as exc:
            raise UpstreamUnexpected(detail=f"malformed articles payload: {exc.error_count()} errors")
        return filter_articles(payload)

    async def fetch_sources(self, params: Dict[str, Any]) -> Dict[str, Any]:
        data = await self.fetch("sources", params)
        try:
            payload = SourcesPayload.model_validate(data)
        except PydanticValidationError as exc:
            raise UpstreamUnexpected(detail=f"malformed sources payload: {exc.error_count()} errors")
        return payload.model_dump(exclude_none=True)


def create_newsapi_fetcher(api_key: Optional[str], base_url: str, timeout_seconds: float) -> NewsAPIFetcher:
    """Factory for a fetcher; a missing key is a configuration error."""
    if not api_key:
        raise ServiceMisconfigured()
    return NewsAPIFetcher(api_key=api_key, base_url=base_url, timeout_seconds=timeout_seconds)
