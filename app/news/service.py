"""
News proxy: validation, read-through caching and response envelopes.

One ``NewsProxyService`` is built per application by ``create_news_service``
and owns the cache store and the request governor for the lifetime of the
process (or the invocation, in the serverless profile).
"""
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from app.core.config import AppConfig, DeploymentProfile
from app.news.cache import CacheStore
from app.news.errors import (
    GovernorDenied,
    ServiceMisconfigured,
    UpstreamTimeout,
    UpstreamUnexpected,
    ValidationError,
)
from app.news.fetcher import NewsAPIFetcher, create_newsapi_fetcher
from app.news.governor import RequestGovernor
from app.news.keys import build_key, canonical_int, ttl_for
from app.observability.logger import log_error, log_event, utc_timestamp

logger = logging.getLogger(__name__)

VALID_CATEGORIES = ("business", "entertainment", "general", "health", "science", "sports", "technology")
VALID_SORT_BY = ("relevancy", "popularity", "publishedAt")
MIN_QUERY_CHARS = 2
MAX_QUERY_CHARS = 100
DEFAULT_PAGE_SIZE = 20


class NewsProxyService:
    def __init__(
        self,
        profile: DeploymentProfile,
        store: CacheStore,
        governor: RequestGovernor,
        fetcher: Optional[NewsAPIFetcher] = None,
        expose_errors: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.profile = profile
        self.governor = governor
        self.fetcher = fetcher
        self.expose_errors = expose_errors
        self._store = store
        self._clock = clock
        self._started_at = clock()

    @property
    def store(self) -> CacheStore:
        return self._store

    # -- governor -------------------------------------------------------

    def admit(self, client_id: str) -> None:
        """Count a request against ``client_id``; raises GovernorDenied when over the limit."""
        admission = self.governor.admit(client_id)
        if not admission.allowed:
            log_event("rate_limited", client=client_id, retry_after_seconds=admission.retry_after_seconds)
            raise GovernorDenied(admission.retry_after_seconds)

    # -- upstream routes ------------------------------------------------

    async def headlines(
        self,
        category: Optional[str] = "general",
        country: Optional[str] = "us",
        page: Any = None,
        page_size: Any = None,
    ) -> Dict[str, Any]:
        self._before_request()
        fetcher = self._require_fetcher()

        if category is None:
            category = "general"
        country = country or "us"
        if category not in VALID_CATEGORIES:
            raise ValidationError("Invalid category", validCategories=list(VALID_CATEGORIES))

        limited_page = self._clamp_page(page, self.profile.max_headline_page)
        limited_size = self._clamp_page_size(page_size)

        key = build_key("headlines", [
            ("category", category),
            ("country", country),
            ("page", limited_page),
            ("pageSize", limited_size),
        ])
        params = {"category": category, "country": country, "page": limited_page, "pageSize": limited_size}
        return await self._read_through(
            "headlines",
            key,
            lambda: fetcher.fetch_articles("top-headlines", params),
            failure_message="Failed to fetch news headlines",
        )

    async def search(
        self,
        q: Optional[str],
        page: Any = None,
        page_size: Any = None,
        sort_by: Optional[str] = "publishedAt",
        language: Optional[str] = "en",
    ) -> Dict[str, Any]:
        self._before_request()
        fetcher = self._require_fetcher()

        if not q or len(q.strip()) < MIN_QUERY_CHARS:
            raise ValidationError(f"Search query must be at least {MIN_QUERY_CHARS} characters long")

        sort_by = sort_by or "publishedAt"
        language = language or "en"
        if sort_by not in VALID_SORT_BY:
            raise ValidationError("Invalid sortBy parameter", validOptions=list(VALID_SORT_BY))

        limited_page = self._clamp_page(page, self.profile.max_search_page)
        limited_size = self._clamp_page_size(page_size)
        query = q.strip()[:MAX_QUERY_CHARS]

        key = build_key("search", [
            ("q", query),
            ("page", limited_page),
            ("pageSize", limited_size),
            ("sortBy", sort_by),
            ("language", language),
        ])
        params = {"q": query, "page": limited_page, "pageSize": limited_size, "sortBy": sort_by, "language": language}
        return await self._read_through(
            "search",
            key,
            lambda: fetcher.fetch_articles("everything", params),
            failure_message="Failed to search news",
            timeout_message="Search timeout - please try again",
        )

    async def sources(
        self,
        category: Optional[str] = None,
        language: Optional[str] = "en",
        country: Optional[str] = "us",
    ) -> Dict[str, Any]:
        self._before_request()
        fetcher = self._require_fetcher()

        category = category or None
        language = language or "en"
        country = country or "us"

        key = build_key("sources", [("category", category), ("language", language), ("country", country)])
        params = {"category": category, "language": language, "country": country}
        return await self._read_through(
            "sources",
            key,
            lambda: fetcher.fetch_sources(params),
            failure_message="Failed to fetch news sources",
        )

    # -- maintenance ----------------------------------------------------

    def sweep(self) -> int:
        """Drop expired cache entries and lapsed rate-limit windows."""
        removed = self._store.sweep()
        self.governor.sweep()
        if removed:
            log_event("cache_swept", removed=removed)
        return removed

    def clear_cache(self) -> int:
        try:
            cleared = self._store.clear()
        except Exception as exc:
            log_error(exc, {"operation": "news_clear_cache"})
            self._reset_store()
            cleared = 0
        log_event("cache_cleared", cleared=cleared)
        return cleared

    def health(self) -> Dict[str, Any]:
        try:
            self.sweep()
            cache_stats = self._store.stats()
        except Exception as exc:
            log_error(exc, {"operation": "news_health"})
            self._reset_store()
            cache_stats = {"size": 0, "capacity": self.profile.cache_capacity, "hitCount": 0, "missCount": 0}

        uptime = int(self._clock() - self._started_at)
        return {
            "success": True,
            "service": "News Proxy Service",
            "status": "Active",
            "timestamp": utc_timestamp(),
            "profile": self.profile.name,
            "cache": {
                **cache_stats,
                "type": "in-memory",
                "sweep": "per-request" if self.profile.sweep_on_request else f"every {self.profile.sweep_interval_seconds}s",
            },
            "rateLimit": self.governor.describe(),
            "newsApiStatus": "configured" if self.fetcher is not None else "missing",
            "uptime": f"{uptime // 60}m {uptime % 60}s",
        }

    # -- internals ------------------------------------------------------

    async def _read_through(
        self,
        namespace: str,
        key: str,
        loader: Callable[[], Awaitable[Dict[str, Any]]],
        failure_message: str,
        timeout_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        cached = self._lookup(key)
        if cached is not None:
            log_event("cache_hit", namespace=namespace, cache_key=key)
            return {
                "success": True,
                "data": cached,
                "cached": True,
                "cacheTime": utc_timestamp(),
            }

        log_event("cache_miss", namespace=namespace, cache_key=key)
        try:
            data = await loader()
        except UpstreamTimeout as exc:
            if timeout_message:
                exc.message = timeout_message
            raise
        except UpstreamUnexpected as exc:
            logger.error(f"{failure_message}: {exc.detail}")
            exc.message = failure_message
            exc.extra.setdefault("error", exc.detail if self.expose_errors else "Service temporarily unavailable")
            exc.extra.setdefault("timestamp", utc_timestamp())
            raise

        try:
            self._store.set(key, data, ttl_for(namespace))
        except Exception as exc:
            # The fetched data is still served; only caching is lost
            log_error(exc, {"operation": "news_cache_set"})
            self._reset_store()
        return {
            "success": True,
            "data": data,
            "cached": False,
            "fetchTime": utc_timestamp(),
            "source": "NewsAPI",
        }

    def _lookup(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            return self._store.get(key)
        except Exception as exc:
            log_error(exc, {"operation": "news_cache_get"})
            self._reset_store()
            return None

    def _reset_store(self) -> None:
        logger.warning("Rebuilding news cache store after an internal error")
        self._store = CacheStore(capacity=self.profile.cache_capacity, clock=self._clock)

    def _before_request(self) -> None:
        if self.profile.sweep_on_request:
            self.sweep()

    def _require_fetcher(self) -> NewsAPIFetcher:
        if self.fetcher is None:
            logger.error("NEWS_API_KEY environment variable not set")
            raise ServiceMisconfigured()
        return self.fetcher

    def _clamp_page(self, raw: Any, max_page: int) -> int:
        page = self._parse_int("page", raw, 1)
        return max(1, min(page, max_page))

    def _clamp_page_size(self, raw: Any) -> int:
        size = self._parse_int("pageSize", raw, DEFAULT_PAGE_SIZE)
        return max(1, min(size, self.profile.max_page_size))

    @staticmethod
    def _parse_int(name: str, raw: Any, default: int) -> int:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return default
        try:
            return canonical_int(raw)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")


def create_news_service(
    config: AppConfig,
    fetcher: Optional[NewsAPIFetcher] = None,
    clock: Callable[[], float] = time.time,
) -> NewsProxyService:
    """Build the news proxy for ``config``'s deployment profile."""
    profile = config.profile
    if fetcher is None and config.news_api_key:
        fetcher = create_newsapi_fetcher(config.news_api_key, config.news_api_base, profile.timeout_seconds)

    store = CacheStore(capacity=profile.cache_capacity, clock=clock)
    governor = RequestGovernor(
        max_requests=profile.rate_limit_max,
        window_seconds=config.rate_limit_window_seconds,
        enabled=config.rate_limit_enabled,
        clock=clock,
    )
    return NewsProxyService(
        profile=profile,
        store=store,
        governor=governor,
        fetcher=fetcher,
        expose_errors=config.is_development,
        clock=clock,
    )
