import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import AppConfig
from app.main import create_app
from app.news.fetcher import NewsAPIFetcher


class FakeClock:
    """Manually advanced clock shared by the cache store and the governor."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNewsAPI:
    """Stand-in for NewsAPI behind an ``httpx.MockTransport``."""

    def __init__(self):
        self.requests = []
        self.fail_with = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return self.fail_with(request)
        if request.url.path.endswith("/sources"):
            return httpx.Response(200, json={"status": "ok", "sources": [SAMPLE_SOURCE]})
        return httpx.Response(200, json=articles_body(request.url.params.get("q") or request.url.params.get("category")))

    @property
    def calls(self) -> int:
        return len(self.requests)


SAMPLE_SOURCE = {
    "id": "bbc-news",
    "name": "BBC News",
    "description": "Trusted news",
    "url": "https://www.bbc.co.uk/news",
    "category": "general",
    "language": "en",
    "country": "gb",
}


def complete_article(title: str) -> dict:
    return {
        "source": {"id": None, "name": "Example Wire"},
        "author": "Reporter",
        "title": title,
        "description": f"About {title}",
        "url": f"https://news.example.com/{title.replace(' ', '-')}",
        "urlToImage": "https://news.example.com/image.jpg",
        "publishedAt": "2026-10-01T08:00:00Z",
        "content": "Body",
    }


def articles_body(topic: str = None) -> dict:
    removed = complete_article("gone")
    removed["title"] = "[Removed]"
    no_image = complete_article("no image")
    no_image["urlToImage"] = None
    return {
        "status": "ok",
        "totalResults": 3,
        "articles": [complete_article(f"{topic or 'story'} one"), removed, no_image],
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def newsapi():
    return FakeNewsAPI()


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        news_api_key="test-key",
        data_dir=str(tmp_path / "data"),
        upload_dir=str(tmp_path / "uploads"),
        admin_email="admin@example.com",
    )


@pytest.fixture
def make_client(config, clock, newsapi):
    """Build a TestClient; pass config updates (e.g. ``profile=...``) as keywords."""

    def _make(with_fetcher: bool = True, **overrides) -> TestClient:
        app_config = config.model_copy(update=overrides) if overrides else config
        fetcher = None
        if with_fetcher:
            fetcher = NewsAPIFetcher(
                api_key="test-key",
                base_url="https://newsapi.test/v2",
                transport=httpx.MockTransport(newsapi.handler),
            )
        app = create_app(app_config, news_fetcher=fetcher, clock=clock)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    return make_client()
