from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


REMOVED_TITLE = "[Removed]"


class ArticleSource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None


class Article(BaseModel):
    """Article as returned by NewsAPI; unknown fields are dropped."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source: Optional[ArticleSource] = None
    author: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    url_to_image: Optional[str] = Field(default=None, alias="urlToImage")
    published_at: Optional[str] = Field(default=None, alias="publishedAt")
    content: Optional[str] = None

    def is_complete(self) -> bool:
        """True when the article is fit to show: titled, described, linked and illustrated."""
        if not self.title or self.title == REMOVED_TITLE:
            return False
        return bool(self.description and self.url and self.url_to_image)


class ArticlesPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status: str
    total_results: int = Field(default=0, alias="totalResults")
    articles: List[Article] = []


class NewsSource(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    url: Optional[str] = None
    category: Optional[str] = None
    language: Optional[str] = None
    country: Optional[str] = None


class SourcesPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str
    sources: List[NewsSource] = []


def filter_articles(payload: ArticlesPayload) -> Dict[str, Any]:
    """
    Drop incomplete articles and report the surviving count as the total.

    Returns:
        JSON-ready dict with ``status``, ``totalResults`` and ``articles``
    """
    articles = [a for a in payload.articles if a.is_complete()]
    return {
        "status": payload.status,
        "totalResults": len(articles),
        "articles": [a.model_dump(by_alias=True) for a in articles],
    }
