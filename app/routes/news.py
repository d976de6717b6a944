from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.news.service import NewsProxyService
from app.observability.logger import utc_timestamp
from app.routes.deps import client_ip


def get_news_service(request: Request) -> NewsProxyService:
    return request.app.state.news_service


def enforce_rate_limit(request: Request, service: NewsProxyService = Depends(get_news_service)) -> None:
    """Every news route counts against the caller's address, cached or not."""
    service.admit(client_ip(request))


router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@router.get("/headlines")
async def get_headlines(
    category: Optional[str] = Query("general"),
    country: Optional[str] = Query("us"),
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    service: NewsProxyService = Depends(get_news_service),
):
    """Top headlines for a category and country."""
    body = await service.headlines(category=category, country=country, page=page, page_size=page_size)
    return JSONResponse(status_code=200, content=body)


@router.get("/search")
async def search_news(
    q: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    sort_by: Optional[str] = Query("publishedAt", alias="sortBy"),
    language: Optional[str] = Query("en"),
    service: NewsProxyService = Depends(get_news_service),
):
    """Full-text article search."""
    body = await service.search(q=q, page=page, page_size=page_size, sort_by=sort_by, language=language)
    return JSONResponse(status_code=200, content=body)


@router.get("/sources")
async def get_sources(
    category: Optional[str] = Query(None),
    language: Optional[str] = Query("en"),
    country: Optional[str] = Query("us"),
    service: NewsProxyService = Depends(get_news_service),
):
    body = await service.sources(category=category, language=language, country=country)
    return JSONResponse(status_code=200, content=body)


@router.get("/health")
async def news_health(service: NewsProxyService = Depends(get_news_service)) -> JSONResponse:
    return JSONResponse(status_code=200, content=service.health())


@router.post("/clear-cache")
async def clear_cache(service: NewsProxyService = Depends(get_news_service)) -> JSONResponse:
    cleared = service.clear_cache()
    return JSONResponse(status_code=200, content={
        "success": True,
        "message": "News cache cleared successfully",
        "clearedKeys": cleared,
        "timestamp": utc_timestamp(),
        "note": "Cache will rebuild on next requests",
    })
