import logging
import time
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import AppConfig, load_config
from app.news.errors import NewsProxyError
from app.news.fetcher import NewsAPIFetcher
from app.news.service import create_news_service
from app.observability.logger import init_sentry
from app.routes.chatbot import router as chatbot_router
from app.routes.consultation import router as consultation_router
from app.routes.health import router as health_router
from app.routes.news import router as news_router
from app.services.notifier import create_notifier
from app.storage.records import RecordStore
from app.storage.uploads import FileIntake

logger = logging.getLogger("advisory")
logging.basicConfig(level=logging.INFO)

SWEEP_JOB_ID = "news_cache_sweep"
COLLECTIONS = ("consultations", "conversations", "feedback")


def create_app(
    config: Optional[AppConfig] = None,
    news_fetcher: Optional[NewsAPIFetcher] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Build the application with its collaborators attached to ``app.state``."""
    config = config or load_config()

    app = FastAPI(title="Advisory Backend")
    app.state.config = config
    app.state.news_service = create_news_service(config, fetcher=news_fetcher, clock=clock)
    app.state.notifier = create_notifier(config)
    app.state.file_intake = FileIntake(config.upload_dir)
    app.state.records = {name: RecordStore(config.data_dir, name) for name in COLLECTIONS}
    app.state.scheduler = BackgroundScheduler(timezone="UTC")

    @app.on_event("startup")
    def _startup():
        profile = config.profile
        if profile.sweep_interval_seconds:
            app.state.scheduler.add_job(
                app.state.news_service.sweep,
                "interval",
                id=SWEEP_JOB_ID,
                seconds=profile.sweep_interval_seconds,
                replace_existing=True,
            )
            app.state.scheduler.start()
            logger.info(f"News cache sweep every {profile.sweep_interval_seconds}s ({profile.name} profile)")
        else:
            logger.info(f"News cache swept per request ({profile.name} profile)")

    @app.on_event("shutdown")
    def _shutdown():
        if app.state.scheduler.running:
            app.state.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    @app.middleware("http")
    async def _log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    @app.exception_handler(NewsProxyError)
    async def _news_proxy_error(request: Request, exc: NewsProxyError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            content = {"success": False, "message": "Endpoint not found", "path": request.url.path}
        else:
            content = {"success": False, "message": str(exc.detail)}
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.exception(f"Server error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "Internal server error",
            "error": str(exc) if config.is_development else "Something went wrong",
        })

    # Routes
    app.include_router(health_router, prefix="/api", tags=["health"])
    app.include_router(chatbot_router, prefix="/api", tags=["chatbot"])
    app.include_router(consultation_router, prefix="/api/consultation", tags=["consultation"])
    app.include_router(news_router, prefix="/news", tags=["news"])

    return app


load_dotenv()
init_sentry()
app = create_app()
