import os

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.observability.logger import utc_timestamp

router = APIRouter()

VERSION = "1.0.0"


@router.get("/health")
async def health_check() -> JSONResponse:
    """
    Service-wide health check.

    Returns:
        JSON response with status, version and observability status
    """
    response = {
        "status": "ok",
        "timestamp": utc_timestamp(),
        "version": VERSION,
        "message": "Advisory backend - chatbot, consultation and news services",
        "observability": {
            "enabled": os.getenv("OBS_ENABLED", "false").lower() == "true",
            "sentry_configured": bool(os.getenv("SENTRY_DSN")),
        },
    }
    return JSONResponse(status_code=200, content=response)
