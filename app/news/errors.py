from typing import Any, Dict, Optional


class NewsProxyError(Exception):
    """Base for failures that render as a news proxy error envelope."""

    status_code = 500
    default_message = "Failed to process news request"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    @property
    def headers(self) -> Dict[str, str]:
        return {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": False, "message": self.message}
        payload.update(self.extra)
        return payload


class ValidationError(NewsProxyError):
    status_code = 400
    default_message = "Invalid request parameters"


class ServiceMisconfigured(NewsProxyError):
    status_code = 500
    default_message = "News service configuration error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, error="Service temporarily unavailable")


class GovernorDenied(NewsProxyError):
    status_code = 429
    default_message = "Too many news requests, please try again later."

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            retryAfter=_humanize_seconds(retry_after_seconds),
            retryAfterSeconds=retry_after_seconds,
        )

    @property
    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds)}


class FetchError(NewsProxyError):
    """Upstream call failed; subclasses classify how."""

    # Detail kept server-side; never part of the payload
    detail: Optional[str] = None

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None, **extra: Any):
        self.detail = detail
        super().__init__(message, **extra)


class UpstreamTimeout(FetchError):
    status_code = 408
    default_message = "Request timeout - please try again"
    retry_after_seconds = 30

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(message, detail, retryAfter="30 seconds", retryAfterSeconds=self.retry_after_seconds)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds)}


class UpstreamRateLimited(FetchError):
    status_code = 429
    default_message = "NewsAPI rate limit exceeded"
    retry_after_seconds = 60 * 60

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(message, detail, retryAfter="1 hour", retryAfterSeconds=self.retry_after_seconds)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after_seconds)}


class UpstreamAuthFailed(FetchError):
    status_code = 500
    default_message = "News service temporarily unavailable"


class UpstreamUnexpected(FetchError):
    status_code = 500
    default_message = "Failed to fetch news"


def _humanize_seconds(seconds: int) -> str:
    if seconds >= 60:
        minutes = -(-seconds // 60)
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    return f"{seconds} second" if seconds == 1 else f"{seconds} seconds"
