"""
Structured JSON logging, timing and optional Sentry reporting.

Every helper here writes one compact JSON object per line to the
``app.observability.logger`` logger so the proxy's cache hits, upstream
fetches and notifications can be grepped or shipped as-is.
"""
import os
import time
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

import sentry_sdk

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
MAX_SUBJECT_CHARS = 100

# Subjects containing any of these are not logged
_SENSITIVE_PATTERNS = ("password", "secret", "key", "token", "auth", "credential")

# Field names whose values never reach the log stream
_SENSITIVE_FIELDS = ("password", "secret", "api_key", "apikey", "token", "credential")


class Timer:
    """Wall-clock stopwatch; ``duration_ms`` is set once the block exits."""

    def __init__(self, operation: str):
        self.operation = operation
        self.duration_ms: Optional[float] = None
        self._started: Optional[float] = None

    def start(self) -> None:
        self._started = time.perf_counter()

    def stop(self) -> None:
        if self._started is not None:
            self.duration_ms = (time.perf_counter() - self._started) * 1000

    def get_duration_ms(self) -> Optional[float]:
        return self.duration_ms


@contextmanager
def timing(operation: str) -> Iterator[Timer]:
    """Time the enclosed block, including blocks that raise."""
    timer = Timer(operation)
    timer.start()
    try:
        yield timer
    finally:
        timer.stop()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _emit(level: int, entry: Dict[str, Any]) -> None:
    line = json.dumps(entry, separators=(',', ':'), default=str)
    if level >= logging.ERROR:
        logger.error(line)
    elif level >= logging.WARNING:
        logger.warning(line)
    else:
        logger.info(line)


def _redact(fields: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Replace values of sensitive-looking fields with a marker."""
    if not fields:
        return {}
    return {
        name: REDACTED if any(p in name.lower() for p in _SENSITIVE_FIELDS) else value
        for name, value in fields.items()
    }


def log_event(action: str, duration_ms: Optional[float] = None, **fields) -> None:
    """
    Log a structured event.

    Args:
        action: What happened, e.g. ``cache_hit``, ``upstream_fetched``, ``sent``
        duration_ms: How long it took, rounded to two places when given
        **fields: Extra keys; credential-like names are redacted
    """
    entry: Dict[str, Any] = {"timestamp": utc_timestamp(), "action": action}
    if duration_ms is not None:
        entry["duration_ms"] = round(duration_ms, 2)
    entry.update(_redact(fields))
    _emit(logging.INFO, entry)


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an exception's type and message with redacted context."""
    entry = {
        "timestamp": utc_timestamp(),
        "level": "ERROR",
        "error": str(error),
        "error_type": type(error).__name__,
        **_redact(context),
    }
    _emit(logging.ERROR, entry)


def log_warning(message: str, context: Optional[Dict[str, Any]] = None) -> None:
    entry = {"timestamp": utc_timestamp(), "level": "WARNING", "message": message, **_redact(context)}
    _emit(logging.WARNING, entry)


def _sanitize_subject(subject: str) -> str:
    """Email subject as it may appear in logs: hidden if sensitive, clipped if long."""
    lowered = subject.lower()
    if any(pattern in lowered for pattern in _SENSITIVE_PATTERNS):
        return REDACTED
    if len(subject) > MAX_SUBJECT_CHARS:
        return subject[:MAX_SUBJECT_CHARS - 3] + "..."
    return subject


def init_sentry() -> bool:
    """
    Start Sentry when ``OBS_ENABLED=true`` and ``SENTRY_DSN`` is set.

    Returns:
        Whether Sentry is now reporting
    """
    if os.getenv("OBS_ENABLED", "false").lower() != "true":
        return False

    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.info("OBS_ENABLED is set but SENTRY_DSN is empty; Sentry stays off")
        return False

    try:
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=dsn,
            integrations=[
                FastApiIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
            environment=os.getenv("APP_ENV", "production"),
        )
    except Exception as exc:
        logger.error(f"Sentry could not start: {exc}")
        return False

    logger.info("Sentry reporting enabled")
    return True
