import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class RateLimitWindow:
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class Admission:
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class RequestGovernor:
    """
    In-memory, per-process, per-client request window.

    Each client gets ``max_requests`` admissions per ``window_seconds``; the
    window restarts on the first request after it lapses.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 15 * 60,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()

    def admit(self, client_id: str) -> Admission:
        if not self.enabled:
            return Admission(allowed=True, remaining=self.max_requests)

        with self._lock:
            now = self._clock()
            window = self._windows.get(client_id)
            if window is None or now - window.window_start >= self.window_seconds:
                window = RateLimitWindow(window_start=now)
                self._windows[client_id] = window

            if window.count >= self.max_requests:
                retry_after = math.ceil(window.window_start + self.window_seconds - now)
                return Admission(allowed=False, remaining=0, retry_after_seconds=max(1, retry_after))

            window.count += 1
            return Admission(allowed=True, remaining=self.max_requests - window.count)

    def sweep(self) -> int:
        """Forget clients whose window has lapsed."""
        with self._lock:
            now = self._clock()
            expired = [cid for cid, w in self._windows.items() if now - w.window_start >= self.window_seconds]
            for cid in expired:
                del self._windows[cid]
            return len(expired)

    def tracked_clients(self) -> int:
        return len(self._windows)

    def describe(self) -> Dict[str, object]:
        return {
            "enabled": self.enabled,
            "windowMs": int(self.window_seconds * 1000),
            "maxRequests": self.max_requests if self.enabled else "unlimited",
        }
