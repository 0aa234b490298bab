import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Tuple

from ..config import get_api_rate_limit, get_api_rate_limit_window


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }

    def retry_after(self, now: float) -> int:
        return max(1, int(self.reset_at - now))


class FixedWindowRateLimiter:
    """In-memory per-key request counter.

    limit: requests allowed per window; ``0`` disables limiting.
    Env vars (see :func:`build_api_rate_limiter`):
      API_RATE_LIMIT (default 1000)
      API_RATE_LIMIT_WINDOW_SEC (default 60)
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.time,
        sweep_threshold: int = 10000,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = Lock()

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        if self.limit <= 0:
            return RateLimitResult(True, self.limit, -1, now + self.window_seconds)
        with self._lock:
            if key not in self._windows and len(self._windows) >= self.sweep_threshold:
                self._sweep(now)
            count, start = self._windows.get(key, (0, now))
            # Reset window
            if now - start >= self.window_seconds:
                count, start = 0, now
            count += 1
            self._windows[key] = (count, start)
        return RateLimitResult(
            allowed=count <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_at=start + self.window_seconds,
        )

    def _sweep(self, now: float) -> None:
        stale = [k for k, (_, start) in self._windows.items() if now - start >= self.window_seconds]
        for k in stale:
            del self._windows[k]

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def now(self) -> float:
        return self._clock()


def build_api_rate_limiter() -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(get_api_rate_limit(), get_api_rate_limit_window())
