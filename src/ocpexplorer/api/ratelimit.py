"""Fixed-window rate limiting for the AI proxy.

Each client key gets ``max_requests`` per window. The window starts at the
first request and resets on the first request after it expires. Expired
windows are purged during ``check`` rather than by a background timer.
"""

import logging
import math
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0  # seconds until the window resets


class FixedWindowRateLimiter:
    def __init__(self, max_requests: int = 30, window_seconds: int = 3600, clock=time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for ``key`` and decide whether it may proceed."""
        now = self._clock()
        self._purge(now)

        window = self._windows.get(key)
        if window is None:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return RateLimitDecision(allowed=True)

        if window.count >= self.max_requests:
            retry_after = max(1, math.ceil(window.reset_at - now))
            logger.warning("Rate limit exceeded for %s (retry in %ds)", key, retry_after)
            return RateLimitDecision(allowed=False, retry_after=retry_after)

        window.count += 1
        return RateLimitDecision(allowed=True)

    def _purge(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now > w.reset_at]
        for k in expired:
            del self._windows[k]

    def reset(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
