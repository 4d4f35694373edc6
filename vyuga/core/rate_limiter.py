"""Sliding-window limiter for try-on submissions.

Every submission is a billed synthesis call, so the limit is per owner key
(``user:<id>``, ``guest:<session>`` or ``ip:<address>``) rather than per route.
State is process-local; with several API instances each enforces its own window.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Limits for one window."""

    max_requests: int = 10
    window_seconds: int = 900
    cleanup_interval_seconds: int = 300

    @classmethod
    def from_settings(cls) -> "RateLimitConfig":
        from vyuga.core.config import get_settings

        settings = get_settings()
        return cls(
            max_requests=settings.rate_limit_tryon_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )


class SlidingWindow:
    """Monotonic timestamps of the accepted requests for one key, oldest first."""

    def __init__(self) -> None:
        self.hits: deque[float] = deque()

    def expire(self, now: float, window_seconds: int) -> None:
        cutoff = now - window_seconds
        while self.hits and self.hits[0] <= cutoff:
            self.hits.popleft()

    def retry_after(self, now: float, window_seconds: int, max_requests: int) -> int:
        """Whole seconds until the window has room again (0 if it has room now)."""
        if len(self.hits) < max_requests:
            return 0
        frees_at = self.hits[len(self.hits) - max_requests] + window_seconds
        return max(0, int(frees_at - now) + 1)


class InMemoryRateLimitStorage:
    """Thread-safe per-key windows with a periodic sweep of idle keys."""

    def __init__(self, config: RateLimitConfig | None = None) -> None:
        self.config = config or RateLimitConfig()
        self._windows: dict[str, SlidingWindow] = {}
        self._lock = Lock()
        self._cleanup_task: asyncio.Task | None = None

    async def start_cleanup_task(self) -> None:
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="rate-limit-cleanup")
            logger.info("Rate limiter cleanup task started")

    async def stop_cleanup_task(self) -> None:
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Rate limiter cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            removed = await self.cleanup()
            if removed:
                logger.debug("Rate limiter dropped %d idle keys", removed)

    async def check_and_increment(self, key: str) -> tuple[bool, int, int]:
        """Count a request against ``key`` if the window has room.

        Returns:
            Tuple of (allowed, remaining_requests, retry_after_seconds).
        """
        limit = self.config.max_requests
        window_seconds = self.config.window_seconds
        now = time.monotonic()

        with self._lock:
            window = self._windows.setdefault(key, SlidingWindow())
            window.expire(now, window_seconds)

            if len(window.hits) >= limit:
                return False, 0, window.retry_after(now, window_seconds, limit)

            window.hits.append(now)
            return True, limit - len(window.hits), 0

    async def cleanup(self) -> int:
        """Drop keys with nothing left in their window.

        Returns:
            int: Number of keys removed.
        """
        now = time.monotonic()
        with self._lock:
            idle = []
            for key, window in self._windows.items():
                window.expire(now, self.config.window_seconds)
                if not window.hits:
                    idle.append(key)
            for key in idle:
                del self._windows[key]
        return len(idle)


_rate_limiter: InMemoryRateLimitStorage | None = None


def get_rate_limiter() -> InMemoryRateLimitStorage:
    """Process-wide limiter, created from settings on first use."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = InMemoryRateLimitStorage(RateLimitConfig.from_settings())
    return _rate_limiter


async def init_rate_limiter() -> InMemoryRateLimitStorage:
    limiter = get_rate_limiter()
    await limiter.start_cleanup_task()
    return limiter


async def shutdown_rate_limiter() -> None:
    if _rate_limiter:
        await _rate_limiter.stop_cleanup_task()
