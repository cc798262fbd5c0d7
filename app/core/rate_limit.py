"""
Rate limiting for sensitive operations.

The limiter is an injected abstraction with pluggable backends: an in-memory
fixed window for single-instance deployments and tests, and a Redis backend
whose counters are shared by every instance.
"""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import redis

from app.core.config import Settings, settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int  # seconds until the window resets


class RateLimiter(ABC):
    """Fixed-window attempt counter keyed by caller identity."""

    def __init__(self, max_attempts: int, window_seconds: int):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    @abstractmethod
    def hit(self, key: str) -> RateLimitResult:
        """Record an attempt for ``key`` and report whether it is allowed."""


class InMemoryRateLimiter(RateLimiter):
    def __init__(
        self,
        max_attempts: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(max_attempts, window_seconds)
        self._clock = clock
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            count, reset_at = self._windows.get(key, (0, now + self.window_seconds))
            if now >= reset_at:
                count, reset_at = 0, now + self.window_seconds
            retry_after = max(0, int(reset_at - now + 0.999))
            if count >= self.max_attempts:
                return RateLimitResult(False, 0, retry_after)
            count += 1
            self._windows[key] = (count, reset_at)
            return RateLimitResult(True, self.max_attempts - count, retry_after)


class RedisRateLimiter(RateLimiter):
    def __init__(
        self,
        client: redis.Redis,
        max_attempts: int,
        window_seconds: int,
        prefix: str = "ratelimit",
    ):
        super().__init__(max_attempts, window_seconds)
        self.client = client
        self.prefix = prefix

    def hit(self, key: str) -> RateLimitResult:
        redis_key = f"{self.prefix}:{key}"
        pipe = self.client.pipeline()
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        count, ttl = pipe.execute()
        if ttl is None or ttl < 0:
            self.client.expire(redis_key, self.window_seconds)
            ttl = self.window_seconds
        count = int(count)
        if count > self.max_attempts:
            return RateLimitResult(False, 0, int(ttl))
        return RateLimitResult(True, self.max_attempts - count, int(ttl))


_limiter: Optional[RateLimiter] = None


def build_rate_limiter(config: Settings = settings) -> RateLimiter:
    """Create the configured limiter backend."""
    if config.RATE_LIMIT_BACKEND == "redis":
        from app.core.cache import RedisClient

        return RedisRateLimiter(
            RedisClient.get_client(),
            config.RATE_LIMIT_MAX_ATTEMPTS,
            config.RATE_LIMIT_WINDOW_SECONDS,
        )
    return InMemoryRateLimiter(config.RATE_LIMIT_MAX_ATTEMPTS, config.RATE_LIMIT_WINDOW_SECONDS)


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter used by the route dependency."""
    global _limiter
    if _limiter is None:
        _limiter = build_rate_limiter()
        logger.info(f"Using {type(_limiter).__name__} for rate limiting")
    return _limiter
