"""
Redis client used for state shared across service instances.
"""

from typing import Optional

import redis

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Lazily created, process-wide Redis connection."""

    _client: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._client is None:
            cls._client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return cls._client

    @classmethod
    def ping(cls) -> bool:
        try:
            return bool(cls.get_client().ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    @classmethod
    def close(cls) -> None:
        if cls._client is not None:
            cls._client.close()
            cls._client = None
