"""
Redis client shared by the challenge catalog cache and the enrollment locks.

When Redis cannot be reached the catalog falls back to a no-op client (every
lookup is a miss, so the store is read directly) and get_lock_manager() falls
back to process-local locks.
"""

from typing import Any, Optional, Union

import redis

from fitquest.core.config import settings
from fitquest.services.logger import logger


class DummyRedis:
    """Always-miss client covering the calls ChallengeCatalog makes."""

    def get(self, key: str) -> None:
        return None

    def setex(self, key: str, ttl: int, value: Any) -> None:
        return None

    def delete(self, *keys: str) -> int:
        return 0

    def ping(self) -> bool:
        return True


RedisClient = Union[redis.Redis, DummyRedis]

_redis_client: Optional[RedisClient] = None


def get_redis_client() -> Optional[RedisClient]:
    """Shared client for REDIS_URL, None when no URL is configured."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    redis_url = settings.redis_connection_url
    if not redis_url:
        return None

    try:
        client = redis.from_url(redis_url)
        client.ping()
        _redis_client = client
    except (redis.RedisError, ValueError) as exc:
        logger.warning(
            f"Redis unavailable ({exc}), catalog cache disabled",
            {"redis_url": redis_url.split("@")[-1]},
        )
        _redis_client = DummyRedis()

    return _redis_client


def is_real_redis(client: Any) -> bool:
    """True when the client is a live redis-py client (not the dummy)."""
    return isinstance(client, redis.Redis)
