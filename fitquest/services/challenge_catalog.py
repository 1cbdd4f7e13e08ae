"""
Challenge Catalog

Read-only challenge lookups for the progress core, cached in Redis with a
short TTL. Cache errors never fail a lookup; the store is the source of truth.
"""

from typing import Optional

from fitquest.core.config import settings
from fitquest.core.exceptions import NotFoundError
from fitquest.models.challenge import Challenge
from fitquest.services.logger import logger


CATALOG_CACHE_PREFIX = "challenge_catalog"


def _cache_key(challenge_id: str) -> str:
    return f"{CATALOG_CACHE_PREFIX}:{challenge_id}"


class ChallengeCatalog:
    def __init__(self, store, redis_client=None, ttl_seconds: Optional[int] = None):
        self.store = store
        self.redis = redis_client
        self.ttl_seconds = (
            ttl_seconds
            if ttl_seconds is not None
            else int(settings.CATALOG_CACHE_TTL_SECONDS)
        )

    def _get_cached(self, challenge_id: str) -> Optional[Challenge]:
        if not self.redis:
            return None
        try:
            cached = self.redis.get(_cache_key(challenge_id))
            if cached:
                return Challenge.model_validate_json(cached)
        except Exception as e:
            logger.warning(f"Challenge cache get error: {e}")
        return None

    def _set_cached(self, challenge: Challenge) -> None:
        if not self.redis or self.ttl_seconds <= 0:
            return
        try:
            self.redis.setex(
                _cache_key(challenge.id), self.ttl_seconds, challenge.model_dump_json()
            )
        except Exception as e:
            logger.warning(f"Challenge cache setex error: {e}")

    def find(self, challenge_id: str) -> Optional[Challenge]:
        challenge = self._get_cached(challenge_id)
        if challenge is not None:
            return challenge

        challenge = self.store.get_challenge(challenge_id)
        if challenge is not None:
            self._set_cached(challenge)
        return challenge

    def get(self, challenge_id: str) -> Challenge:
        """Challenge by id, raising NotFoundError when it does not exist."""
        challenge = self.find(challenge_id)
        if challenge is None:
            logger.warning(
                f"Challenge {challenge_id} not found", {"challenge_id": challenge_id}
            )
            raise NotFoundError("Challenge not found", {"challenge_id": challenge_id})
        return challenge

    def invalidate(self, challenge_id: str) -> None:
        if not self.redis:
            return
        try:
            self.redis.delete(_cache_key(challenge_id))
        except Exception as e:
            logger.warning(f"Challenge cache delete error: {e}")
