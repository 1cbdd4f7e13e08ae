"""
Per-key locks for enrollment and challenge update scopes.

Every upsert-then-recompute for one enrollment, and every ranking pass for one
challenge, runs inside `hold(key)`. Different keys never block each other.

- RedisLockManager: redis-py Lock, shared by all Celery worker processes.
- LocalLockManager: threading locks, for a single process (memory backend,
  tests, or when Redis is unreachable).
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from redis.exceptions import LockError

from fitquest.core.cache import get_redis_client, is_real_redis
from fitquest.core.config import settings
from fitquest.core.exceptions import LockTimeoutError
from fitquest.services.logger import logger


def enrollment_lock_key(enrollment_id: str) -> str:
    return f"challenge_progress:enrollment:{enrollment_id}"


def challenge_lock_key(challenge_id: str) -> str:
    return f"challenge_progress:challenge:{challenge_id}"


class LocalLockManager:
    def __init__(self, wait_seconds: Optional[float] = None):
        self.wait_seconds = (
            wait_seconds
            if wait_seconds is not None
            else float(settings.ENROLLMENT_LOCK_WAIT_SECONDS)
        )
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.wait_seconds):
            raise LockTimeoutError(f"Timed out waiting for lock {key}", {"key": key})
        try:
            yield
        finally:
            lock.release()


class RedisLockManager:
    def __init__(
        self,
        client,
        timeout_seconds: Optional[float] = None,
        wait_seconds: Optional[float] = None,
    ):
        self.client = client
        self.timeout_seconds = (
            timeout_seconds
            if timeout_seconds is not None
            else float(settings.ENROLLMENT_LOCK_TIMEOUT_SECONDS)
        )
        self.wait_seconds = (
            wait_seconds
            if wait_seconds is not None
            else float(settings.ENROLLMENT_LOCK_WAIT_SECONDS)
        )

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        # timeout: auto-expire safety if a worker dies while holding the lock
        lock = self.client.lock(
            key, timeout=self.timeout_seconds, blocking_timeout=self.wait_seconds
        )
        if not lock.acquire():
            raise LockTimeoutError(f"Timed out waiting for lock {key}", {"key": key})
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                # Expired before release; another worker may already own it
                logger.warning(
                    f"Lock {key} expired before release",
                    {"key": key, "error": str(e)},
                )


_lock_manager = None


def get_lock_manager():
    """Shared lock manager: Redis when available, in-process otherwise."""
    global _lock_manager

    if _lock_manager is not None:
        return _lock_manager

    client = None
    if settings.STORAGE_BACKEND != "memory":
        client = get_redis_client()

    if client is not None and is_real_redis(client):
        _lock_manager = RedisLockManager(client)
    else:
        if settings.STORAGE_BACKEND != "memory":
            logger.warning(
                "Redis unavailable, enrollment locks are process-local",
                {"storage_backend": settings.STORAGE_BACKEND},
            )
        _lock_manager = LocalLockManager()

    return _lock_manager
