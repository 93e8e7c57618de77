"""
Named locks that serialize work on one key across workers.

A sync job holds the lock for its ticket for the whole run; a second job for
the same ticket waits up to ``timeout`` seconds and then gives up with
``LockNotAcquiredError`` so the job queue can try again later.
"""
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from redis import Redis
from redis.exceptions import LockError

from ticketbridge.cache.redis_client import get_redis_client

logger = logging.getLogger(__name__)


class LockNotAcquiredError(Exception):
    """Raised when a lock could not be acquired within the timeout"""

    def __init__(self, key: str, timeout: float):
        super().__init__(f"Could not acquire lock '{key}' within {timeout} seconds")
        self.key = key
        self.timeout = timeout


class DistributedLock(ABC):
    """Acquire a named lock for the duration of a ``with`` block"""

    @abstractmethod
    @contextmanager
    def acquire(self, key: str, timeout: float) -> Iterator[None]:
        """
        Hold the lock for ``key`` until the block exits

        Args:
            key: Lock name
            timeout: Seconds to wait for the lock before raising LockNotAcquiredError
        """
        yield


class RedisDistributedLock(DistributedLock):
    """Lock backed by redis-py's Lock (SET NX with expiry)"""

    def __init__(self, redis_client: Redis, lease_seconds: int = 30 * 60, prefix: str = "lock:"):
        """
        Args:
            redis_client: Connected Redis client
            lease_seconds: Expiry of a held lock, so a crashed worker can't hold it forever
            prefix: Key prefix for lock entries
        """
        self.redis = redis_client
        self.lease_seconds = lease_seconds
        self.prefix = prefix

    @contextmanager
    def acquire(self, key: str, timeout: float) -> Iterator[None]:
        lock = self.redis.lock(
            f"{self.prefix}{key}",
            timeout=self.lease_seconds,
            blocking=True,
            blocking_timeout=timeout,
        )
        if not lock.acquire():
            raise LockNotAcquiredError(key, timeout)
        logger.debug(f"Acquired lock {key}")
        try:
            yield
        finally:
            try:
                lock.release()
                logger.debug(f"Released lock {key}")
            except LockError as e:
                # Lease expired while we were working; someone else may own it now
                logger.warning(f"Lock {key} was lost before release: {e}")


class InMemoryDistributedLock(DistributedLock):
    """Per-key mutex map for single-process deployments and tests"""

    def __init__(self):
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
    def acquire(self, key: str, timeout: float) -> Iterator[None]:
        lock = self._lock_for(key)
        if not lock.acquire(timeout=timeout):
            raise LockNotAcquiredError(key, timeout)
        try:
            yield
        finally:
            lock.release()


_default_lock: Optional[DistributedLock] = None


def get_distributed_lock() -> DistributedLock:
    """Redis-backed lock when Redis is reachable, otherwise a process-local one"""
    global _default_lock

    if _default_lock is not None:
        return _default_lock

    redis_client = get_redis_client()
    if redis_client is not None:
        _default_lock = RedisDistributedLock(redis_client)
    else:
        logger.warning("Redis unavailable, falling back to in-process locks (single worker only)")
        _default_lock = InMemoryDistributedLock()
    return _default_lock
