"""Per-scope locks that serialize sweeps touching the same items.

Sweeps lock every fetcher (subscription) scope they will write to. Keys
are acquired in sorted order, so two sweeps with overlapping scopes
cannot deadlock. Sweeps over disjoint scopes run concurrently.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import LockError as RedisLockError

from app.core.exceptions import ScopeLockTimeoutError
from app.core.logging import get_logger

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "feedsieve:lock:"


def fetcher_lock_key(subscription_id: int | None) -> str:
    """Lock key of a fetcher scope (``none`` for items without a fetcher)."""
    return f"scope:fetcher:{'none' if subscription_id is None else subscription_id}"


class ScopeLockManager(ABC):
    """Acquires a set of scope locks in deterministic order.

    Attributes:
        timeout: Seconds to wait for each lock
    """

    def __init__(self, timeout: float = 300.0):
        """Initialize lock manager.

        Args:
            timeout: Seconds to wait for each lock
        """
        self.timeout = timeout

    @asynccontextmanager
    async def hold(self, keys: Iterable[str]) -> AsyncIterator[list[str]]:
        """Hold all given locks for the duration of the block.

        Args:
            keys: Lock keys (duplicates are ignored)

        Yields:
            Sorted keys that are held

        Raises:
            ScopeLockTimeoutError: If any lock is not acquired in time
        """
        ordered = sorted(set(keys))
        async with AsyncExitStack() as stack:
            for key in ordered:
                if not await self._acquire(key):
                    raise ScopeLockTimeoutError(keys=ordered, timeout=self.timeout)
                stack.push_async_callback(self._release, key)
            logger.debug("Scope locks acquired", keys=ordered)
            yield ordered

    @abstractmethod
    async def _acquire(self, key: str) -> bool:
        """Acquire one lock; return False on timeout."""
        ...

    @abstractmethod
    async def _release(self, key: str) -> None:
        """Release one lock held by this manager."""
        ...


class LocalScopeLockManager(ScopeLockManager):
    """In-process asyncio locks (single API / worker process)."""

    def __init__(self, timeout: float = 300.0):
        super().__init__(timeout)
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, key: str) -> asyncio.Lock:
        return self._locks.setdefault(key, asyncio.Lock())

    async def _acquire(self, key: str) -> bool:
        try:
            await asyncio.wait_for(self._lock(key).acquire(), timeout=self.timeout)
        except TimeoutError:
            return False
        return True

    async def _release(self, key: str) -> None:
        self._lock(key).release()

    def locked(self, key: str) -> bool:
        """Check whether a key is currently held."""
        return key in self._locks and self._locks[key].locked()


class RedisScopeLockManager(ScopeLockManager):
    """Redis locks shared by API processes and Celery workers.

    The lock expiry equals the timeout, so a crashed holder cannot block a
    scope forever.
    """

    def __init__(self, redis_client: AsyncRedis, timeout: float = 300.0):
        """Initialize Redis lock manager.

        Args:
            redis_client: Async Redis client (from DI)
            timeout: Seconds to wait for and hold each lock
        """
        super().__init__(timeout)
        self.redis = redis_client
        self._held: dict[str, Any] = {}

    async def _acquire(self, key: str) -> bool:
        lock = self.redis.lock(
            f"{REDIS_KEY_PREFIX}{key}",
            timeout=self.timeout,
            blocking_timeout=self.timeout,
        )
        if not await lock.acquire():
            return False
        self._held[key] = lock
        return True

    async def _release(self, key: str) -> None:
        lock = self._held.pop(key, None)
        if lock is None:
            return
        try:
            await lock.release()
        except RedisLockError as e:
            logger.warning("Scope lock expired before release", key=key, error=str(e))


__all__ = [
    "LocalScopeLockManager",
    "RedisScopeLockManager",
    "ScopeLockManager",
    "fetcher_lock_key",
]
