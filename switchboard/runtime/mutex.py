"""Session mutex implementations.

Ensures the single-writer rule per conversation: every load -> mutate ->
persist sequence for one key runs inside ``acquire``. The same primitive
serializes handoff ticket transitions under ``ticket:`` keys.

InProcessSessionMutex is a keyed asyncio.Lock table for single-process
deployments and tests. RedisSessionMutex is the distributed lock used when
several orchestrator replicas share a SessionStore.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncGenerator

from redis.asyncio import Redis
from redis.exceptions import LockError

from switchboard.errors import SessionBusyError
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


class SessionMutex(ABC):
    """Keyed mutual exclusion.

    Usage:
        async with mutex.acquire(session_id):
            # Safe to load and mutate the session
    """

    @abstractmethod
    def acquire(
        self,
        key: str,
        blocking_timeout: float | None = None,
    ) -> AbstractAsyncContextManager[None]:
        """Hold the lock for ``key`` for the duration of the context.

        Raises:
            SessionBusyError: If the lock could not be acquired in time
        """
        pass

    @abstractmethod
    async def is_locked(self, key: str) -> bool:
        """Check if a key is currently locked."""
        pass


class InProcessSessionMutex(SessionMutex):
    """Keyed asyncio.Lock table.

    Locks are created on first use and dropped once no task holds or waits
    on them, so the table does not grow with the number of sessions seen.
    """

    def __init__(self, blocking_timeout: float | None = None) -> None:
        """Initialize the lock table.

        Args:
            blocking_timeout: Seconds to wait for a lock (None waits forever)
        """
        self._blocking_timeout = blocking_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def acquire(
        self,
        key: str,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[None, None]:
        timeout = blocking_timeout if blocking_timeout is not None else self._blocking_timeout
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                if timeout is None:
                    await lock.acquire()
                else:
                    await asyncio.wait_for(lock.acquire(), timeout)
            except TimeoutError:
                raise SessionBusyError(f"Timed out waiting for lock on {key}") from None

            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    async def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


class RedisSessionMutex(SessionMutex):
    """Redis-backed distributed lock for session-level mutual exclusion.

    Lock key format: sesslock:{key}
    """

    def __init__(
        self,
        redis: Redis,
        lock_timeout: int = 30,
        blocking_timeout: float = 10.0,
    ) -> None:
        """Initialize session mutex.

        Args:
            redis: Redis client instance
            lock_timeout: How long lock is held before auto-release (seconds)
            blocking_timeout: How long to wait when trying to acquire (seconds)
        """
        self._redis = redis
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, key: str) -> str:
        """Build Redis lock key."""
        return f"sesslock:{key}"

    @asynccontextmanager
    async def acquire(
        self,
        key: str,
        blocking_timeout: float | None = None,
    ) -> AsyncGenerator[None, None]:
        timeout = blocking_timeout or self._blocking_timeout

        lock = self._redis.lock(
            self._key(key),
            timeout=self._lock_timeout,
            blocking_timeout=timeout,
        )

        acquired = await lock.acquire()
        if not acquired:
            raise SessionBusyError(f"Timed out waiting for lock on {key}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lock expired before release; the next holder already owns it
                logger.warning("session_lock_expired", key=key)

    async def is_locked(self, key: str) -> bool:
        return await self._redis.exists(self._key(key)) > 0

    async def force_release(self, key: str) -> bool:
        """Force release a lock (cleanup after failures only).

        Returns:
            True if lock was released, False if it didn't exist
        """
        return await self._redis.delete(self._key(key)) > 0
