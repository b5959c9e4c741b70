"""In-process lock and response cache with TTL expiry.

This module provides MemoryEphemeralStore, an implementation of both the
LockStore and ResponseCache protocols backed by dictionaries and an
asyncio.Lock. It is suitable for:
    - Single-process deployments
    - Development and testing

For multi-process deployments use RedisEphemeralStore so that every worker
sees the same locks.

Expiry:
    - Every entry records an absolute expiry on the store's clock
    - Expired entries are treated as absent by every read
    - cleanup_expired() removes them so memory does not grow unbounded

Examples:
    Basic usage::

        store = MemoryEphemeralStore()

        if await store.try_acquire("lock:payment-123", ttl_seconds=10):
            try:
                ...
            finally:
                await store.release("lock:payment-123")

        await store.put("idempotency:payment-123", cached, ttl_seconds=86400)
"""

import asyncio
import time
from collections.abc import Callable

from idempotent_transfer.models import CachedResponse

LOCK_MARKER = "processing"


class MemoryEphemeralStore:
    """In-process lock and response cache.

    Attributes:
        _locks: Lock key -> (marker, expires_at).
        _responses: Cache key -> (response, expires_at).
        _mutex: Guards both dictionaries so set-if-absent is atomic.
        _clock: Monotonic time source in seconds, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._locks: dict[str, tuple[str, float]] = {}
        self._responses: dict[str, tuple[CachedResponse, float]] = {}
        self._mutex = asyncio.Lock()
        self._clock = clock

    async def try_acquire(self, key: str, ttl_seconds: int) -> bool:
        """Create the lock entry if it is absent or expired.

        Args:
            key: Fully-qualified lock key.
            ttl_seconds: Lifetime of the entry.

        Returns:
            True if this caller now holds the lock.
        """
        async with self._mutex:
            now = self._clock()
            existing = self._locks.get(key)
            if existing is not None and existing[1] > now:
                return False
            self._locks[key] = (LOCK_MARKER, now + ttl_seconds)
            return True

    async def release(self, key: str) -> None:
        async with self._mutex:
            self._locks.pop(key, None)

    async def is_locked(self, key: str) -> bool:
        """Whether a live lock entry exists for key."""
        async with self._mutex:
            existing = self._locks.get(key)
            return existing is not None and existing[1] > self._clock()

    async def get(self, key: str) -> CachedResponse | None:
        async with self._mutex:
            entry = self._responses.get(key)
            if entry is None:
                return None
            response, expires_at = entry
            if expires_at <= self._clock():
                return None
            return response

    async def put(self, key: str, response: CachedResponse, ttl_seconds: int) -> None:
        async with self._mutex:
            self._responses[key] = (response, self._clock() + ttl_seconds)

    async def cleanup_expired(self) -> int:
        """Remove expired locks and cached responses.

        Returns:
            The number of entries removed.
        """
        async with self._mutex:
            now = self._clock()
            expired_locks = [k for k, (_, exp) in self._locks.items() if exp <= now]
            expired_responses = [k for k, (_, exp) in self._responses.items() if exp <= now]

            for key in expired_locks:
                del self._locks[key]
            for key in expired_responses:
                del self._responses[key]

            return len(expired_locks) + len(expired_responses)

    async def close(self) -> None:
        async with self._mutex:
            self._locks.clear()
            self._responses.clear()
