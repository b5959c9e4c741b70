"""Redis-backed lock and response cache.

RedisEphemeralStore implements both LockStore and ResponseCache on top of
redis-py's asyncio client:

- try_acquire -> SET key "processing" NX EX ttl
- release     -> DEL key
- get         -> GET key, JSON-decoded into CachedResponse
- put         -> SET key <json> EX ttl

Every RedisError is translated into InfrastructureError so that callers only
see the service's own exception hierarchy. Keys expire inside Redis, so no
sweeping task is needed.

Examples:
    Building from configuration::

        store = RedisEphemeralStore.from_url(
            "redis://cache:6379/0",
            timeout_seconds=2.0,
        )
        acquired = await store.try_acquire("lock:payment-123", ttl_seconds=10)
        await store.close()
"""

from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from idempotent_transfer.exceptions import InfrastructureError
from idempotent_transfer.models import CachedResponse
from idempotent_transfer.observability.logging import get_logger
from idempotent_transfer.storage.memory import LOCK_MARKER

logger = get_logger(__name__)


class RedisEphemeralStore:
    """Lock and response cache stored in Redis.

    Attributes:
        client: The redis.asyncio client. Its lifecycle belongs to whoever
            constructed the store; close() closes it.
    """

    def __init__(self, client: Any) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float = 2.0) -> "RedisEphemeralStore":
        """Create a store with its own connection pool.

        Args:
            url: redis:// URL.
            timeout_seconds: Socket and connect timeout for every call.
        """
        client = Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    async def try_acquire(self, key: str, ttl_seconds: int) -> bool:
        try:
            acquired = await self.client.set(key, LOCK_MARKER, nx=True, ex=ttl_seconds)
        except RedisError as e:
            raise InfrastructureError(
                message=f"Lock acquisition failed for {key}: {e}",
                cause=e,
            ) from e
        return bool(acquired)

    async def release(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as e:
            raise InfrastructureError(
                message=f"Lock release failed for {key}: {e}",
                cause=e,
            ) from e

    async def get(self, key: str) -> CachedResponse | None:
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            raise InfrastructureError(
                message=f"Cache read failed for {key}: {e}",
                cause=e,
            ) from e

        if raw is None:
            return None

        try:
            return CachedResponse.model_validate_json(raw)
        except ValidationError as e:
            # A corrupt entry behaves like a miss; the durable record still answers.
            logger.warning("cache.corrupt_entry", key=key, error=str(e))
            return None

    async def put(self, key: str, response: CachedResponse, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, response.model_dump_json(), ex=ttl_seconds)
        except RedisError as e:
            raise InfrastructureError(
                message=f"Cache write failed for {key}: {e}",
                cause=e,
            ) from e

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            raise InfrastructureError(message=f"Redis ping failed: {e}", cause=e) from e

    async def close(self) -> None:
        await self.client.aclose()
