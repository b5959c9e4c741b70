"""Background sweeping of expired entries in the in-process store.

MemoryEphemeralStore already treats expired locks and cached responses as
absent; the sweeper deletes them so a long-running single-process
deployment does not accumulate dead keys. Redis expires keys itself, so the
application only runs a sweeper for the memory backend.

Examples:
    Around the application lifetime::

        sweeper = await start_cleanup_task(store, interval_seconds=60)
        ...
        await stop_cleanup_task(sweeper)
"""

import asyncio
from typing import Protocol

from idempotent_transfer.observability.logging import get_logger
from idempotent_transfer.observability.metrics import record_cleanup

logger = get_logger(__name__)

STOP_TIMEOUT_SECONDS = 5.0


class ExpiringStore(Protocol):
    async def cleanup_expired(self) -> int: ...


class ExpirySweeper:
    """Runs store.cleanup_expired() every interval_seconds until stopped.

    The first sweep happens as soon as the task is scheduled. A failing sweep
    is logged and the next one runs on schedule.
    """

    def __init__(self, store: ExpiringStore, interval_seconds: int = 60) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self.task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    async def sweep_once(self) -> int:
        removed = await self.store.cleanup_expired()
        record_cleanup(removed)
        if removed:
            logger.info("cleanup.completed", entries_removed=removed)
        return removed

    async def run(self) -> None:
        logger.info("cleanup.started", interval_seconds=self.interval_seconds)
        while not self._stop_event.is_set():
            try:
                await self.sweep_once()
            except Exception as e:
                logger.error("cleanup.failed", error=str(e), error_type=type(e).__name__)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("cleanup.stopped")

    def start(self) -> None:
        if self.task is None:
            self.task = asyncio.create_task(self.run())

    async def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        """Signal the loop to finish; cancel it if it has not within timeout."""
        self._stop_event.set()
        if self.task is None:
            return
        try:
            await asyncio.wait_for(self.task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("cleanup.stop_timeout", timeout_seconds=timeout)
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                logger.debug("cleanup.cancelled")


async def start_cleanup_task(store: ExpiringStore, interval_seconds: int = 60) -> ExpirySweeper:
    sweeper = ExpirySweeper(store, interval_seconds)
    sweeper.start()
    return sweeper


async def stop_cleanup_task(sweeper: ExpirySweeper) -> None:
    await sweeper.stop()
