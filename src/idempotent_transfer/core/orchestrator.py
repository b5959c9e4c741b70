"""Transfer orchestration: the idempotency protocol.

TransferOrchestrator ties the response cache, the durable idempotency
record, the per-key lock, and the ledger together so that a transfer's
monetary effect happens at most once per idempotency key.

Protocol, in order:

1. Cache probe. A hit is returned verbatim; lock and ledger are not touched.
2. Durable-record probe. A hit means the transfer already committed (maybe
   by a request that crashed before answering); a "recovered" success is
   synthesized from the stored amount.
3. Lock acquisition, one bounded attempt. Busy -> 409, store error -> 500.
4. Critical section: re-probe the record (closes the window between 2 and
   3), then debit + credit + record insert in one transaction. A uniqueness
   violation on the insert means another attempt already committed; it is
   answered from the record, not as an error.
5. Lock release on every exit path (async context manager). Release
   failures are logged; the lock TTL bounds the damage.
6. Cache population for 2xx results. Failures are logged; the durable
   record already covers correctness.

The fault injector runs between the commit in step 4 and step 6. When it
fires, SimulatedCrashError propagates to the caller after the lock has been
released and without a cached response, which is what a crash at that
point would leave behind.

Known bound: if the critical section outlives lock_ttl_seconds, the lock
expires under its holder and a second attempt can enter. The UNIQUE
constraint on the record is then the only thing preventing a second
transfer; the loser is answered as recovered.

Examples:
    Wiring it up::

        orchestrator = TransferOrchestrator(
            ledger=SQLLedgerStore.from_url(config.database_url),
            locks=store,
            cache=store,
            config=config,
        )

        result = await orchestrator.execute(
            body=b'{"from_id": 1, "to_id": 2, "amount": 10}',
            idempotency_key="payment-123",
        )
        result.status   # 200
        result.outcome  # TransferOutcome.COMPLETED
"""

import time
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

from pydantic import ValidationError

from idempotent_transfer.config import TransferConfig
from idempotent_transfer.core.fault import FaultInjector, NoFaultInjector
from idempotent_transfer.core.replay import (
    render_error,
    render_success,
    replay_cached,
    to_cached_response,
)
from idempotent_transfer.exceptions import (
    ConflictError,
    InfrastructureError,
    MalformedRequestError,
    MissingKeyError,
    RecordRaceLostError,
    SimulatedCrashError,
    TransferError,
)
from idempotent_transfer.models import (
    CachedResponse,
    TransferRequest,
    TransferResult,
)
from idempotent_transfer.observability.logging import get_logger
from idempotent_transfer.observability.metrics import (
    decrement_locks_held,
    increment_locks_held,
    record_critical_section,
    record_request,
)
from idempotent_transfer.storage.base import LedgerStore, LockStore, ResponseCache

logger = get_logger(__name__)

MAX_KEY_LENGTH = 255


class TransferOrchestrator:
    """Runs the idempotent transfer protocol for one request at a time.

    Instances hold no per-request state and are safe to share between
    concurrent requests; all coordination goes through the injected stores.

    Attributes:
        ledger: Durable accounts + idempotency record store.
        locks: Per-key mutual exclusion.
        cache: Response cache.
        config: TTLs and key prefixes.
        fault_injector: Post-commit crash hook.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        locks: LockStore,
        cache: ResponseCache,
        config: TransferConfig | None = None,
        fault_injector: FaultInjector | None = None,
    ) -> None:
        self.ledger = ledger
        self.locks = locks
        self.cache = cache
        self.config = config or TransferConfig()
        self.fault_injector = fault_injector or NoFaultInjector()

    async def execute(
        self,
        body: bytes,
        idempotency_key: str | None,
        headers: Mapping[str, str] | None = None,
    ) -> TransferResult:
        """Process one transfer request.

        Args:
            body: Raw JSON request body.
            idempotency_key: Value of the Idempotency-Key header, if any.
            headers: Request headers, consulted by the fault injector.

        Returns:
            TransferResult for every business and infrastructure outcome.

        Raises:
            SimulatedCrashError: The fault injector fired after commit.
        """
        key = (idempotency_key or "").strip()
        try:
            result = await self._execute(body, key, headers or {})
        except SimulatedCrashError:
            record_request("crashed", 500)
            raise

        record_request(result.outcome.value, result.status)
        return result

    async def _execute(
        self,
        body: bytes,
        key: str,
        headers: Mapping[str, str],
    ) -> TransferResult:
        try:
            self._validate_key(key)
            request = self._parse_request(body)
        except TransferError as e:
            logger.info("transfer.rejected", key=key or None, error=e.message)
            return render_error(e, key or None)

        log = logger.bind(key=key)

        # 1. Cache probe
        cached = await self._probe_cache(key)
        if cached is not None:
            log.info("transfer.cache_hit")
            return replay_cached(cached, key)

        # 2. Durable-record probe
        try:
            record = await self.ledger.get_record(key)
        except InfrastructureError as e:
            log.error("transfer.record_probe_failed", error=e.message)
            return render_error(e, key)

        if record is not None:
            log.info("transfer.recovered", amount=str(record.amount), stage="probe")
            return render_success(record.amount, key, recovered=True)

        # 3-5. Lock, critical section, release
        try:
            async with self._hold_lock(key):
                result = await self._critical_section(key, request, headers)
        except ConflictError as e:
            log.info("transfer.conflict")
            return render_error(e, key)
        except InfrastructureError as e:
            log.error("transfer.lock_failed", error=e.message)
            return render_error(e, key)

        # 6. Cache population
        if 200 <= result.status < 300:
            await self._populate_cache(key, result)

        return result

    async def _critical_section(
        self,
        key: str,
        request: TransferRequest,
        headers: Mapping[str, str],
    ) -> TransferResult:
        log = logger.bind(key=key)

        try:
            record = await self.ledger.get_record(key)
            if record is not None:
                log.info("transfer.recovered", amount=str(record.amount), stage="locked")
                return render_success(record.amount, key, recovered=True)

            try:
                record = await self.ledger.execute_transfer(key, request)
            except RecordRaceLostError:
                log.warning("transfer.record_race_lost")
                return await self._recover_after_race(key)
        except InfrastructureError as e:
            log.error("transfer.ledger_failed", error=e.message)
            return render_error(e, key)
        except TransferError as e:
            log.info(f"transfer.{e.code}", error=e.message)
            return render_error(e, key)

        log.info(
            "transfer.completed",
            from_id=record.from_id,
            to_id=record.to_id,
            amount=str(record.amount),
        )

        try:
            self.fault_injector.maybe_fail(headers)
        except SimulatedCrashError:
            log.warning("fault.injected", point="after_commit")
            raise

        return render_success(record.amount, key)

    async def _recover_after_race(self, key: str) -> TransferResult:
        record = await self.ledger.get_record(key)
        if record is None:
            # The winner's row is not visible yet; let the client retry.
            return render_error(
                ConflictError(
                    f"A transfer with idempotency key {key} is being committed",
                    key=key,
                ),
                key,
            )
        return render_success(record.amount, key, recovered=True)

    @asynccontextmanager
    async def _hold_lock(self, key: str) -> AsyncIterator[None]:
        """Hold the per-key lock for the duration of the block.

        Raises:
            ConflictError: Someone else holds the lock.
            InfrastructureError: The lock store failed on acquisition.
        """
        lock_key = f"{self.config.lock_key_prefix}{key}"
        acquired = await self.locks.try_acquire(lock_key, self.config.lock_ttl_seconds)
        if not acquired:
            raise ConflictError(
                f"A request with idempotency key {key} is currently being processed",
                key=key,
            )

        increment_locks_held()
        started = time.perf_counter()
        try:
            yield
        finally:
            record_critical_section(time.perf_counter() - started)
            decrement_locks_held()
            try:
                await self.locks.release(lock_key)
            except InfrastructureError as e:
                logger.warning("lock.release_failed", key=key, error=e.message)

    async def _probe_cache(self, key: str) -> CachedResponse | None:
        try:
            return await self.cache.get(f"{self.config.cache_key_prefix}{key}")
        except InfrastructureError as e:
            logger.warning("cache.get_failed", key=key, error=e.message)
            return None

    async def _populate_cache(self, key: str, result: TransferResult) -> None:
        try:
            await self.cache.put(
                f"{self.config.cache_key_prefix}{key}",
                to_cached_response(result),
                self.config.response_cache_ttl_seconds,
            )
        except InfrastructureError as e:
            logger.warning("cache.put_failed", key=key, error=e.message)

    def _validate_key(self, key: str) -> None:
        if not key:
            raise MissingKeyError("Missing Idempotency-Key header")
        if len(key) > MAX_KEY_LENGTH:
            raise MalformedRequestError(
                f"Idempotency key exceeds maximum length of {MAX_KEY_LENGTH} characters"
            )

    def _parse_request(self, body: bytes) -> TransferRequest:
        try:
            return TransferRequest.model_validate_json(body)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
                for err in e.errors()
            )
            raise MalformedRequestError(f"Invalid transfer request: {details}") from e

