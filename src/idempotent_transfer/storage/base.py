"""Store protocols for the transfer service.

The orchestrator talks to three collaborators, all injected at construction:

- LockStore: best-effort, TTL-bounded mutual exclusion keyed by idempotency
  key. Used to serialize concurrent first attempts of the same transfer.
- ResponseCache: short-lived copies of rendered success responses so that
  duplicates get byte-identical output without touching the ledger.
- LedgerStore: the durable, transactional store holding account balances
  and the idempotency records. The record and the balance mutation commit
  together.

LockStore and ResponseCache are disposable: losing their contents affects
latency and availability, never correctness, because the durable record is
the ground truth. A single backend (Redis, or the in-process store) usually
implements both.

Error Handling:
    Implementations raise InfrastructureError for backend failures and the
    business errors defined in idempotent_transfer.exceptions for business
    outcomes. They must not leak backend-specific exceptions.

Examples:
    Using a lock store::

        if not await locks.try_acquire("lock:payment-123", ttl_seconds=10):
            raise ConflictError("Transfer in flight", key="payment-123")
        try:
            ...
        finally:
            await locks.release("lock:payment-123")
"""

from typing import Protocol, runtime_checkable

from idempotent_transfer.models import CachedResponse, IdempotencyRecord, TransferRequest


@runtime_checkable
class LockStore(Protocol):
    """Protocol for the distributed mutual-exclusion lock.

    There is no reentrancy and no ownership token: whoever holds the key
    holds the lock, and a crashed holder's lock is reclaimed only by TTL
    expiry.
    """

    async def try_acquire(self, key: str, ttl_seconds: int) -> bool:
        """Atomically create the lock entry only if it is absent.

        Args:
            key: Fully-qualified lock key.
            ttl_seconds: Lifetime of the entry.

        Returns:
            True if this caller now holds the lock, False if anyone already did.
        """
        ...

    async def release(self, key: str) -> None:
        """Delete the lock entry. Deleting an absent entry is not an error."""
        ...


@runtime_checkable
class ResponseCache(Protocol):
    """Protocol for the short-lived response cache."""

    async def get(self, key: str) -> CachedResponse | None:
        """Return the cached response for key, or None if absent or expired."""
        ...

    async def put(self, key: str, response: CachedResponse, ttl_seconds: int) -> None:
        """Store a response for key with the given lifetime."""
        ...


@runtime_checkable
class LedgerStore(Protocol):
    """Protocol for the durable ledger and idempotency record store."""

    async def get_record(self, idempotency_key: str) -> IdempotencyRecord | None:
        """Return the committed record for idempotency_key, or None."""
        ...

    async def execute_transfer(
        self,
        idempotency_key: str,
        request: TransferRequest,
    ) -> IdempotencyRecord:
        """Debit, credit, and record the transfer as one atomic unit.

        Returns:
            The committed idempotency record.

        Raises:
            InsufficientFundsError: The conditional debit matched no row.
            AccountNotFoundError: The receiver does not exist.
            RecordRaceLostError: A record for the key already exists.
            InfrastructureError: Any other storage failure.
        """
        ...
