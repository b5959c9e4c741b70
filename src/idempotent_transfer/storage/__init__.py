"""Storage backends for the transfer service.

Available backends:
    - SQLLedgerStore: accounts and idempotency records (SQLAlchemy/SQLModel)
    - MemoryEphemeralStore: in-process locks and cached responses
    - RedisEphemeralStore: Redis-backed locks and cached responses
"""

from idempotent_transfer.storage.base import LedgerStore, LockStore, ResponseCache
from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.storage.memory import MemoryEphemeralStore
from idempotent_transfer.storage.redis import RedisEphemeralStore

__all__ = [
    "LedgerStore",
    "LockStore",
    "ResponseCache",
    "SQLLedgerStore",
    "MemoryEphemeralStore",
    "RedisEphemeralStore",
]
