"""
Pytest configuration and shared fixtures for idempotent_transfer tests.
"""

from decimal import Decimal
from pathlib import Path

import pytest

from idempotent_transfer.config import TransferConfig
from idempotent_transfer.core.fault import HeaderFaultInjector
from idempotent_transfer.core.orchestrator import TransferOrchestrator
from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.storage.memory import MemoryEphemeralStore

# Starting balances for every ledger fixture
SEED_BALANCES = {1: Decimal("1000"), 2: Decimal("0"), 3: Decimal("50")}


@pytest.fixture
def sample_idempotency_key() -> str:
    """Provide a sample idempotency key for tests."""
    return "test-key-12345"


@pytest.fixture
def sample_request_body() -> bytes:
    """Provide a sample transfer body (10 from account 1 to account 2)."""
    return b'{"from_id": 1, "to_id": 2, "amount": 10}'


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'transfers.db'}"


@pytest.fixture
def transfer_config(database_url: str) -> TransferConfig:
    return TransferConfig(database_url=database_url, chaos_mode=True)


@pytest.fixture
def ledger(transfer_config: TransferConfig):
    """A SQLite ledger with the schema created and SEED_BALANCES loaded."""
    store = SQLLedgerStore.from_url(transfer_config.database_url)
    store.init_schema()
    store.seed_accounts(SEED_BALANCES)
    yield store
    store.close()


@pytest.fixture
def memory_store() -> MemoryEphemeralStore:
    return MemoryEphemeralStore()


@pytest.fixture
def orchestrator(
    ledger: SQLLedgerStore,
    memory_store: MemoryEphemeralStore,
    transfer_config: TransferConfig,
) -> TransferOrchestrator:
    """Orchestrator over the SQLite ledger and the in-memory store, chaos enabled."""
    return TransferOrchestrator(
        ledger=ledger,
        locks=memory_store,
        cache=memory_store,
        config=transfer_config,
        fault_injector=HeaderFaultInjector(enabled=True),
    )
