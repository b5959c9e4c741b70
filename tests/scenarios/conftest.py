"""Fixtures shared by the scenario tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from idempotent_transfer.api.app import ServiceComponents, create_app
from idempotent_transfer.config import TransferConfig
from idempotent_transfer.core.orchestrator import TransferOrchestrator
from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.storage.memory import MemoryEphemeralStore


@pytest.fixture
def app(
    transfer_config: TransferConfig,
    ledger: SQLLedgerStore,
    memory_store: MemoryEphemeralStore,
    orchestrator: TransferOrchestrator,
) -> FastAPI:
    """The transfer API over the test ledger and in-memory store (chaos enabled)."""
    return create_app(
        transfer_config,
        components=ServiceComponents(ledger, memory_store, orchestrator),
    )


@pytest.fixture
def client(app: FastAPI):
    with TestClient(app) as test_client:
        yield test_client
