"""Scenario 2: Conflicts and Rejected Requests

- A key whose lock is held answers 409 with Retry-After and moves no money
- Once the lock is released the same key executes normally
- Missing or blank keys answer 400 and touch no store
- Malformed bodies, non-positive amounts and self-transfers answer 400
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.storage.memory import MemoryEphemeralStore

TRANSFER = {"from_id": 1, "to_id": 2, "amount": 10}


class TestLockConflict:
    def test_held_lock_is_conflict(
        self,
        client: TestClient,
        memory_store: MemoryEphemeralStore,
        ledger: SQLLedgerStore,
    ) -> None:
        client.portal.call(memory_store.try_acquire, "lock:payment-1", 10)

        response = client.post("/transfer", json=TRANSFER, headers={"Idempotency-Key": "payment-1"})

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"
        assert response.headers["Retry-After"] == "1"
        assert response.headers["X-Idempotency-Hit"] == "false"
        assert ledger.get_balance(1) == Decimal("1000")

    def test_retry_after_release_succeeds(
        self,
        client: TestClient,
        memory_store: MemoryEphemeralStore,
        ledger: SQLLedgerStore,
    ) -> None:
        client.portal.call(memory_store.try_acquire, "lock:payment-1", 10)
        first = client.post("/transfer", json=TRANSFER, headers={"Idempotency-Key": "payment-1"})
        client.portal.call(memory_store.release, "lock:payment-1")
        second = client.post("/transfer", json=TRANSFER, headers={"Idempotency-Key": "payment-1"})

        assert first.status_code == 409
        assert second.status_code == 200
        assert second.headers["X-Idempotency-Hit"] == "false"
        assert ledger.get_balance(1) == Decimal("990")

    def test_conflict_is_not_cached(
        self, client: TestClient, memory_store: MemoryEphemeralStore
    ) -> None:
        client.portal.call(memory_store.try_acquire, "lock:payment-1", 10)
        client.post("/transfer", json=TRANSFER, headers={"Idempotency-Key": "payment-1"})

        assert client.portal.call(memory_store.get, "idempotency:payment-1") is None


class TestRejectedRequests:
    def test_missing_key(self, client: TestClient, ledger: SQLLedgerStore) -> None:
        response = client.post("/transfer", json=TRANSFER)

        assert response.status_code == 400
        assert response.json() == {
            "error": "missing_key",
            "message": "Missing Idempotency-Key header",
        }
        assert ledger.get_balance(1) == Decimal("1000")

    def test_blank_key(self, client: TestClient) -> None:
        response = client.post("/transfer", json=TRANSFER, headers={"Idempotency-Key": "  "})
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b'{"from_id": 1, "to_id": 2}',
            b'{"from_id": 1, "to_id": 2, "amount": 0}',
            b'{"from_id": 1, "to_id": 2, "amount": -5}',
            b'{"from_id": 1, "to_id": 1, "amount": 5}',
        ],
    )
    def test_malformed_body(
        self,
        client: TestClient,
        memory_store: MemoryEphemeralStore,
        ledger: SQLLedgerStore,
        body: bytes,
    ) -> None:
        response = client.post(
            "/transfer",
            content=body,
            headers={"Idempotency-Key": "payment-1", "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "malformed_request"
        assert ledger.count_records() == 0
        assert client.portal.call(memory_store.is_locked, "lock:payment-1") is False

    def test_rejected_key_can_be_reused(self, client: TestClient) -> None:
        bad = client.post(
            "/transfer",
            json={"from_id": 1, "to_id": 2, "amount": 0},
            headers={"Idempotency-Key": "payment-1"},
        )
        good = client.post("/transfer", json=TRANSFER, headers={"Idempotency-Key": "payment-1"})

        assert bad.status_code == 400
        assert good.status_code == 200
