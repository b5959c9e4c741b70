"""Scenario 3: Concurrent Duplicates

- 50 simultaneous requests with one key execute the transfer exactly once
- Every other request is a cache hit, a recovered answer, or a 409
- No request errors; balances reflect exactly one transfer
- Concurrent transfers with distinct keys from one sender never overdraw it
- The stress harness reports a pass against the in-process app
"""

import asyncio
from collections import Counter
from decimal import Decimal

import httpx
import pytest
from fastapi import FastAPI

from idempotent_transfer.core.orchestrator import TransferOrchestrator
from idempotent_transfer.models import TransferOutcome
from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.stress import StressConfig, StressReport, classify, run_stress

BODY = b'{"from_id": 1, "to_id": 2, "amount": 10}'

DUPLICATE_OUTCOMES = {
    TransferOutcome.CACHE_HIT,
    TransferOutcome.RECOVERED,
    TransferOutcome.CONFLICT,
}


@pytest.mark.asyncio
async def test_fifty_concurrent_duplicates_execute_once(
    orchestrator: TransferOrchestrator, ledger: SQLLedgerStore
) -> None:
    results = await asyncio.gather(
        *(orchestrator.execute(BODY, "stress-key") for _ in range(50))
    )

    outcomes = Counter(result.outcome for result in results)
    assert outcomes[TransferOutcome.COMPLETED] == 1
    assert sum(outcomes[o] for o in DUPLICATE_OUTCOMES) == 49
    assert all(result.status in (200, 409) for result in results)

    assert ledger.get_balance(1) == Decimal("990")
    assert ledger.get_balance(2) == Decimal("10")
    assert ledger.count_records() == 1


@pytest.mark.asyncio
async def test_all_successful_answers_agree_on_amount(
    orchestrator: TransferOrchestrator,
) -> None:
    results = await asyncio.gather(
        *(orchestrator.execute(BODY, "stress-key") for _ in range(20))
    )

    for result in results:
        if result.status == 200:
            assert b'"amount":10' in result.body


@pytest.mark.asyncio
async def test_distinct_keys_never_overdraw(
    orchestrator: TransferOrchestrator, ledger: SQLLedgerStore
) -> None:
    # Account 3 holds 50.
    body = b'{"from_id": 3, "to_id": 2, "amount": 20}'

    results = await asyncio.gather(
        *(orchestrator.execute(body, f"drain-{i}") for i in range(10))
    )

    outcomes = Counter(result.outcome for result in results)
    assert outcomes[TransferOutcome.COMPLETED] == 2
    assert outcomes[TransferOutcome.INSUFFICIENT_FUNDS] == 8
    assert ledger.get_balance(3) == Decimal("10")
    assert ledger.get_balance(3) >= 0
    assert ledger.total_balance() == Decimal("1050")


@pytest.mark.asyncio
async def test_stress_harness_passes(app: FastAPI, ledger: SQLLedgerStore) -> None:
    transport = httpx.ASGITransport(app=app)

    report = await run_stress(
        StressConfig(url="http://testserver/transfer", concurrent_requests=50),
        transport=transport,
    )

    assert report.passed, report.format()
    assert report.first_success == 1
    assert report.errors == 0
    assert ledger.get_balance(1) == Decimal("990")


class TestStressReport:
    def test_classify(self) -> None:
        request = httpx.Request("POST", "http://testserver/transfer")
        assert classify(httpx.Response(200, headers={"X-Idempotency-Hit": "true"}, request=request)) == "cache_hit"
        assert classify(httpx.Response(200, headers={"X-Db-Hit": "true"}, request=request)) == "recovered"
        assert classify(httpx.Response(200, request=request)) == "first_success"
        assert classify(httpx.Response(409, request=request)) == "conflict"
        assert classify(httpx.Response(500, request=request)) == "error"

    def test_double_spend_fails(self) -> None:
        report = StressReport(total=3, first_success=2, conflicts=1)
        assert not report.passed
        assert "multiple transfers executed (2)" in report.format()

    def test_clean_run_passes(self) -> None:
        report = StressReport(total=3, first_success=1, cache_hits=1, conflicts=1)
        assert report.passed
        assert "PASSED" in report.format()
