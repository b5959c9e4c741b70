"""Concurrent stress harness for the transfer endpoint.

Fires N simultaneous POST /transfer requests that share one idempotency key
and checks that exactly one of them executed the transfer. Every other
response must be a duplicate: a cache hit, a recovered answer, or a 409
conflict.

Examples:
    Against a running server::

        report = await run_stress(StressConfig(url="http://localhost:8080/transfer"))
        print(report.format())

    Against an in-process app (no network)::

        transport = httpx.ASGITransport(app=create_app(config, components=components))
        report = await run_stress(
            StressConfig(url="http://testserver/transfer"),
            transport=transport,
        )
"""

import asyncio
import time
from decimal import Decimal

import httpx
from pydantic import BaseModel, Field

from idempotent_transfer.observability.logging import get_logger
from idempotent_transfer.storage.ledger import SQLLedgerStore
from idempotent_transfer.utils.headers import (
    CACHE_HIT_HEADER,
    IDEMPOTENCY_KEY_HEADER,
    RECOVERED_HEADER,
)

logger = get_logger(__name__)

DEFAULT_URL = "http://localhost:8080/transfer"

# The sender is seeded with this many multiples of the amount
SEED_MULTIPLIER = 100


class StressConfig(BaseModel):
    url: str = DEFAULT_URL
    idempotency_key: str = Field(default="stress-test-key-999", min_length=1)
    concurrent_requests: int = Field(default=50, ge=1)
    from_id: int = 1
    to_id: int = 2
    amount: Decimal = Field(default=Decimal("10"), gt=0)
    timeout_seconds: float = Field(default=10.0, gt=0)


class StressReport(BaseModel):
    """Aggregated outcome of one stress run.

    Attributes:
        total: Requests sent.
        first_success: 200 responses that carried neither marker header.
        cache_hits: Responses marked X-Idempotency-Hit: true.
        recovered: Responses marked X-Db-Hit: true.
        conflicts: 409 responses.
        errors: Transport failures and any other status.
        duration_seconds: Wall time of the whole run.
    """

    total: int
    first_success: int = 0
    cache_hits: int = 0
    recovered: int = 0
    conflicts: int = 0
    errors: int = 0
    duration_seconds: float = 0.0

    @property
    def duplicates(self) -> int:
        return self.cache_hits + self.recovered + self.conflicts

    @property
    def passed(self) -> bool:
        return (
            self.first_success == 1
            and self.errors == 0
            and self.duplicates == self.total - 1
        )

    def format(self) -> str:
        rps = self.total / self.duration_seconds if self.duration_seconds > 0 else 0.0
        lines = [
            "TEST RESULTS",
            f"Duration:             {self.duration_seconds:.3f}s",
            f"Requests per second:  {rps:.2f}",
            f"First success:        {self.first_success}",
            f"Cache hits:           {self.cache_hits}",
            f"Recovered:            {self.recovered}",
            f"Conflicts:            {self.conflicts}",
            f"Errors:               {self.errors}",
        ]
        if self.passed:
            lines.append("PASSED: exactly one transfer executed, all duplicates absorbed")
            return "\n".join(lines)

        lines.append("FAILED")
        if self.first_success > 1:
            lines.append(f"  multiple transfers executed ({self.first_success})")
        if self.errors:
            lines.append(f"  errors: {self.errors}")
        if self.duplicates != self.total - 1:
            lines.append(f"  expected {self.total - 1} duplicates, got {self.duplicates}")
        return "\n".join(lines)


def classify(response: httpx.Response) -> str:
    """Bucket a response: cache_hit, recovered, first_success, conflict or error."""
    if response.headers.get(CACHE_HIT_HEADER) == "true":
        return "cache_hit"
    if response.headers.get(RECOVERED_HEADER) == "true":
        return "recovered"
    if response.status_code == 200:
        return "first_success"
    if response.status_code == 409:
        return "conflict"
    return "error"


def seed_accounts(ledger: SQLLedgerStore, config: StressConfig) -> None:
    """Create the schema and give the sender enough balance for the run."""
    ledger.init_schema()
    ledger.seed_accounts(
        {
            config.from_id: config.amount * SEED_MULTIPLIER,
            config.to_id: Decimal("0"),
        }
    )
    logger.info("stress.seeded", from_id=config.from_id, to_id=config.to_id)


async def _send(client: httpx.AsyncClient, config: StressConfig, request_id: int) -> str:
    payload = {
        "from_id": config.from_id,
        "to_id": config.to_id,
        "amount": str(config.amount),
    }
    try:
        response = await client.post(
            config.url,
            json=payload,
            headers={IDEMPOTENCY_KEY_HEADER: config.idempotency_key},
        )
    except httpx.HTTPError as e:
        logger.warning("stress.request_failed", request_id=request_id, error=str(e))
        return "error"

    bucket = classify(response)
    if bucket == "error":
        logger.warning(
            "stress.unexpected_status",
            request_id=request_id,
            status_code=response.status_code,
        )
    return bucket


async def run_stress(
    config: StressConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> StressReport:
    """Send config.concurrent_requests requests at once and tally the results.

    Args:
        config: Target and payload.
        transport: Optional httpx transport, e.g. ASGITransport for an
            in-process app.
    """
    logger.info(
        "stress.started",
        url=config.url,
        key=config.idempotency_key,
        concurrent_requests=config.concurrent_requests,
    )

    started = time.perf_counter()
    async with httpx.AsyncClient(timeout=config.timeout_seconds, transport=transport) as client:
        buckets = await asyncio.gather(
            *(_send(client, config, i) for i in range(config.concurrent_requests))
        )
    duration = time.perf_counter() - started

    report = StressReport(
        total=config.concurrent_requests,
        first_success=buckets.count("first_success"),
        cache_hits=buckets.count("cache_hit"),
        recovered=buckets.count("recovered"),
        conflicts=buckets.count("conflict"),
        errors=buckets.count("error"),
        duration_seconds=duration,
    )
    logger.info("stress.finished", passed=report.passed, **report.model_dump())
    return report
