"""Prometheus metrics for the transfer service.

Metrics:

- transfer_requests_total{outcome, status_code}: every orchestrator result
- transfer_critical_section_seconds: time spent holding a per-key lock
- transfer_locks_held: locks currently held by this process
- transfer_cleanup_operations_total / transfer_cleanup_entries_removed_total:
  sweeps of the in-process ephemeral store

Examples:
    >>> record_request("cache_hit", 200)
    >>> record_critical_section(0.012)
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

requests_total = Counter(
    "transfer_requests_total",
    "Total number of transfer requests by outcome",
    ["outcome", "status_code"],
)

critical_section_seconds = Histogram(
    "transfer_critical_section_seconds",
    "Time spent holding a per-key lock (ledger mutation included)",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

locks_held = Gauge(
    "transfer_locks_held",
    "Number of per-key locks currently held by this process",
)

cleanup_operations = Counter(
    "transfer_cleanup_operations_total",
    "Total number of ephemeral store sweeps performed",
)

cleanup_entries_removed = Counter(
    "transfer_cleanup_entries_removed_total",
    "Total number of expired locks and cached responses removed by sweeps",
)


def record_request(outcome: str, status_code: int) -> None:
    """Record a finished orchestrator invocation.

    Args:
        outcome: TransferOutcome value (completed, cache_hit, conflict, ...)
        status_code: HTTP status code of the response
    """
    requests_total.labels(outcome=outcome, status_code=str(status_code)).inc()


def record_critical_section(seconds: float) -> None:
    critical_section_seconds.observe(seconds)


def increment_locks_held() -> None:
    locks_held.inc()


def decrement_locks_held() -> None:
    locks_held.dec()


def record_cleanup(entries_removed: int) -> None:
    """Record a sweep of the in-process ephemeral store.

    Args:
        entries_removed: Number of expired entries removed
    """
    cleanup_operations.inc()
    cleanup_entries_removed.inc(entries_removed)


def render_latest() -> tuple[bytes, str]:
    """Render the default registry in the Prometheus text format.

    Returns:
        The exposition body and its content type.
    """
    return generate_latest(), CONTENT_TYPE_LATEST
