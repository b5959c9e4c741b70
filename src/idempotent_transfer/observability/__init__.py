"""Observability utilities for the transfer service.

This package provides:
- Prometheus metrics for outcomes, lock hold times, and sweeps
- Structured logging with contextual information
"""

from idempotent_transfer.observability.logging import (
    configure_logging,
    get_logger,
    request_context,
)
from idempotent_transfer.observability.metrics import (
    record_cleanup,
    record_critical_section,
    record_request,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "request_context",
    "record_request",
    "record_critical_section",
    "record_cleanup",
]
