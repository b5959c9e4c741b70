"""Core transfer logic.

- orchestrator: the idempotency protocol (cache -> record -> lock -> ledger)
- replay: response rendering and cached replay
- fault: post-commit fault injection for crash-recovery testing
- cleanup: TTL sweeping for the in-process ephemeral store

The core is framework-agnostic; api.app wraps it in FastAPI.
"""

from idempotent_transfer.core.fault import FaultInjector, HeaderFaultInjector, NoFaultInjector
from idempotent_transfer.core.orchestrator import TransferOrchestrator

__all__ = [
    "FaultInjector",
    "HeaderFaultInjector",
    "NoFaultInjector",
    "TransferOrchestrator",
]
