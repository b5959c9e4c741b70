"""Fault injection for validating crash recovery.

The orchestrator calls FaultInjector.maybe_fail() exactly once per executed
transfer: after the ledger transaction commits and before the response is
cached or returned. An injector that raises there reproduces "the process
died after committing", and the next retry with the same key must be
answered from the durable record.

Examples:
    Enabled injector::

        injector = HeaderFaultInjector(enabled=True, header_name="X-Simulate-Chaos")
        injector.maybe_fail({"X-Simulate-Chaos": "true"})  # raises SimulatedCrashError
        injector.maybe_fail({})                             # no-op
"""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from idempotent_transfer.exceptions import SimulatedCrashError
from idempotent_transfer.utils.headers import get_header_value


@runtime_checkable
class FaultInjector(Protocol):
    def maybe_fail(self, trigger: Mapping[str, str]) -> None:
        """Raise SimulatedCrashError if trigger asks for it, otherwise return."""
        ...


class NoFaultInjector:
    """Injector that never fails. The default outside chaos mode."""

    def maybe_fail(self, trigger: Mapping[str, str]) -> None:
        return None


class HeaderFaultInjector:
    """Fails when enabled and the request carries header_name: true.

    Attributes:
        enabled: Master switch, normally TransferConfig.chaos_mode.
        header_name: Request header checked case-insensitively.
    """

    def __init__(self, enabled: bool, header_name: str = "X-Simulate-Chaos") -> None:
        self.enabled = enabled
        self.header_name = header_name

    def maybe_fail(self, trigger: Mapping[str, str]) -> None:
        if not self.enabled:
            return
        value = get_header_value(trigger, self.header_name, "")
        if value is not None and value.strip().lower() == "true":
            raise SimulatedCrashError("Simulated crash after commit")
