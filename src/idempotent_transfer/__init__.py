"""
Idempotent money-transfer service.

This package provides an HTTP transfer endpoint whose monetary effect
(debit sender, credit receiver, record ledger entry) happens at most once
per client-supplied idempotency key, even under retries, concurrent races,
or a crash between commit and response.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
