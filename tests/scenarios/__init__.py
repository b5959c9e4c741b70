"""End-to-end scenarios for the idempotent transfer endpoint.

Each scenario drives the FastAPI app (or the orchestrator directly, for
concurrency) against a SQLite ledger and the in-memory lock/cache store and
checks both the HTTP answers and the resulting balances.
"""
