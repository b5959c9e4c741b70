"""Core type definitions for the transfer service.

This module provides the data structures that flow through the transfer
protocol: the inbound transfer request, the durable idempotency record, the
cached response stored in the ephemeral store, and the outcome
classification returned by the orchestrator.

Examples:
    Parsing a request body::

        from idempotent_transfer.models import TransferRequest

        request = TransferRequest.model_validate_json(
            b'{"from_id": 1, "to_id": 2, "amount": 10}'
        )
        request.amount  # Decimal('10')

    Caching a rendered response::

        cached = CachedResponse.from_body(
            status=200,
            headers={"content-type": "application/json"},
            body=b'{"status":"success"}',
        )
        cached.get_body_bytes()  # b'{"status":"success"}'
"""

import base64
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class TransferOutcome(str, Enum):
    """Classification of a single orchestrator invocation.

    Attributes:
        COMPLETED: This invocation executed the ledger mutation.
        CACHE_HIT: Served verbatim from the response cache.
        RECOVERED: Synthesized from the durable idempotency record.
        CONFLICT: Another attempt with the same key holds the lock.
        INVALID: Missing key or malformed request.
        ACCOUNT_NOT_FOUND: The receiving account does not exist.
        INSUFFICIENT_FUNDS: The sender cannot cover the amount.
        ERROR: Durable or ephemeral store failure.
    """

    COMPLETED = "completed"
    CACHE_HIT = "cache_hit"
    RECOVERED = "recovered"
    CONFLICT = "conflict"
    INVALID = "invalid"
    ACCOUNT_NOT_FOUND = "account_not_found"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ERROR = "error"

    @property
    def is_success(self) -> bool:
        """True for the outcomes that answer 200."""
        return self in (
            TransferOutcome.COMPLETED,
            TransferOutcome.CACHE_HIT,
            TransferOutcome.RECOVERED,
        )


class TransferRequest(BaseModel):
    """A money transfer between two existing accounts.

    Attributes:
        from_id: Sender account id.
        to_id: Receiver account id.
        amount: Positive amount with at most two decimal places.
    """

    from_id: int = Field(..., description="Sender account id")
    to_id: int = Field(..., description="Receiver account id")
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Amount to move; must be positive",
        examples=["10", "99.95"],
    )

    @model_validator(mode="after")
    def validate_distinct_accounts(self) -> "TransferRequest":
        """Reject transfers from an account to itself."""
        if self.from_id == self.to_id:
            raise ValueError("from_id and to_id must be different accounts")
        return self


class IdempotencyRecord(BaseModel):
    """The durable proof that a transfer for a key has completed.

    One row of the transactions table. Written in the same database
    transaction as the balance mutation and never modified afterwards.

    Attributes:
        idempotency_key: The client-supplied key (unique across all records).
        from_id: Sender account id.
        to_id: Receiver account id.
        amount: Amount that was moved.
        created_at: Commit timestamp of the transfer.
    """

    idempotency_key: str = Field(..., min_length=1, max_length=255)
    from_id: int
    to_id: int
    amount: Decimal
    created_at: datetime | None = None


class CachedResponse(BaseModel):
    """A rendered success response kept in the ephemeral store.

    The body is base64-encoded so it survives JSON serialization in Redis
    unchanged; duplicate requests receive these exact bytes.

    Attributes:
        status: HTTP status code (2xx only).
        headers: Response headers to replay.
        body_b64: Base64-encoded response body.
    """

    status: int = Field(..., ge=200, le=299)
    headers: dict[str, str] = Field(default_factory=dict)
    body_b64: str

    @field_validator("body_b64")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except Exception as e:
            raise ValueError(f"Invalid base64 encoding: {e}") from e
        return v

    @classmethod
    def from_body(cls, status: int, headers: dict[str, str], body: bytes) -> "CachedResponse":
        return cls(
            status=status,
            headers=headers,
            body_b64=base64.b64encode(body).decode("ascii"),
        )

    def get_body_bytes(self) -> bytes:
        """Decode and return the response body as bytes.

        Examples:
            >>> CachedResponse(status=200, headers={}, body_b64="SGVsbG8=").get_body_bytes()
            b'Hello'
        """
        return base64.b64decode(self.body_b64)


class TransferResult:
    """What the orchestrator hands back to the HTTP layer.

    Attributes:
        outcome: Classification of this invocation.
        status: HTTP status code.
        headers: Response headers, including the idempotency markers.
        body: Response body bytes.
    """

    def __init__(
        self,
        outcome: TransferOutcome,
        status: int,
        headers: dict[str, str],
        body: bytes,
    ) -> None:
        self.outcome = outcome
        self.status = status
        self.headers = headers
        self.body = body

    def __repr__(self) -> str:
        return f"TransferResult(outcome={self.outcome.value!r}, status={self.status})"
