"""Response rendering and replay for the transfer endpoint.

Every response body the orchestrator produces is rendered here, so that a
fresh success, a cached replay, and a recovered success agree on format:

    {"status":"success","message":"Transfer Complete","amount":10}
    {"status":"success","message":"Transfer Complete (Recovered)","amount":10}
    {"error":"insufficient_funds","message":"Insufficient funds in account 1"}

Cached replays return the stored bytes unchanged; only the marker headers
are recomputed.

Examples:
    >>> result = render_success(Decimal("10"), "payment-123")
    >>> result.body
    b'{"status":"success","message":"Transfer Complete","amount":10}'
    >>> result.headers["X-Idempotency-Hit"]
    'false'
"""

import json
from decimal import Decimal

from idempotent_transfer.exceptions import (
    AccountNotFoundError,
    ConflictError,
    InsufficientFundsError,
    MalformedRequestError,
    MissingKeyError,
    TransferError,
)
from idempotent_transfer.models import CachedResponse, TransferOutcome, TransferResult
from idempotent_transfer.utils.headers import add_marker_headers, filter_response_headers

JSON_HEADERS = {"Content-Type": "application/json"}

SUCCESS_MESSAGE = "Transfer Complete"
RECOVERED_MESSAGE = "Transfer Complete (Recovered)"

# Seconds a client should wait before retrying an in-flight key
CONFLICT_RETRY_AFTER = "1"

_ERROR_OUTCOMES: list[tuple[type[TransferError], TransferOutcome]] = [
    (MissingKeyError, TransferOutcome.INVALID),
    (MalformedRequestError, TransferOutcome.INVALID),
    (AccountNotFoundError, TransferOutcome.ACCOUNT_NOT_FOUND),
    (ConflictError, TransferOutcome.CONFLICT),
    (InsufficientFundsError, TransferOutcome.INSUFFICIENT_FUNDS),
]


def json_amount(amount: Decimal) -> int | float:
    """Render an amount as a JSON number: integral amounts without a fraction."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def _dump(payload: dict[str, object]) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def render_success(
    amount: Decimal,
    idempotency_key: str,
    recovered: bool = False,
) -> TransferResult:
    """Render a 200 success response.

    Args:
        amount: The transferred amount.
        idempotency_key: Key echoed in the response headers.
        recovered: True when synthesized from the durable record.
    """
    body = _dump(
        {
            "status": "success",
            "message": RECOVERED_MESSAGE if recovered else SUCCESS_MESSAGE,
            "amount": json_amount(amount),
        }
    )
    return TransferResult(
        outcome=TransferOutcome.RECOVERED if recovered else TransferOutcome.COMPLETED,
        status=200,
        headers=add_marker_headers(JSON_HEADERS, idempotency_key, recovered=recovered),
        body=body,
    )


def render_error(error: TransferError, idempotency_key: str | None) -> TransferResult:
    """Render the response for a business or infrastructure error."""
    outcome = TransferOutcome.ERROR
    for error_type, mapped in _ERROR_OUTCOMES:
        if isinstance(error, error_type):
            outcome = mapped
            break

    headers = dict(JSON_HEADERS)
    if outcome is TransferOutcome.CONFLICT:
        headers["Retry-After"] = CONFLICT_RETRY_AFTER

    return TransferResult(
        outcome=outcome,
        status=error.status_code,
        headers=add_marker_headers(headers, idempotency_key),
        body=_dump({"error": error.code, "message": error.message}),
    )


def to_cached_response(result: TransferResult) -> CachedResponse:
    """Capture a success result for the response cache.

    Raises:
        ValueError: If the result is not a 2xx response.
    """
    if not 200 <= result.status < 300:
        raise ValueError(f"Only 2xx responses are cached, got {result.status}")
    return CachedResponse.from_body(
        status=result.status,
        headers=filter_response_headers(result.headers),
        body=result.body,
    )


def replay_cached(cached: CachedResponse, idempotency_key: str) -> TransferResult:
    """Rebuild a response from the cache, byte-identical in body and status."""
    return TransferResult(
        outcome=TransferOutcome.CACHE_HIT,
        status=cached.status,
        headers=add_marker_headers(
            filter_response_headers(cached.headers),
            idempotency_key,
            cache_hit=True,
        ),
        body=cached.get_body_bytes(),
    )
