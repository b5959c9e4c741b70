"""Unit tests for response rendering and cached replay."""

import json
from decimal import Decimal

import pytest

from idempotent_transfer.core.replay import (
    CONFLICT_RETRY_AFTER,
    RECOVERED_MESSAGE,
    SUCCESS_MESSAGE,
    json_amount,
    render_error,
    render_success,
    replay_cached,
    to_cached_response,
)
from idempotent_transfer.exceptions import (
    AccountNotFoundError,
    ConflictError,
    InfrastructureError,
    InsufficientFundsError,
    MalformedRequestError,
    MissingKeyError,
)
from idempotent_transfer.models import TransferOutcome


class TestJsonAmount:
    def test_integral(self) -> None:
        assert json_amount(Decimal("10")) == 10
        assert isinstance(json_amount(Decimal("10.00")), int)

    def test_fractional(self) -> None:
        assert json_amount(Decimal("10.50")) == 10.5


class TestRenderSuccess:
    def test_fresh_success(self) -> None:
        result = render_success(Decimal("10"), "payment-1")

        assert result.outcome is TransferOutcome.COMPLETED
        assert result.status == 200
        assert result.body == b'{"status":"success","message":"Transfer Complete","amount":10}'
        assert result.headers["X-Idempotency-Hit"] == "false"
        assert "X-Db-Hit" not in result.headers
        assert result.headers["Idempotency-Key"] == "payment-1"

    def test_recovered_success(self) -> None:
        result = render_success(Decimal("10"), "payment-1", recovered=True)

        assert result.outcome is TransferOutcome.RECOVERED
        assert json.loads(result.body)["message"] == RECOVERED_MESSAGE
        assert result.headers["X-Db-Hit"] == "true"
        assert result.headers["X-Idempotency-Hit"] == "false"

    def test_messages_differ(self) -> None:
        assert SUCCESS_MESSAGE != RECOVERED_MESSAGE


class TestRenderError:
    @pytest.mark.parametrize(
        "error, outcome, status",
        [
            (MissingKeyError("missing"), TransferOutcome.INVALID, 400),
            (MalformedRequestError("bad"), TransferOutcome.INVALID, 400),
            (AccountNotFoundError("none", account_id=9), TransferOutcome.ACCOUNT_NOT_FOUND, 404),
            (ConflictError("busy", key="k"), TransferOutcome.CONFLICT, 409),
            (InsufficientFundsError("poor", account_id=1), TransferOutcome.INSUFFICIENT_FUNDS, 422),
            (InfrastructureError("down"), TransferOutcome.ERROR, 500),
        ],
    )
    def test_outcome_and_status(self, error, outcome, status) -> None:
        result = render_error(error, "k")
        assert result.outcome is outcome
        assert result.status == status
        assert json.loads(result.body) == {"error": error.code, "message": error.message}

    def test_conflict_has_retry_after(self) -> None:
        result = render_error(ConflictError("busy", key="k"), "k")
        assert result.headers["Retry-After"] == CONFLICT_RETRY_AFTER

    def test_missing_key_not_echoed(self) -> None:
        result = render_error(MissingKeyError("missing"), None)
        assert "Idempotency-Key" not in result.headers


class TestCachedReplay:
    def test_replay_is_byte_identical(self) -> None:
        original = render_success(Decimal("12.50"), "payment-1")
        cached = to_cached_response(original)

        replayed = replay_cached(cached, "payment-1")

        assert replayed.outcome is TransferOutcome.CACHE_HIT
        assert replayed.status == original.status
        assert replayed.body == original.body
        assert replayed.headers["X-Idempotency-Hit"] == "true"
        assert replayed.headers["Content-Type"] == "application/json"

    def test_markers_not_stored(self) -> None:
        cached = to_cached_response(render_success(Decimal("1"), "payment-1"))
        assert "X-Idempotency-Hit" not in cached.headers
        assert "Idempotency-Key" not in cached.headers

    def test_errors_not_cacheable(self) -> None:
        with pytest.raises(ValueError, match="Only 2xx responses are cached"):
            to_cached_response(render_error(ConflictError("busy", key="k"), "k"))
