"""Exception hierarchy for the transfer service.

Every error the transfer path can produce is a subclass of TransferError and
carries the HTTP status and machine-readable code it maps to. Store adapters
translate backend-specific exceptions (Redis, SQLAlchemy) into
InfrastructureError so that nothing backend-specific crosses the
orchestrator boundary.

Examples:
    Translating a backend failure::

        from idempotent_transfer.exceptions import InfrastructureError

        try:
            await client.set(key, "processing", nx=True, ex=ttl)
        except RedisError as e:
            raise InfrastructureError(
                message=f"Lock acquisition failed for {key}: {e}",
                cause=e,
            ) from e

    Mapping an error to a response::

        try:
            await ledger.execute_transfer(key, request)
        except TransferError as e:
            return render_error(e, key)
"""


class TransferError(Exception):
    """Base exception for all transfer-related errors.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status the error maps to.
        code: Short machine-readable error code used in response bodies.
    """

    status_code = 500
    code = "transfer_error"

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class MissingKeyError(TransferError):
    """The request carried no (or an empty) Idempotency-Key header."""

    status_code = 400
    code = "missing_key"


class MalformedRequestError(TransferError):
    """The request body is not a valid transfer request.

    Raised for invalid JSON, missing or mistyped fields, a non-positive
    amount, and transfers whose sender and receiver are the same account.
    """

    status_code = 400
    code = "malformed_request"


class AccountNotFoundError(TransferError):
    """The receiving account does not exist.

    The debit has already been applied inside the transaction when this is
    detected, so raising it rolls the whole unit back.

    Attributes:
        account_id: The id that matched no account row.
    """

    status_code = 404
    code = "account_not_found"

    def __init__(self, message: str, account_id: int) -> None:
        super().__init__(message)
        self.account_id = account_id


class ConflictError(TransferError):
    """Another attempt with the same idempotency key holds the lock.

    This is retryable: the client should back off and resend the same
    request with the same key.

    Attributes:
        key: The idempotency key whose lock is held.
    """

    status_code = 409
    code = "conflict"

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class InsufficientFundsError(TransferError):
    """The sender's balance is lower than the transfer amount.

    Raised when the conditional debit matches zero rows. Nothing is
    committed. Not retryable without different input.

    Attributes:
        account_id: The sender account id.
    """

    status_code = 422
    code = "insufficient_funds"

    def __init__(self, message: str, account_id: int) -> None:
        super().__init__(message)
        self.account_id = account_id


class InfrastructureError(TransferError):
    """A durable store or lock/cache store operation failed.

    This covers connection failures, timeouts, and any other backend error
    that prevents an operation from completing. Retryable.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, when there is one.

    Examples:
        Raising from a SQLAlchemy failure::

            try:
                session.commit()
            except SQLAlchemyError as e:
                raise InfrastructureError(
                    message=f"Ledger commit failed: {e}",
                    cause=e,
                ) from e
    """

    status_code = 500
    code = "infrastructure_error"

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class RecordRaceLostError(TransferError):
    """The idempotency record insert hit the uniqueness constraint.

    Another attempt with the same key already committed its transfer. The
    orchestrator never surfaces this to clients; it re-probes the durable
    record and answers with the recovered response instead.

    Attributes:
        key: The idempotency key that already has a record.
    """

    code = "record_race_lost"

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class SimulatedCrashError(TransferError):
    """Deliberate post-commit failure raised by the fault injector.

    It propagates out of the orchestrator (after the lock is released and
    without populating the response cache) so the client sees a failed
    request even though the transfer committed.
    """

    status_code = 500
    code = "simulated_crash"
