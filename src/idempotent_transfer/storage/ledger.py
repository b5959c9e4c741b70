"""Durable ledger and idempotency record store on SQLAlchemy/SQLModel.

SQLLedgerStore owns the accounts and transactions tables. The transfer is a
single database transaction:

1. Conditional debit:
   UPDATE accounts SET balance = balance - :amount
   WHERE id = :from_id AND balance >= :amount
   Zero rows -> InsufficientFundsError, rollback.
2. Credit:
   UPDATE accounts SET balance = balance + :amount WHERE id = :to_id
   Zero rows -> AccountNotFoundError, rollback.
3. INSERT INTO transactions (..., idempotency_key)
   Uniqueness violation -> RecordRaceLostError, rollback.

The conditional debit is what keeps balances non-negative when distinct
transfers hit the same sender concurrently; application code never reads a
balance and writes it back.

Amounts and balances are stored as integer cents (schema.Money), so the
comparison in the conditional debit is exact on every backend.

The engine is synchronous, so every public coroutine runs its database work
in a worker thread via asyncio.to_thread and the event loop is never blocked
by a slow query.

Examples:
    Bootstrapping and seeding::

        store = SQLLedgerStore.from_url("sqlite:///transfers.db")
        store.init_schema()
        store.seed_accounts({1: Decimal("1000"), 2: Decimal("0")})

    Executing a transfer::

        record = await store.execute_transfer(
            "payment-123",
            TransferRequest(from_id=1, to_id=2, amount=Decimal("10")),
        )
"""

import asyncio
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import func, insert, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from idempotent_transfer.exceptions import (
    AccountNotFoundError,
    InfrastructureError,
    InsufficientFundsError,
    RecordRaceLostError,
)
from idempotent_transfer.models import IdempotencyRecord, TransferRequest
from idempotent_transfer.observability.logging import get_logger
from idempotent_transfer.storage.schema import Account, Money, TransactionRow

logger = get_logger(__name__)


def create_engine_for_url(database_url: str, timeout_seconds: float = 5.0) -> Engine:
    """Create an engine with a bounded wait for locks or pool checkout.

    SQLite gets a busy timeout and is allowed across threads; other
    databases get a pool checkout timeout and connection liveness checks.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )
    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
    )


def _to_record(row: TransactionRow) -> IdempotencyRecord:
    return IdempotencyRecord(
        idempotency_key=row.idempotency_key,
        from_id=row.from_id,
        to_id=row.to_id,
        amount=row.amount,
        created_at=row.created_at,
    )


class SQLLedgerStore:
    """Accounts and idempotency records in one transactional database.

    Attributes:
        engine: SQLAlchemy engine. The store disposes it on close().
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str, timeout_seconds: float = 5.0) -> "SQLLedgerStore":
        return cls(create_engine_for_url(database_url, timeout_seconds))

    def init_schema(self) -> None:
        """Create the accounts and transactions tables if they do not exist."""
        SQLModel.metadata.create_all(self.engine)

    # Idempotency records -------------------------------------------------
    async def get_record(self, idempotency_key: str) -> IdempotencyRecord | None:
        return await asyncio.to_thread(self._get_record, idempotency_key)

    def _get_record(self, idempotency_key: str) -> IdempotencyRecord | None:
        try:
            with Session(self.engine) as session:
                stmt = select(TransactionRow).where(
                    TransactionRow.idempotency_key == idempotency_key
                )
                row = session.exec(stmt).first()
        except SQLAlchemyError as e:
            raise InfrastructureError(
                message=f"Idempotency record lookup failed for {idempotency_key}: {e}",
                cause=e,
            ) from e
        return _to_record(row) if row is not None else None

    # Transfers -------------------------------------------------------------
    async def execute_transfer(
        self,
        idempotency_key: str,
        request: TransferRequest,
    ) -> IdempotencyRecord:
        return await asyncio.to_thread(self._execute_transfer, idempotency_key, request)

    def _execute_transfer(
        self,
        idempotency_key: str,
        request: TransferRequest,
    ) -> IdempotencyRecord:
        values = {
            "id": uuid4(),
            "from_id": request.from_id,
            "to_id": request.to_id,
            "amount": request.amount,
            "idempotency_key": idempotency_key,
            "created_at": datetime.now(UTC),
        }

        try:
            with self.engine.begin() as conn:
                debit = conn.execute(
                    update(Account)
                    .where(Account.id == request.from_id)
                    .where(Account.balance >= request.amount)
                    .values(balance=Account.balance - request.amount)
                )
                if debit.rowcount == 0:
                    raise InsufficientFundsError(
                        f"Insufficient funds in account {request.from_id}",
                        account_id=request.from_id,
                    )

                credit = conn.execute(
                    update(Account)
                    .where(Account.id == request.to_id)
                    .values(balance=Account.balance + request.amount)
                )
                if credit.rowcount == 0:
                    raise AccountNotFoundError(
                        f"Account {request.to_id} not found",
                        account_id=request.to_id,
                    )

                conn.execute(insert(TransactionRow).values(**values))
        except IntegrityError as e:
            raise RecordRaceLostError(
                f"Idempotency record already exists for {idempotency_key}",
                key=idempotency_key,
            ) from e
        except SQLAlchemyError as e:
            raise InfrastructureError(
                message=f"Ledger mutation failed for {idempotency_key}: {e}",
                cause=e,
            ) from e

        logger.debug(
            "ledger.committed",
            key=idempotency_key,
            from_id=request.from_id,
            to_id=request.to_id,
            amount=str(request.amount),
        )
        return IdempotencyRecord(
            idempotency_key=idempotency_key,
            from_id=request.from_id,
            to_id=request.to_id,
            amount=request.amount,
            created_at=values["created_at"],
        )

    # Accounts (seed and inspection tooling) -------------------------------
    def seed_accounts(self, balances: dict[int, Any]) -> None:
        """Create or reset accounts to the given balances.

        Account creation is not part of the transfer path; this exists for
        tests and the stress harness.
        """
        with Session(self.engine) as session:
            for account_id, balance in balances.items():
                session.merge(Account(id=account_id, balance=Decimal(str(balance))))
            session.commit()

    def get_balance(self, account_id: int) -> Decimal | None:
        with Session(self.engine) as session:
            account = session.get(Account, account_id)
            return account.balance if account is not None else None

    def total_balance(self) -> Decimal:
        with Session(self.engine) as session:
            total = session.exec(
                select(func.coalesce(func.sum(Account.balance), 0, type_=Money()))
            ).one()
        return total

    def count_records(self) -> int:
        with Session(self.engine) as session:
            return session.exec(select(func.count()).select_from(TransactionRow)).one()

    async def ping(self) -> bool:
        def _ping() -> bool:
            try:
                with self.engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
            except SQLAlchemyError as e:
                raise InfrastructureError(message=f"Database ping failed: {e}", cause=e) from e
            return True

        return await asyncio.to_thread(_ping)

    def close(self) -> None:
        self.engine.dispose()
