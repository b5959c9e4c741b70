"""SQLModel table definitions for the durable ledger.

accounts holds balances; transactions holds one row per completed transfer
and doubles as the idempotency record store. The UNIQUE constraint on
transactions.idempotency_key is the final backstop for at-most-once
execution.

Money columns hold integer cents. Every backend compares and adds them
exactly; SQLite would otherwise bind a Decimal as a binary float.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Column
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

CENT = Decimal("0.01")


class Money(TypeDecorator):
    """Decimal amounts with two places, stored as integer cents."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> int | None:
        if value is None:
            return None
        return int(Decimal(str(value)).quantize(CENT).scaleb(2))

    def process_result_value(self, value: Any, dialect: Any) -> Decimal | None:
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-2)


class Account(SQLModel, table=True):
    __tablename__ = "accounts"

    id: int = Field(primary_key=True)
    balance: Decimal = Field(sa_column=Column(Money(), nullable=False))


class TransactionRow(SQLModel, table=True):
    __tablename__ = "transactions"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    from_id: int = Field(nullable=False)
    to_id: int = Field(nullable=False)
    amount: Decimal = Field(sa_column=Column(Money(), nullable=False))
    idempotency_key: str = Field(max_length=255, unique=True, nullable=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
