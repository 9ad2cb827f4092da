"""Bank statement and statement transaction models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from bankrec.database import Base
from bankrec.models.base import MONEY_PRECISION, MONEY_SCALE, TimestampMixin, UUIDMixin, enum_values


class BankStatementStatus(str, Enum):
    """Statement lifecycle status."""

    UPLOADED = "uploaded"
    PROCESSED = "processed"
    RECONCILED = "reconciled"


class StatementTransactionStatus(str, Enum):
    """Transaction reconciliation status."""

    UNMATCHED = "unmatched"
    MATCHED = "matched"


class StatementFileFormat(str, Enum):
    CSV = "csv"
    OFX = "ofx"
    QFX = "qfx"


class BankStatement(Base, UUIDMixin, TimestampMixin):
    """A bank statement covering one period of one bank account."""

    __tablename__ = "bank_statements"

    bank_account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("bank_accounts.id"), nullable=False, index=True
    )
    statement_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    opening_balance: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    closing_balance: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)

    status: Mapped[BankStatementStatus] = mapped_column(
        SQLEnum(BankStatementStatus, name="bank_statement_status_enum", values_callable=enum_values),
        nullable=False,
        default=BankStatementStatus.UPLOADED,
    )

    # File reference
    original_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_format: Mapped[StatementFileFormat | None] = mapped_column(
        SQLEnum(StatementFileFormat, name="statement_file_format_enum", values_callable=enum_values),
        nullable=True,
    )
    file_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    import_method: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class StatementTransaction(Base, UUIDMixin, TimestampMixin):
    """Individual line of a bank statement."""

    __tablename__ = "statement_transactions"
    __table_args__ = (
        UniqueConstraint("statement_id", "line_number", name="uq_statement_transactions_line"),
    )

    statement_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bank_statements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    txn_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # Signed: deposits positive, withdrawals negative
    amount: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    check_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    running_balance: Mapped[Decimal | None] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=True
    )
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False, default="other")

    status: Mapped[StatementTransactionStatus] = mapped_column(
        SQLEnum(
            StatementTransactionStatus,
            name="statement_transaction_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=StatementTransactionStatus.UNMATCHED,
        index=True,
    )
