"""Reconciliation session, match and adjustment models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bankrec.database import Base
from bankrec.models.base import MONEY_PRECISION, MONEY_SCALE, TimestampMixin, UUIDMixin, enum_values


class ReconciliationStatus(str, Enum):
    """Session lifecycle. Only CLOSED is terminal."""

    CREATED = "created"
    IN_PROGRESS = "in_progress"
    BALANCED = "balanced"
    CLOSED = "closed"


class MatchType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class AdjustmentType(str, Enum):
    BANK_FEE = "bank_fee"
    INTEREST = "interest"
    ERROR = "error"
    OTHER = "other"


class AdjustmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


_OPEN_SESSION = text("status <> 'closed'")


class Reconciliation(Base, UUIDMixin, TimestampMixin):
    """
    One attempt to reconcile one statement against the ledger.

    ``start_balance``/``end_balance`` are the statement balances captured at
    creation; ``difference`` is recomputed after every mutation.
    """

    __tablename__ = "reconciliations"
    __table_args__ = (
        Index(
            "uq_reconciliations_open_statement",
            "bank_statement_id",
            unique=True,
            postgresql_where=_OPEN_SESSION,
            sqlite_where=_OPEN_SESSION,
        ),
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("bank_accounts.id"), nullable=False, index=True
    )
    bank_statement_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("bank_statements.id"), nullable=False, index=True
    )
    reconciliation_date: Mapped[date] = mapped_column(Date, nullable=False)

    start_balance: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    end_balance: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    book_balance: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    statement_balance: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    difference: Mapped[Decimal] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False, default=Decimal("0.00")
    )

    status: Mapped[ReconciliationStatus] = mapped_column(
        SQLEnum(ReconciliationStatus, name="reconciliation_status_enum", values_callable=enum_values),
        nullable=False,
        default=ReconciliationStatus.CREATED,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    matches: Mapped[list[ReconciliationMatch]] = relationship(
        "ReconciliationMatch",
        back_populates="reconciliation",
        order_by="ReconciliationMatch.created_at",
        passive_deletes=True,
    )
    adjustments: Mapped[list[ReconciliationAdjustment]] = relationship(
        "ReconciliationAdjustment",
        back_populates="reconciliation",
        order_by="ReconciliationAdjustment.created_at",
        passive_deletes=True,
    )

    @property
    def is_closed(self) -> bool:
        return self.status == ReconciliationStatus.CLOSED


class ReconciliationMatch(Base, UUIDMixin, TimestampMixin):
    """Pairing of one statement transaction with one journal line.

    Both sides are unique: a transaction carries at most one match and a
    ledger line is claimed by at most one transaction.
    """

    __tablename__ = "reconciliation_matches"

    reconciliation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("reconciliations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bank_txn_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("statement_transactions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    journal_line_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journal_lines.id"),
        nullable=False,
        unique=True,
    )
    match_type: Mapped[MatchType] = mapped_column(
        SQLEnum(MatchType, name="reconciliation_match_type_enum", values_callable=enum_values),
        nullable=False,
        default=MatchType.MANUAL,
    )
    # Description similarity 0-100, null for manual matches
    score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    reconciliation: Mapped[Reconciliation] = relationship("Reconciliation", back_populates="matches")


class ReconciliationAdjustment(Base, UUIDMixin, TimestampMixin):
    """Book-side correction recorded during a reconciliation (fees, interest, errors)."""

    __tablename__ = "reconciliation_adjustments"

    reconciliation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("reconciliations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    adjustment_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    adjustment_type: Mapped[AdjustmentType] = mapped_column(
        SQLEnum(AdjustmentType, name="reconciliation_adjustment_type_enum", values_callable=enum_values),
        nullable=False,
        default=AdjustmentType.OTHER,
    )
    # Signed, same convention as statement transaction amounts
    amount: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    status: Mapped[AdjustmentStatus] = mapped_column(
        SQLEnum(AdjustmentStatus, name="reconciliation_adjustment_status_enum", values_callable=enum_values),
        nullable=False,
        default=AdjustmentStatus.PENDING,
    )

    reconciliation: Mapped[Reconciliation] = relationship("Reconciliation", back_populates="adjustments")
