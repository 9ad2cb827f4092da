"""Journal entry models for double-entry bookkeeping."""

from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bankrec.database import Base
from bankrec.models.base import MONEY_PRECISION, MONEY_SCALE, TimestampMixin, UUIDMixin, enum_values

if TYPE_CHECKING:
    from bankrec.models.account import Account


class JournalEntryStatus(str, enum.Enum):
    """Status of a journal entry."""

    DRAFT = "draft"
    POSTED = "posted"
    VOID = "void"


class Direction(str, enum.Enum):
    """Debit or credit direction."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class JournalEntry(Base, UUIDMixin, TimestampMixin):
    """
    Journal entry header containing metadata for a bookkeeping transaction.

    Each entry must have at least 2 journal lines with balanced debits and credits.
    """

    __tablename__ = "journal_entries"

    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    memo: Mapped[str] = mapped_column(String(500), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[JournalEntryStatus] = mapped_column(
        Enum(
            JournalEntryStatus,
            name="journal_entry_status_enum",
            values_callable=enum_values,
        ),
        nullable=False,
        default=JournalEntryStatus.DRAFT,
        index=True,
    )
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list[JournalLine]] = relationship(
        "JournalLine", back_populates="journal_entry", cascade="all, delete-orphan"
    )


class JournalLine(Base, UUIDMixin, TimestampMixin):
    """
    Individual debit or credit line in a journal entry.

    Amount is always positive; direction carries the sign. On a cash account a
    DEBIT is money into the bank and a CREDIT is money out.
    """

    __tablename__ = "journal_lines"
    __table_args__ = (CheckConstraint("amount > 0", name="positive_amount"),)

    journal_entry_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    direction: Mapped[Direction] = mapped_column(
        Enum(
            Direction,
            name="journal_line_direction_enum",
            values_callable=enum_values,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    journal_entry: Mapped[JournalEntry] = relationship("JournalEntry", back_populates="lines")
    account: Mapped[Account] = relationship("Account", back_populates="journal_lines")


def signed_bank_amount(direction: Direction, amount: Decimal) -> Decimal:
    return amount if direction == Direction.DEBIT else -amount
