"""General-ledger account model."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bankrec.database import Base
from bankrec.models.base import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from bankrec.models.journal import JournalLine


class AccountType(str, enum.Enum):
    """Account type classification."""

    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Account(Base, UUIDMixin, TimestampMixin):
    """
    Ledger account in the chart of accounts.

    A bank account posts to exactly one ASSET account; the journal lines on
    that account are the book side of every reconciliation.
    """

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    type: Mapped[AccountType] = mapped_column(Enum(AccountType, name="account_type_enum"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    journal_lines: Mapped[list[JournalLine]] = relationship("JournalLine", back_populates="account")

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.type.value})>"
