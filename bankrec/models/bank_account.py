"""Bank account model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bankrec.database import Base
from bankrec.models.base import MONEY_PRECISION, MONEY_SCALE, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from bankrec.models.account import Account


class BankAccount(Base, UUIDMixin, TimestampMixin):
    """A bank account held by an entity and tied to one cash GL account."""

    __tablename__ = "bank_accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    routing_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    entity_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    gl_account_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    beginning_balance: Mapped[Decimal] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False, default=Decimal("0.00")
    )
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=False, default=Decimal("0.00")
    )

    # Set when a reconciliation closes
    last_reconciliation_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    last_reconciliation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reconciled_balance: Mapped[Decimal | None] = mapped_column(
        Numeric(MONEY_PRECISION, MONEY_SCALE), nullable=True
    )

    gl_account: Mapped[Account] = relationship("Account")

    def __repr__(self) -> str:
        return f"<BankAccount {self.name} ({self.bank_name})>"
