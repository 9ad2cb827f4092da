"""Pydantic schemas for GL accounts and journal entries."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from bankrec.models.account import AccountType
from bankrec.models.journal import Direction, JournalEntryStatus
from bankrec.schemas.base import BaseResponse


class AccountCreate(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=255)]
    type: AccountType
    code: Annotated[str | None, Field(None, max_length=50)] = None
    description: Annotated[str | None, Field(None, max_length=500)] = None


class AccountResponse(BaseResponse):
    id: UUID
    name: str
    code: str | None
    type: AccountType
    is_active: bool
    description: str | None
    created_at: datetime
    updated_at: datetime


class JournalLineCreate(BaseModel):
    """Schema for creating a journal line."""

    account_id: UUID
    direction: Direction
    amount: Annotated[Decimal, Field(gt=0, decimal_places=2)]
    description: Annotated[str | None, Field(None, max_length=500)] = None


class JournalLineResponse(BaseResponse):
    id: UUID
    journal_entry_id: UUID
    account_id: UUID
    direction: Direction
    amount: Decimal
    description: str | None


class JournalEntryCreate(BaseModel):
    """Schema for creating a journal entry."""

    entry_date: date
    memo: Annotated[str, Field(min_length=1, max_length=500)]
    reference: Annotated[str | None, Field(None, max_length=100)] = None
    lines: Annotated[list[JournalLineCreate], Field(min_length=2)]

    @model_validator(mode="after")
    def validate_balanced(self) -> "JournalEntryCreate":
        """Validate that debits equal credits."""
        total_debit = sum(line.amount for line in self.lines if line.direction == Direction.DEBIT)
        total_credit = sum(line.amount for line in self.lines if line.direction == Direction.CREDIT)

        if abs(total_debit - total_credit) > Decimal("0.01"):
            raise ValueError(f"Journal entry not balanced: debit={total_debit}, credit={total_credit}")

        return self


class JournalEntryVoid(BaseModel):
    reason: Annotated[str, Field(min_length=1, max_length=500)]


class JournalEntryResponse(BaseResponse):
    """Schema for journal entry response."""

    id: UUID
    entry_date: date
    memo: str
    reference: str | None
    status: JournalEntryStatus
    void_reason: str | None = None
    lines: list[JournalLineResponse]
    created_at: datetime
    updated_at: datetime
