"""Pydantic schemas for bank accounts."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from bankrec.schemas.base import BaseResponse, Money


class BankAccountCreate(BaseModel):
    name: Annotated[str, Field(min_length=1, max_length=255)]
    bank_name: Annotated[str, Field(min_length=1, max_length=255)]
    account_number: Annotated[str, Field(min_length=1, max_length=50)]
    routing_number: Annotated[str | None, Field(None, max_length=20)] = None
    entity_id: UUID | None = None
    gl_account_id: UUID
    beginning_balance: Money = Decimal("0.00")


class BankAccountUpdate(BaseModel):
    name: Annotated[str | None, Field(None, min_length=1, max_length=255)] = None
    bank_name: Annotated[str | None, Field(None, min_length=1, max_length=255)] = None
    account_number: Annotated[str | None, Field(None, min_length=1, max_length=50)] = None
    routing_number: Annotated[str | None, Field(None, max_length=20)] = None
    entity_id: UUID | None = None
    gl_account_id: UUID | None = None
    is_active: bool | None = None


class BankAccountResponse(BaseResponse):
    id: UUID
    name: str
    bank_name: str
    account_number: str
    routing_number: str | None
    entity_id: UUID | None
    gl_account_id: UUID
    is_active: bool
    beginning_balance: Decimal
    current_balance: Decimal
    last_reconciliation_id: UUID | None
    last_reconciliation_date: date | None
    reconciled_balance: Decimal | None
    created_at: datetime
    updated_at: datetime
