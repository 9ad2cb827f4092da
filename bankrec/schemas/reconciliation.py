"""Pydantic schemas for reconciliation sessions."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field

from bankrec.models.reconciliation import AdjustmentStatus, AdjustmentType, MatchType, ReconciliationStatus
from bankrec.schemas.base import BaseResponse, Money
from bankrec.schemas.statements import StatementTransactionResponse


class ReconciliationCreate(BaseModel):
    bank_account_id: UUID
    bank_statement_id: UUID
    reconciliation_date: date
    # Defaults: last reconciled balance and statement closing balance
    book_balance: Money | None = None
    statement_balance: Money | None = None
    notes: Annotated[str | None, Field(None, max_length=2000)] = None


class ReconciliationUpdate(BaseModel):
    reconciliation_date: date | None = None
    book_balance: Money | None = None
    statement_balance: Money | None = None
    notes: Annotated[str | None, Field(None, max_length=2000)] = None


class ReconciliationResponse(BaseResponse):
    id: UUID
    bank_account_id: UUID
    bank_statement_id: UUID
    reconciliation_date: date
    start_balance: Decimal
    end_balance: Decimal
    book_balance: Decimal
    statement_balance: Decimal
    difference: Decimal
    status: ReconciliationStatus
    notes: str | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class MatchCreate(BaseModel):
    transaction_id: UUID
    journal_line_id: UUID
    notes: Annotated[str | None, Field(None, max_length=500)] = None


class MatchResponse(BaseResponse):
    id: UUID
    reconciliation_id: UUID
    bank_txn_id: UUID
    journal_line_id: UUID
    match_type: MatchType
    score: Decimal | None
    notes: str | None
    created_at: datetime


class AdjustmentCreate(BaseModel):
    adjustment_date: date
    description: Annotated[str, Field(min_length=1, max_length=500)]
    adjustment_type: AdjustmentType = AdjustmentType.OTHER
    amount: Money
    status: AdjustmentStatus = AdjustmentStatus.PENDING


class AdjustmentUpdate(BaseModel):
    adjustment_date: date | None = None
    description: Annotated[str | None, Field(None, min_length=1, max_length=500)] = None
    adjustment_type: AdjustmentType | None = None
    amount: Money | None = None
    status: AdjustmentStatus | None = None


class AdjustmentResponse(BaseResponse):
    id: UUID
    reconciliation_id: UUID
    adjustment_date: date
    description: str
    adjustment_type: AdjustmentType
    amount: Decimal
    status: AdjustmentStatus
    created_at: datetime
    updated_at: datetime


class ReconciliationDetailResponse(ReconciliationResponse):
    matches: list[MatchResponse]
    adjustments: list[AdjustmentResponse]


class AutoMatchRequest(BaseModel):
    description_match: bool | None = None
    date_tolerance_days: Annotated[int | None, Field(None, ge=0)] = None


class MatchPair(BaseModel):
    transaction_id: UUID
    journal_line_id: UUID


class AutoMatchResponse(BaseModel):
    matches: int
    pairs: list[MatchPair]
    reconciliation: ReconciliationResponse


class CandidateLineResponse(BaseResponse):
    id: UUID
    journal_entry_id: UUID
    entry_date: date
    amount: Decimal
    description: str
    reference: str | None


class UnmatchedItemsResponse(BaseModel):
    transactions: list[StatementTransactionResponse]
    candidates: list[CandidateLineResponse]


class ReconciliationSummaryResponse(BaseResponse):
    reconciliation_id: UUID
    status: ReconciliationStatus
    statement_balance: Decimal
    book_balance: Decimal
    matched_total: Decimal
    adjustments_total: Decimal
    difference: Decimal
    is_balanced: bool
    total_transactions: int
    matched_transactions: int
    unmatched_transactions: int
    adjustment_count: int
    approved_adjustments: int
    pending_adjustments: int
