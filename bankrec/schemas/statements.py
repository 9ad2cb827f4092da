"""Pydantic schemas for bank statements, statement transactions and import jobs."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from bankrec.models.import_job import ImportJobStatus
from bankrec.models.statement import BankStatementStatus, StatementFileFormat, StatementTransactionStatus
from bankrec.schemas.base import BaseResponse, Money


class BankStatementUpdate(BaseModel):
    """Fields editable while no reconciliation references the statement."""

    statement_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None
    opening_balance: Money | None = None
    closing_balance: Money | None = None
    notes: Annotated[str | None, Field(None, max_length=2000)] = None

    @model_validator(mode="after")
    def validate_period(self) -> "BankStatementUpdate":
        if self.period_start and self.period_end and self.period_start > self.period_end:
            raise ValueError("period_start must be on or before period_end")
        return self


class BankStatementResponse(BaseResponse):
    id: UUID
    bank_account_id: UUID
    statement_date: date
    period_start: date
    period_end: date
    opening_balance: Decimal
    closing_balance: Decimal
    status: BankStatementStatus
    original_filename: str | None
    file_format: StatementFileFormat | None
    file_hash: str | None
    file_size: int | None
    import_method: str
    notes: str | None
    created_at: datetime
    updated_at: datetime


class StatementTransactionResponse(BaseResponse):
    id: UUID
    statement_id: UUID
    line_number: int
    txn_date: date
    description: str
    amount: Decimal
    reference: str | None
    check_number: str | None
    running_balance: Decimal | None
    transaction_type: str
    status: StatementTransactionStatus


class ImportTransactionsResponse(BaseModel):
    job_id: UUID
    statement_id: UUID
    inserted: int


class ImportJobResponse(BaseResponse):
    id: UUID
    kind: str
    statement_id: UUID | None
    status: ImportJobStatus
    file_format: str | None
    total_rows: int
    inserted_rows: int
    error: str | None
    created_at: datetime
    finished_at: datetime | None
