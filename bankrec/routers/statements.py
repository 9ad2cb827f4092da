"""Bank statement ingestion API router."""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile, status

from bankrec.config import settings
from bankrec.deps import DbSession
from bankrec.logger import get_logger
from bankrec.models import BankStatementStatus, StatementFileFormat, StatementTransactionStatus
from bankrec.schemas import (
    BankStatementResponse,
    BankStatementUpdate,
    ImportTransactionsResponse,
    ListResponse,
    StatementTransactionResponse,
)
from bankrec.services import statements as statement_service
from bankrec.services.errors import ParseError, ReconciliationError
from bankrec.services.statement_parsing import detect_format
from bankrec.utils import raise_bad_request, raise_for_service_error, raise_too_large

router = APIRouter(prefix="/bank-reconciliation", tags=["statements"])

logger = get_logger(__name__)


async def _read_upload(file: UploadFile) -> tuple[str, bytes]:
    filename = Path(file.filename or "").name
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise_too_large(f"File exceeds {settings.max_upload_bytes} byte limit")
    return filename, content


@router.post("/statements", response_model=BankStatementResponse, status_code=status.HTTP_201_CREATED)
async def upload_statement(
    db: DbSession,
    bank_account_id: Annotated[UUID, Form()],
    statement_date: Annotated[date, Form()],
    period_start: Annotated[date, Form()],
    period_end: Annotated[date, Form()],
    opening_balance: Annotated[Decimal, Form()],
    closing_balance: Annotated[Decimal, Form()],
    notes: Annotated[str | None, Form()] = None,
    file: UploadFile | None = File(None),
) -> BankStatementResponse:
    """
    Create a statement header.

    The optional file is fingerprinted and its reference stored. Transactions
    are loaded with ``POST /bank-reconciliation/transactions/import``.
    """
    filename: str | None = None
    content: bytes | None = None
    if file is not None:
        filename, content = await _read_upload(file)

    logger.info(
        "Statement upload request received",
        bank_account_id=str(bank_account_id),
        filename=filename,
        size=len(content) if content is not None else 0,
    )

    try:
        statement = await statement_service.upload_statement(
            db,
            bank_account_id=bank_account_id,
            statement_date=statement_date,
            period_start=period_start,
            period_end=period_end,
            opening_balance=opening_balance,
            closing_balance=closing_balance,
            filename=filename,
            content=content,
            notes=notes,
            import_method="upload" if content is not None else "manual",
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return BankStatementResponse.model_validate(statement)


@router.get("/statements", response_model=ListResponse[BankStatementResponse])
async def list_statements(
    db: DbSession,
    bank_account_id: UUID | None = Query(None),
    status_filter: BankStatementStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ListResponse[BankStatementResponse]:
    statements, total = await statement_service.list_statements(
        db,
        bank_account_id=bank_account_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return ListResponse[BankStatementResponse](
        items=[BankStatementResponse.model_validate(statement) for statement in statements],
        total=total,
    )


@router.get("/statements/{statement_id}", response_model=BankStatementResponse)
async def get_statement(statement_id: UUID, db: DbSession) -> BankStatementResponse:
    try:
        statement = await statement_service.get_statement(db, statement_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    return BankStatementResponse.model_validate(statement)


@router.put("/statements/{statement_id}", response_model=BankStatementResponse)
async def update_statement(
    statement_id: UUID,
    payload: BankStatementUpdate,
    db: DbSession,
) -> BankStatementResponse:
    try:
        statement = await statement_service.update_statement(
            db, statement_id, payload.model_dump(exclude_unset=True)
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return BankStatementResponse.model_validate(statement)


@router.delete("/statements/{statement_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_statement(statement_id: UUID, db: DbSession) -> None:
    try:
        await statement_service.delete_statement(db, statement_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()


@router.get("/statements/{statement_id}/transactions", response_model=list[StatementTransactionResponse])
async def list_statement_transactions(
    statement_id: UUID,
    db: DbSession,
    status_filter: StatementTransactionStatus | None = Query(None, alias="status"),
) -> list[StatementTransactionResponse]:
    try:
        transactions = await statement_service.list_statement_transactions(db, statement_id, status=status_filter)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    return [StatementTransactionResponse.model_validate(txn) for txn in transactions]


@router.post(
    "/transactions/import",
    response_model=ImportTransactionsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_transactions(
    db: DbSession,
    statement_id: Annotated[UUID, Form()],
    file: UploadFile = File(...),
    file_format: Annotated[StatementFileFormat | None, Form()] = None,
) -> ImportTransactionsResponse:
    """Parse a CSV/OFX/QFX file into the statement's transactions. All rows or none."""
    filename, content = await _read_upload(file)
    if file_format is None:
        try:
            file_format = detect_format(filename)
        except ReconciliationError as exc:
            raise_bad_request(str(exc), cause=exc)

    try:
        result = await statement_service.import_transactions(db, statement_id, content, file_format)
    except ParseError as exc:
        logger.warning("Statement file rejected", statement_id=str(statement_id), error=str(exc))
        raise_for_service_error(exc)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return ImportTransactionsResponse(
        job_id=result.job_id,
        statement_id=result.statement_id,
        inserted=result.inserted,
    )
