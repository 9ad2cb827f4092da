"""Statement ingestion service.

Creates statement headers and imports their transactions from CSV/OFX/QFX
files. Imports are all-or-nothing and every attempt leaves an ``ImportJob``
row behind, including failed ones.
"""

import hashlib
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bankrec.config import settings
from bankrec.logger import async_log_timing, get_logger, log_exception
from bankrec.models import (
    BankAccount,
    BankStatement,
    BankStatementStatus,
    ImportJob,
    ImportJobStatus,
    Reconciliation,
    StatementFileFormat,
    StatementTransaction,
    StatementTransactionStatus,
)
from bankrec.services.errors import ConflictError, NotFoundError, ParseError, PersistenceError, ValidationError
from bankrec.services.import_jobs import finish_job, start_job
from bankrec.services.reconciliation import persist
from bankrec.services.statement_parsing import detect_format, parse_statement_file

logger = get_logger(__name__)

CENT = Decimal("0.01")

UPDATABLE_FIELDS = frozenset(
    {"statement_date", "period_start", "period_end", "opening_balance", "closing_balance", "notes"}
)


@dataclass(frozen=True)
class ImportResult:
    job_id: UUID
    statement_id: UUID
    inserted: int


def _money(value: Decimal | int | str, field: str) -> Decimal:
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite amount")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _check_period(period_start: date, period_end: date) -> None:
    if period_start > period_end:
        raise ValidationError("period_start must be on or before period_end")


def _check_file(filename: str | None, content: bytes) -> StatementFileFormat:
    file_format = detect_format(filename)
    if not content:
        raise ValidationError("Statement file is empty")
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(f"Statement file exceeds {settings.max_upload_bytes} bytes")
    return file_format


async def is_statement_referenced(db: AsyncSession, statement_id: UUID) -> bool:
    """True once any reconciliation (open or closed) points at the statement."""
    result = await db.execute(
        select(func.count()).select_from(Reconciliation).where(Reconciliation.bank_statement_id == statement_id)
    )
    return result.scalar_one() > 0


async def upload_statement(
    db: AsyncSession,
    *,
    bank_account_id: UUID,
    statement_date: date,
    period_start: date,
    period_end: date,
    opening_balance: Decimal,
    closing_balance: Decimal,
    filename: str | None = None,
    content: bytes | None = None,
    notes: str | None = None,
    import_method: str = "manual",
) -> BankStatement:
    """
    Create a statement header in UPLOADED status.

    When a file is supplied only its reference (name, format, size, sha256) is
    stored; transactions are loaded by ``import_transactions``.

    Raises:
        NotFoundError: Bank account does not exist
        ValidationError: Bad period, non-finite balance, or unacceptable file
        PersistenceError: Store rejected the insert (rolled back, retryable)
    """
    if await db.get(BankAccount, bank_account_id) is None:
        raise NotFoundError("Bank account", bank_account_id)
    _check_period(period_start, period_end)
    opening = _money(opening_balance, "opening_balance")
    closing = _money(closing_balance, "closing_balance")

    statement = BankStatement(
        bank_account_id=bank_account_id,
        statement_date=statement_date,
        period_start=period_start,
        period_end=period_end,
        opening_balance=opening,
        closing_balance=closing,
        status=BankStatementStatus.UPLOADED,
        notes=notes,
        import_method=import_method,
    )
    if content is not None:
        statement.file_format = _check_file(filename, content)
        statement.original_filename = filename
        statement.file_size = len(content)
        statement.file_hash = hashlib.sha256(content).hexdigest()

    db.add(statement)
    await persist(db, "upload_statement", bank_account_id=str(bank_account_id))
    await db.refresh(statement)
    logger.info(
        "Statement uploaded",
        statement_id=str(statement.id),
        bank_account_id=str(bank_account_id),
        period_start=period_start.isoformat(),
        period_end=period_end.isoformat(),
        has_file=content is not None,
    )
    return statement


async def get_statement(db: AsyncSession, statement_id: UUID, *, for_update: bool = False) -> BankStatement:
    query = select(BankStatement).where(BankStatement.id == statement_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    statement = result.scalar_one_or_none()
    if statement is None:
        raise NotFoundError("Statement", statement_id)
    return statement


async def list_statements(
    db: AsyncSession,
    *,
    bank_account_id: UUID | None = None,
    status: BankStatementStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[BankStatement], int]:
    query = select(BankStatement)
    if bank_account_id:
        query = query.where(BankStatement.bank_account_id == bank_account_id)
    if status:
        query = query.where(BankStatement.status == status)

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar_one()

    result = await db.execute(
        query.order_by(BankStatement.statement_date.desc(), BankStatement.created_at.desc()).limit(limit).offset(offset)
    )
    return list(result.scalars().all()), total


async def update_statement(db: AsyncSession, statement_id: UUID, changes: dict[str, Any]) -> BankStatement:
    statement = await get_statement(db, statement_id, for_update=True)
    if await is_statement_referenced(db, statement_id):
        raise ConflictError("Statement is referenced by a reconciliation and cannot be changed")

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    _check_period(changes.get("period_start", statement.period_start), changes.get("period_end", statement.period_end))
    for field in ("opening_balance", "closing_balance"):
        if field in changes:
            changes[field] = _money(changes[field], field)

    for field, value in changes.items():
        setattr(statement, field, value)
    await persist(db, "update_statement", statement_id=str(statement_id))
    await db.refresh(statement)
    return statement


async def delete_statement(db: AsyncSession, statement_id: UUID) -> None:
    """Delete a statement and its transactions while nothing references it."""
    statement = await get_statement(db, statement_id, for_update=True)
    if statement.status == BankStatementStatus.RECONCILED or await is_statement_referenced(db, statement_id):
        raise ConflictError("Statement is referenced by a reconciliation and cannot be deleted")

    try:
        await db.execute(delete(StatementTransaction).where(StatementTransaction.statement_id == statement_id))
    except SQLAlchemyError as exc:
        await db.rollback()
        log_exception(logger, exc, "delete_statement failed, rolled back", statement_id=str(statement_id))
        raise PersistenceError("Failed to delete statement") from exc
    await db.delete(statement)
    await persist(db, "delete_statement", statement_id=str(statement_id))
    logger.info("Statement deleted", statement_id=str(statement_id))


async def list_statement_transactions(
    db: AsyncSession,
    statement_id: UUID,
    *,
    status: StatementTransactionStatus | None = None,
) -> list[StatementTransaction]:
    await get_statement(db, statement_id)
    query = select(StatementTransaction).where(StatementTransaction.statement_id == statement_id)
    if status:
        query = query.where(StatementTransaction.status == status)
    result = await db.execute(query.order_by(StatementTransaction.line_number))
    return list(result.scalars().all())


async def import_transactions(
    db: AsyncSession,
    statement_id: UUID,
    content: bytes,
    file_format: StatementFileFormat | str,
) -> ImportResult:
    """
    Parse a statement file and insert its transactions in file order.

    The whole file is parsed before any row is written, so a malformed row
    leaves the statement untouched. Failure records are committed here so they
    survive the caller's rollback.

    Raises:
        NotFoundError: Statement does not exist
        ConflictError: Statement already imported or referenced by a reconciliation
        ValidationError: Unsupported format
        ParseError: Empty file or malformed row (nothing inserted)
        PersistenceError: Store rejected the insert (rolled back, retryable)
    """
    statement = await get_statement(db, statement_id, for_update=True)
    if await is_statement_referenced(db, statement_id):
        raise ConflictError("Statement is referenced by a reconciliation; transactions cannot be re-imported")
    if statement.status != BankStatementStatus.UPLOADED:
        raise ConflictError(f"Statement transactions already imported (status {statement.status.value})")

    try:
        fmt = StatementFileFormat(str(getattr(file_format, "value", file_format)).lower())
    except ValueError:
        raise ValidationError(f"Unsupported statement file type: {file_format}") from None

    job = start_job(db, statement_id=statement_id, file_format=fmt.value)

    async with async_log_timing(
        "import_transactions", logger=logger, statement_id=str(statement_id), file_format=fmt.value
    ) as timing:
        try:
            parsed = parse_statement_file(content, fmt)
        except ParseError as exc:
            finish_job(job, ImportJobStatus.FAILED, error=str(exc))
            await db.commit()
            logger.warning(
                "Statement import rejected",
                statement_id=str(statement_id),
                job_id=str(job.id),
                error=str(exc),
            )
            raise

        rows = [
            StatementTransaction(
                statement_id=statement_id,
                line_number=line_number,
                txn_date=item.txn_date,
                description=item.description,
                amount=item.amount,
                reference=item.reference,
                check_number=item.check_number,
                running_balance=item.running_balance,
                transaction_type=item.transaction_type,
                status=StatementTransactionStatus.UNMATCHED,
            )
            for line_number, item in enumerate(parsed, start=1)
        ]
        db.add_all(rows)
        statement.status = BankStatementStatus.PROCESSED
        finish_job(job, ImportJobStatus.COMPLETED, total_rows=len(parsed), inserted_rows=len(rows))

        try:
            await db.flush()
        except SQLAlchemyError as exc:
            await db.rollback()
            log_exception(logger, exc, "Statement import failed, rolled back", statement_id=str(statement_id))
            rolled_back = ImportJob(statement_id=statement_id, file_format=fmt.value)
            finish_job(
                rolled_back,
                ImportJobStatus.ROLLED_BACK,
                total_rows=len(parsed),
                inserted_rows=0,
                error=str(exc),
            )
            db.add(rolled_back)
            await db.commit()
            raise PersistenceError("Failed to store statement transactions") from exc

        timing["inserted"] = len(rows)

    return ImportResult(job_id=job.id, statement_id=statement_id, inserted=len(rows))
