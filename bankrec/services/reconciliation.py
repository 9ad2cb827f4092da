"""Reconciliation session service.

A session moves CREATED -> IN_PROGRESS -> BALANCED as transactions are matched
and adjustments recorded, and is finalized by an explicit close. Every
mutation locks the session row, rejects closed sessions, and recomputes

    difference = statement_balance - (book_balance + matched + adjustments)

before the caller commits.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bankrec.config import settings
from bankrec.logger import get_logger, log_exception
from bankrec.models import (
    AdjustmentStatus,
    AdjustmentType,
    BankAccount,
    BankStatement,
    BankStatementStatus,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    MatchType,
    Reconciliation,
    ReconciliationAdjustment,
    ReconciliationMatch,
    ReconciliationStatus,
    StatementTransaction,
    StatementTransactionStatus,
)
from bankrec.services.errors import (
    AlreadyMatchedError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    SessionClosedError,
    ValidationError,
)

logger = get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

UPDATABLE_FIELDS = frozenset({"reconciliation_date", "book_balance", "statement_balance", "notes"})
ADJUSTMENT_FIELDS = frozenset({"adjustment_date", "description", "adjustment_type", "amount", "status"})


@dataclass(frozen=True)
class ReconciliationSummary:
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


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_within_tolerance(difference: Decimal) -> bool:
    return abs(difference) <= settings.reconciliation_balance_tolerance


async def persist(db: AsyncSession, operation: str, **context: Any) -> None:
    """Flush pending writes; on store failure roll back and raise PersistenceError."""
    try:
        await db.flush()
    except SQLAlchemyError as exc:
        await db.rollback()
        log_exception(logger, exc, f"{operation} failed, rolled back", **context)
        raise PersistenceError(f"Failed to {operation.replace('_', ' ')}") from exc


# =============================================================================
# Lookup
# =============================================================================


async def get_reconciliation(
    db: AsyncSession,
    reconciliation_id: UUID,
    *,
    with_details: bool = False,
) -> Reconciliation:
    query = select(Reconciliation).where(Reconciliation.id == reconciliation_id)
    if with_details:
        query = query.options(
            selectinload(Reconciliation.matches),
            selectinload(Reconciliation.adjustments),
        ).execution_options(populate_existing=True)
    result = await db.execute(query)
    reconciliation = result.scalar_one_or_none()
    if reconciliation is None:
        raise NotFoundError("Reconciliation", reconciliation_id)
    return reconciliation


async def lock_open_session(db: AsyncSession, reconciliation_id: UUID) -> Reconciliation:
    """Load the session FOR UPDATE and reject it if closed."""
    result = await db.execute(
        select(Reconciliation).where(Reconciliation.id == reconciliation_id).with_for_update()
    )
    reconciliation = result.scalar_one_or_none()
    if reconciliation is None:
        raise NotFoundError("Reconciliation", reconciliation_id)
    if reconciliation.is_closed:
        raise SessionClosedError(f"Reconciliation {reconciliation_id} is closed")
    return reconciliation


async def list_reconciliations(
    db: AsyncSession,
    *,
    bank_account_id: UUID | None = None,
    status: ReconciliationStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Reconciliation], int]:
    query = select(Reconciliation)
    if bank_account_id:
        query = query.where(Reconciliation.bank_account_id == bank_account_id)
    if status:
        query = query.where(Reconciliation.status == status)

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar_one()

    result = await db.execute(
        query.order_by(Reconciliation.reconciliation_date.desc(), Reconciliation.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


# =============================================================================
# Balance recomputation
# =============================================================================


async def _matched_amounts(db: AsyncSession, reconciliation_id: UUID) -> list[Decimal]:
    result = await db.execute(
        select(StatementTransaction.amount)
        .join(ReconciliationMatch, ReconciliationMatch.bank_txn_id == StatementTransaction.id)
        .where(ReconciliationMatch.reconciliation_id == reconciliation_id)
    )
    return list(result.scalars().all())


async def _adjustment_amounts(db: AsyncSession, reconciliation_id: UUID) -> list[Decimal]:
    result = await db.execute(
        select(ReconciliationAdjustment.amount).where(ReconciliationAdjustment.reconciliation_id == reconciliation_id)
    )
    return list(result.scalars().all())


def next_status(difference: Decimal, has_activity: bool) -> ReconciliationStatus:
    """Status of an open session given its difference and whether anything is matched or adjusted."""
    if not has_activity:
        return ReconciliationStatus.CREATED
    if is_within_tolerance(difference):
        return ReconciliationStatus.BALANCED
    return ReconciliationStatus.IN_PROGRESS


async def recompute_balance(db: AsyncSession, reconciliation: Reconciliation) -> Reconciliation:
    """Recompute ``difference`` and the open-session status from stored matches and adjustments."""
    if reconciliation.is_closed:
        raise SessionClosedError(f"Reconciliation {reconciliation.id} is closed")

    matched = await _matched_amounts(db, reconciliation.id)
    adjustments = await _adjustment_amounts(db, reconciliation.id)

    cleared = sum(matched, ZERO) + sum(adjustments, ZERO)
    reconciliation.difference = _money(reconciliation.statement_balance - (reconciliation.book_balance + cleared))
    reconciliation.status = next_status(reconciliation.difference, bool(matched or adjustments))

    await persist(db, "recompute_balance", reconciliation_id=str(reconciliation.id))
    logger.debug(
        "Reconciliation balance recomputed",
        reconciliation_id=str(reconciliation.id),
        difference=str(reconciliation.difference),
        status=reconciliation.status.value,
        matched=len(matched),
        adjustments=len(adjustments),
    )
    return reconciliation


# =============================================================================
# Session lifecycle
# =============================================================================


async def create_reconciliation(
    db: AsyncSession,
    *,
    bank_account_id: UUID,
    statement_id: UUID,
    reconciliation_date: date,
    book_balance: Decimal | None = None,
    statement_balance: Decimal | None = None,
    notes: str | None = None,
) -> Reconciliation:
    """
    Open a reconciliation for one statement.

    ``start_balance``/``end_balance`` snapshot the statement's opening and
    closing balances. ``statement_balance`` defaults to the closing balance and
    ``book_balance`` to the account's last reconciled balance (or its beginning
    balance if it was never reconciled).

    Raises:
        NotFoundError: Bank account or statement does not exist
        ValidationError: Statement belongs to another bank account
        ConflictError: Statement already reconciled or has an open reconciliation
    """
    bank_account = await db.get(BankAccount, bank_account_id)
    if bank_account is None:
        raise NotFoundError("Bank account", bank_account_id)
    statement = await db.get(BankStatement, statement_id)
    if statement is None:
        raise NotFoundError("Statement", statement_id)
    if statement.bank_account_id != bank_account_id:
        raise ValidationError("Statement does not belong to the given bank account")
    if statement.status == BankStatementStatus.RECONCILED:
        raise ConflictError("Statement is already reconciled")

    open_result = await db.execute(
        select(Reconciliation.id)
        .where(Reconciliation.bank_statement_id == statement_id)
        .where(Reconciliation.status != ReconciliationStatus.CLOSED)
    )
    if open_result.first() is not None:
        raise ConflictError("An open reconciliation already exists for this statement")

    if book_balance is None:
        book_balance = (
            bank_account.reconciled_balance
            if bank_account.reconciled_balance is not None
            else bank_account.beginning_balance
        )
    if statement_balance is None:
        statement_balance = statement.closing_balance

    reconciliation = Reconciliation(
        bank_account_id=bank_account_id,
        bank_statement_id=statement_id,
        reconciliation_date=reconciliation_date,
        start_balance=statement.opening_balance,
        end_balance=statement.closing_balance,
        book_balance=_money(book_balance),
        statement_balance=_money(statement_balance),
        difference=_money(statement_balance - book_balance),
        status=ReconciliationStatus.CREATED,
        notes=notes,
    )
    db.add(reconciliation)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("An open reconciliation already exists for this statement") from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        log_exception(logger, exc, "create_reconciliation failed, rolled back", statement_id=str(statement_id))
        raise PersistenceError("Failed to create reconciliation") from exc

    await db.refresh(reconciliation)
    logger.info(
        "Reconciliation created",
        reconciliation_id=str(reconciliation.id),
        bank_account_id=str(bank_account_id),
        statement_id=str(statement_id),
        difference=str(reconciliation.difference),
    )
    return reconciliation


async def update_reconciliation(db: AsyncSession, reconciliation_id: UUID, changes: dict[str, Any]) -> Reconciliation:
    reconciliation = await lock_open_session(db, reconciliation_id)

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    for field, value in changes.items():
        if field in ("book_balance", "statement_balance"):
            if value is None:
                raise ValidationError(f"{field} cannot be null")
            value = _money(value)
        setattr(reconciliation, field, value)

    return await recompute_balance(db, reconciliation)


async def close_reconciliation(db: AsyncSession, reconciliation_id: UUID) -> Reconciliation:
    """
    Finalize a balanced session.

    Marks the statement RECONCILED and records the result on the bank account.

    Raises:
        SessionClosedError: Already closed
        ValidationError: Difference exceeds the balance tolerance
    """
    reconciliation = await lock_open_session(db, reconciliation_id)
    await recompute_balance(db, reconciliation)

    if not is_within_tolerance(reconciliation.difference):
        raise ValidationError(
            f"Reconciliation is not balanced: difference {reconciliation.difference} must be zero to close"
        )

    statement = await db.get(BankStatement, reconciliation.bank_statement_id)
    bank_account = await db.get(BankAccount, reconciliation.bank_account_id)

    reconciliation.status = ReconciliationStatus.CLOSED
    reconciliation.closed_at = datetime.now(UTC)
    statement.status = BankStatementStatus.RECONCILED
    bank_account.last_reconciliation_id = reconciliation.id
    bank_account.last_reconciliation_date = reconciliation.reconciliation_date
    bank_account.reconciled_balance = reconciliation.statement_balance

    await persist(db, "close_reconciliation", reconciliation_id=str(reconciliation.id))
    logger.info(
        "Reconciliation closed",
        reconciliation_id=str(reconciliation.id),
        bank_account_id=str(bank_account.id),
        statement_id=str(statement.id),
    )
    return reconciliation


# =============================================================================
# Matching
# =============================================================================


async def _get_session_transaction(
    db: AsyncSession,
    reconciliation: Reconciliation,
    transaction_id: UUID,
) -> StatementTransaction:
    result = await db.execute(
        select(StatementTransaction)
        .where(StatementTransaction.id == transaction_id)
        .where(StatementTransaction.statement_id == reconciliation.bank_statement_id)
        .with_for_update()
    )
    transaction = result.scalar_one_or_none()
    if transaction is None:
        raise NotFoundError("Statement transaction", transaction_id)
    return transaction


async def _get_account_line(db: AsyncSession, reconciliation: Reconciliation, journal_line_id: UUID) -> JournalLine:
    bank_account = await db.get(BankAccount, reconciliation.bank_account_id)
    result = await db.execute(
        select(JournalLine)
        .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
        .where(JournalLine.id == journal_line_id)
        .where(JournalLine.account_id == bank_account.gl_account_id)
        .where(JournalEntry.status == JournalEntryStatus.POSTED)
    )
    line = result.scalar_one_or_none()
    if line is None:
        raise NotFoundError("Journal line", journal_line_id)
    return line


async def match_transaction(
    db: AsyncSession,
    reconciliation_id: UUID,
    transaction_id: UUID,
    journal_line_id: UUID,
    *,
    notes: str | None = None,
) -> ReconciliationMatch:
    """
    Manually pair a statement transaction with a posted ledger line.

    Raises:
        SessionClosedError: Session is closed
        NotFoundError: Transaction not on the session's statement, or line not a
            posted line on the bank account's GL account
        AlreadyMatchedError: Either side is already matched
    """
    reconciliation = await lock_open_session(db, reconciliation_id)
    transaction = await _get_session_transaction(db, reconciliation, transaction_id)
    line = await _get_account_line(db, reconciliation, journal_line_id)

    txn_match = await db.execute(
        select(ReconciliationMatch.id).where(ReconciliationMatch.bank_txn_id == transaction.id)
    )
    if transaction.status == StatementTransactionStatus.MATCHED or txn_match.first() is not None:
        raise AlreadyMatchedError(f"Statement transaction {transaction.id} is already matched")
    line_match = await db.execute(select(ReconciliationMatch.id).where(ReconciliationMatch.journal_line_id == line.id))
    if line_match.first() is not None:
        raise AlreadyMatchedError(f"Journal line {line.id} is already matched")

    match = ReconciliationMatch(
        reconciliation_id=reconciliation.id,
        bank_txn_id=transaction.id,
        journal_line_id=line.id,
        match_type=MatchType.MANUAL,
        notes=notes,
    )
    db.add(match)
    transaction.status = StatementTransactionStatus.MATCHED
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise AlreadyMatchedError("Transaction or journal line was matched concurrently") from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        log_exception(logger, exc, "match_transaction failed, rolled back", reconciliation_id=str(reconciliation_id))
        raise PersistenceError("Failed to record match") from exc

    await recompute_balance(db, reconciliation)
    logger.info(
        "Transaction matched",
        reconciliation_id=str(reconciliation.id),
        transaction_id=str(transaction.id),
        journal_line_id=str(line.id),
        match_type=MatchType.MANUAL.value,
    )
    return match


async def unmatch_transaction(db: AsyncSession, reconciliation_id: UUID, transaction_id: UUID) -> bool:
    """Remove the transaction's match. Returns False when there was nothing to remove."""
    reconciliation = await lock_open_session(db, reconciliation_id)
    transaction = await _get_session_transaction(db, reconciliation, transaction_id)

    result = await db.execute(select(ReconciliationMatch).where(ReconciliationMatch.bank_txn_id == transaction.id))
    match = result.scalar_one_or_none()
    if match is None:
        if transaction.status != StatementTransactionStatus.UNMATCHED:
            transaction.status = StatementTransactionStatus.UNMATCHED
            await persist(db, "unmatch_transaction", transaction_id=str(transaction.id))
        return False

    await db.delete(match)
    transaction.status = StatementTransactionStatus.UNMATCHED
    await persist(db, "unmatch_transaction", transaction_id=str(transaction.id))
    await recompute_balance(db, reconciliation)
    logger.info(
        "Transaction unmatched",
        reconciliation_id=str(reconciliation.id),
        transaction_id=str(transaction.id),
        journal_line_id=str(match.journal_line_id),
    )
    return True


# =============================================================================
# Adjustments
# =============================================================================


async def add_adjustment(
    db: AsyncSession,
    reconciliation_id: UUID,
    *,
    adjustment_date: date,
    description: str,
    amount: Decimal,
    adjustment_type: AdjustmentType = AdjustmentType.OTHER,
    status: AdjustmentStatus = AdjustmentStatus.PENDING,
) -> ReconciliationAdjustment:
    reconciliation = await lock_open_session(db, reconciliation_id)
    if amount == 0:
        raise ValidationError("Adjustment amount must be non-zero")

    adjustment = ReconciliationAdjustment(
        reconciliation_id=reconciliation.id,
        adjustment_date=adjustment_date,
        description=description,
        adjustment_type=adjustment_type,
        amount=_money(amount),
        status=status,
    )
    db.add(adjustment)
    await persist(db, "add_adjustment", reconciliation_id=str(reconciliation.id))
    await recompute_balance(db, reconciliation)
    logger.info(
        "Reconciliation adjustment added",
        reconciliation_id=str(reconciliation.id),
        adjustment_id=str(adjustment.id),
        adjustment_type=adjustment_type.value,
        amount=str(adjustment.amount),
    )
    return adjustment


async def _get_session_adjustment(
    db: AsyncSession, reconciliation: Reconciliation, adjustment_id: UUID
) -> ReconciliationAdjustment:
    result = await db.execute(
        select(ReconciliationAdjustment)
        .where(ReconciliationAdjustment.id == adjustment_id)
        .where(ReconciliationAdjustment.reconciliation_id == reconciliation.id)
    )
    adjustment = result.scalar_one_or_none()
    if adjustment is None:
        raise NotFoundError("Adjustment", adjustment_id)
    return adjustment


async def update_adjustment(
    db: AsyncSession,
    reconciliation_id: UUID,
    adjustment_id: UUID,
    changes: dict[str, Any],
) -> ReconciliationAdjustment:
    """
    Change an adjustment's date, description, type, amount or approval status.

    Raises:
        SessionClosedError: Session is closed
        NotFoundError: Adjustment does not belong to the session
        ValidationError: Unknown or null field, or a zero amount
    """
    reconciliation = await lock_open_session(db, reconciliation_id)
    adjustment = await _get_session_adjustment(db, reconciliation, adjustment_id)

    unknown = set(changes) - ADJUSTMENT_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    nulls = sorted(field for field, value in changes.items() if value is None)
    if nulls:
        raise ValidationError(f"Fields cannot be null: {', '.join(nulls)}")
    if "amount" in changes:
        if changes["amount"] == 0:
            raise ValidationError("Adjustment amount must be non-zero")
        changes["amount"] = _money(changes["amount"])

    for field, value in changes.items():
        setattr(adjustment, field, value)
    await persist(db, "update_adjustment", reconciliation_id=str(reconciliation.id))
    await recompute_balance(db, reconciliation)
    logger.info(
        "Reconciliation adjustment updated",
        reconciliation_id=str(reconciliation.id),
        adjustment_id=str(adjustment.id),
        fields=sorted(changes),
    )
    return adjustment


async def delete_adjustment(db: AsyncSession, reconciliation_id: UUID, adjustment_id: UUID) -> None:
    reconciliation = await lock_open_session(db, reconciliation_id)
    adjustment = await _get_session_adjustment(db, reconciliation, adjustment_id)

    await db.delete(adjustment)
    await persist(db, "delete_adjustment", reconciliation_id=str(reconciliation.id))
    await recompute_balance(db, reconciliation)


# =============================================================================
# Reporting
# =============================================================================


async def get_summary(db: AsyncSession, reconciliation_id: UUID) -> ReconciliationSummary:
    reconciliation = await get_reconciliation(db, reconciliation_id)

    status_rows = await db.execute(
        select(StatementTransaction.status, func.count())
        .where(StatementTransaction.statement_id == reconciliation.bank_statement_id)
        .group_by(StatementTransaction.status)
    )
    counts = {status: count for status, count in status_rows.all()}
    matched_count = counts.get(StatementTransactionStatus.MATCHED, 0)
    unmatched_count = counts.get(StatementTransactionStatus.UNMATCHED, 0)

    matched_total = sum(await _matched_amounts(db, reconciliation.id), ZERO)
    adjustments = await _adjustment_amounts(db, reconciliation.id)
    adjustments_total = sum(adjustments, ZERO)

    approval_rows = await db.execute(
        select(ReconciliationAdjustment.status, func.count())
        .where(ReconciliationAdjustment.reconciliation_id == reconciliation.id)
        .group_by(ReconciliationAdjustment.status)
    )
    approvals = {status: count for status, count in approval_rows.all()}

    return ReconciliationSummary(
        reconciliation_id=reconciliation.id,
        status=reconciliation.status,
        statement_balance=reconciliation.statement_balance,
        book_balance=reconciliation.book_balance,
        matched_total=_money(matched_total),
        adjustments_total=_money(adjustments_total),
        difference=reconciliation.difference,
        is_balanced=is_within_tolerance(reconciliation.difference),
        total_transactions=matched_count + unmatched_count,
        matched_transactions=matched_count,
        unmatched_transactions=unmatched_count,
        adjustment_count=len(adjustments),
        approved_adjustments=approvals.get(AdjustmentStatus.APPROVED, 0),
        pending_adjustments=approvals.get(AdjustmentStatus.PENDING, 0),
    )
