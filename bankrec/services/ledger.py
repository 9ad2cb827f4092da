"""Ledger service - GL accounts and double-entry journal entries.

Only what reconciliation needs: accounts to post against, balanced entries,
and the draft -> posted -> void lifecycle that decides which lines are
reconciliation candidates.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bankrec.logger import get_logger
from bankrec.models import (
    Account,
    AccountType,
    Direction,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    ReconciliationMatch,
)
from bankrec.services.errors import ConflictError, NotFoundError, ValidationError

logger = get_logger(__name__)


def validate_journal_balance(lines: list[JournalLine]) -> None:
    """
    Validate that journal entry lines are balanced (debit = credit).

    Raises:
        ValidationError: If there are fewer than 2 lines or debits and credits differ
    """
    if len(lines) < 2:
        raise ValidationError("Journal entry must have at least 2 lines")

    total_debit = sum((line.amount for line in lines if line.direction == Direction.DEBIT), Decimal("0"))
    total_credit = sum((line.amount for line in lines if line.direction == Direction.CREDIT), Decimal("0"))

    if abs(total_debit - total_credit) > Decimal("0.01"):
        raise ValidationError(f"Journal entry not balanced: debit={total_debit}, credit={total_credit}")


# =============================================================================
# Accounts
# =============================================================================


async def create_account(
    db: AsyncSession,
    *,
    name: str,
    type: AccountType,
    code: str | None = None,
    description: str | None = None,
) -> Account:
    account = Account(name=name, type=type, code=code, description=description)
    db.add(account)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f"Account code {code} already exists") from exc
    await db.refresh(account)
    logger.info("Account created", account_id=str(account.id), account_type=type.value)
    return account


async def get_account(db: AsyncSession, account_id: UUID) -> Account:
    account = await db.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account", account_id)
    return account


async def list_accounts(
    db: AsyncSession,
    *,
    account_type: AccountType | None = None,
    include_inactive: bool = False,
) -> tuple[list[Account], int]:
    query = select(Account)
    if account_type:
        query = query.where(Account.type == account_type)
    if not include_inactive:
        query = query.where(Account.is_active.is_(True))

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar_one()

    result = await db.execute(query.order_by(Account.code, Account.name))
    return list(result.scalars().all()), total


# =============================================================================
# Journal entries
# =============================================================================


async def create_journal_entry(
    db: AsyncSession,
    *,
    entry_date: date,
    memo: str,
    lines_data: list[dict[str, Any]],
    reference: str | None = None,
) -> JournalEntry:
    """Create a draft entry. Balance is checked here and again on post."""
    lines = [
        JournalLine(
            account_id=line_data["account_id"],
            direction=line_data["direction"],
            amount=line_data["amount"],
            description=line_data.get("description"),
        )
        for line_data in lines_data
    ]
    validate_journal_balance(lines)

    account_ids = {line.account_id for line in lines}
    found = await db.execute(select(Account.id).where(Account.id.in_(account_ids)))
    missing = account_ids - set(found.scalars().all())
    if missing:
        raise NotFoundError("Account", sorted(str(m) for m in missing)[0])

    entry = JournalEntry(entry_date=entry_date, memo=memo, reference=reference, lines=lines)
    db.add(entry)
    await db.flush()
    return await get_journal_entry(db, entry.id)


async def get_journal_entry(db: AsyncSession, entry_id: UUID) -> JournalEntry:
    result = await db.execute(
        select(JournalEntry)
        .where(JournalEntry.id == entry_id)
        .options(selectinload(JournalEntry.lines))
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError("Journal entry", entry_id)
    return entry


async def list_journal_entries(
    db: AsyncSession,
    *,
    status: JournalEntryStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[JournalEntry], int]:
    query = select(JournalEntry)
    if status:
        query = query.where(JournalEntry.status == status)
    if start_date:
        query = query.where(JournalEntry.entry_date >= start_date)
    if end_date:
        query = query.where(JournalEntry.entry_date <= end_date)

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar_one()

    result = await db.execute(
        query.options(selectinload(JournalEntry.lines))
        .order_by(JournalEntry.entry_date.desc(), JournalEntry.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def post_journal_entry(db: AsyncSession, entry_id: UUID) -> JournalEntry:
    """
    Post a journal entry from draft to posted status.

    Raises:
        NotFoundError: Entry does not exist
        ValidationError: Entry is not a draft, is unbalanced, or uses an inactive account
    """
    result = await db.execute(
        select(JournalEntry)
        .where(JournalEntry.id == entry_id)
        .options(selectinload(JournalEntry.lines).selectinload(JournalLine.account))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()

    if not entry:
        raise NotFoundError("Journal entry", entry_id)
    if entry.status != JournalEntryStatus.DRAFT:
        raise ValidationError(f"Can only post draft entries, current status: {entry.status.value}")

    validate_journal_balance(entry.lines)

    for line in entry.lines:
        if not line.account.is_active:
            raise ValidationError(f"Account {line.account.name} is not active")

    entry.status = JournalEntryStatus.POSTED
    entry.updated_at = datetime.now(UTC)
    await db.flush()
    logger.info("Journal entry posted", entry_id=str(entry.id), lines=len(entry.lines))
    return entry


async def void_journal_entry(db: AsyncSession, entry_id: UUID, reason: str) -> JournalEntry:
    """
    Void a posted journal entry.

    Lines already claimed by a reconciliation match cannot be voided; unmatch first.
    """
    entry = await get_journal_entry(db, entry_id)
    if entry.status != JournalEntryStatus.POSTED:
        raise ValidationError("Can only void posted entries")

    line_ids = [line.id for line in entry.lines]
    matched = await db.execute(
        select(func.count()).select_from(ReconciliationMatch).where(ReconciliationMatch.journal_line_id.in_(line_ids))
    )
    if matched.scalar_one():
        raise ConflictError("Journal entry has reconciled lines and cannot be voided")

    entry.status = JournalEntryStatus.VOID
    entry.void_reason = reason
    await db.flush()
    logger.info("Journal entry voided", entry_id=str(entry.id), reason=reason)
    return entry
