"""Bank account service."""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bankrec.logger import get_logger
from bankrec.models import Account, AccountType, BankAccount, JournalEntry, JournalEntryStatus, JournalLine
from bankrec.models.journal import signed_bank_amount
from bankrec.services.errors import NotFoundError, ValidationError

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"name", "bank_name", "account_number", "routing_number", "entity_id", "gl_account_id", "is_active"}
)


async def _require_cash_account(db: AsyncSession, gl_account_id: UUID) -> Account:
    account = await db.get(Account, gl_account_id)
    if account is None:
        raise NotFoundError("GL account", gl_account_id)
    if account.type != AccountType.ASSET:
        raise ValidationError("Bank accounts must post to an ASSET GL account")
    return account


async def create_bank_account(
    db: AsyncSession,
    *,
    name: str,
    bank_name: str,
    account_number: str,
    gl_account_id: UUID,
    routing_number: str | None = None,
    entity_id: UUID | None = None,
    beginning_balance: Decimal = Decimal("0.00"),
) -> BankAccount:
    await _require_cash_account(db, gl_account_id)

    bank_account = BankAccount(
        name=name,
        bank_name=bank_name,
        account_number=account_number,
        routing_number=routing_number,
        entity_id=entity_id,
        gl_account_id=gl_account_id,
        beginning_balance=beginning_balance,
        current_balance=beginning_balance,
    )
    db.add(bank_account)
    await db.flush()
    await db.refresh(bank_account)
    logger.info("Bank account created", bank_account_id=str(bank_account.id))
    return bank_account


async def get_bank_account(db: AsyncSession, bank_account_id: UUID) -> BankAccount:
    bank_account = await db.get(BankAccount, bank_account_id)
    if bank_account is None:
        raise NotFoundError("Bank account", bank_account_id)
    return bank_account


async def list_bank_accounts(
    db: AsyncSession,
    *,
    entity_id: UUID | None = None,
    include_inactive: bool = False,
) -> tuple[list[BankAccount], int]:
    query = select(BankAccount)
    if entity_id:
        query = query.where(BankAccount.entity_id == entity_id)
    if not include_inactive:
        query = query.where(BankAccount.is_active.is_(True))

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar_one()

    result = await db.execute(query.order_by(BankAccount.name))
    return list(result.scalars().all()), total


async def update_bank_account(db: AsyncSession, bank_account_id: UUID, changes: dict[str, Any]) -> BankAccount:
    bank_account = await get_bank_account(db, bank_account_id)

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    if changes.get("gl_account_id") and changes["gl_account_id"] != bank_account.gl_account_id:
        await _require_cash_account(db, changes["gl_account_id"])

    for field, value in changes.items():
        setattr(bank_account, field, value)
    await db.flush()
    await db.refresh(bank_account)
    return bank_account


async def recalculate_current_balance(db: AsyncSession, bank_account_id: UUID) -> BankAccount:
    """Set current_balance to beginning balance plus all posted activity on the GL account."""
    bank_account = await get_bank_account(db, bank_account_id)

    result = await db.execute(
        select(JournalLine.direction, JournalLine.amount)
        .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
        .where(JournalLine.account_id == bank_account.gl_account_id)
        .where(JournalEntry.status == JournalEntryStatus.POSTED)
    )
    activity = sum(
        (signed_bank_amount(direction, amount) for direction, amount in result.all()),
        Decimal("0.00"),
    )

    bank_account.current_balance = bank_account.beginning_balance + activity
    await db.flush()
    logger.info(
        "Bank account balance recalculated",
        bank_account_id=str(bank_account.id),
        current_balance=str(bank_account.current_balance),
    )
    return bank_account
