"""Auto-matcher: greedy one-pass pairing of statement lines with ledger lines.

For each unmatched statement transaction, in statement order, pick among the
unconsumed candidate lines with the exact same signed amount and a date within
the tolerance window. With description matching on, the most similar
description wins; remaining ties go to the nearest date and then the lowest
line id. A consumed candidate is never offered again in the same pass.

The pass does not backtrack, so it can miss matches an assignment-optimal
matcher would find. Given the same inputs it always produces the same pairs.
"""

import re
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from difflib import SequenceMatcher
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bankrec.config import settings
from bankrec.logger import async_log_timing, get_logger
from bankrec.models import (
    BankAccount,
    BankStatement,
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    MatchType,
    Reconciliation,
    ReconciliationMatch,
    StatementTransaction,
    StatementTransactionStatus,
)
from bankrec.models.journal import signed_bank_amount
from bankrec.services.errors import ValidationError
from bankrec.services.reconciliation import get_reconciliation, lock_open_session, persist, recompute_balance

logger = get_logger(__name__)


class MatchableTransaction(Protocol):
    id: UUID
    txn_date: date
    amount: Decimal
    description: str


@dataclass(frozen=True)
class CandidateLine:
    """A posted, unmatched journal line on the bank's GL account, in bank-statement sign."""

    id: UUID
    journal_entry_id: UUID
    entry_date: date
    amount: Decimal
    description: str
    reference: str | None = None


@dataclass(frozen=True)
class PlannedMatch:
    transaction_id: UUID
    journal_line_id: UUID
    score: float | None


@dataclass
class AutoMatchResult:
    matches: int
    pairs: list[tuple[UUID, UUID]] = field(default_factory=list)


def normalize_text(value: str) -> str:
    """Normalize text for similarity comparison."""
    cleaned = re.sub(r"[^a-z0-9]+", " ", value.lower()).strip()
    return re.sub(r"\s+", " ", cleaned)


def score_description(a: str | None, b: str | None) -> float:
    """Score description similarity (0-100)."""
    if not a or not b:
        return 0.0
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)
    if not norm_a or not norm_b:
        return 0.0
    ratio = SequenceMatcher(None, norm_a, norm_b).ratio()
    tokens_a = set(norm_a.split())
    tokens_b = set(norm_b.split())
    token_score = len(tokens_a & tokens_b) / len(tokens_a | tokens_b) if tokens_a | tokens_b else 0
    return round(100 * (0.6 * ratio + 0.4 * token_score), 2)


def date_distance(a: date, b: date) -> int:
    return abs((a - b).days)


def resolve_tolerance(date_tolerance_days: int | None) -> int:
    days = settings.reconciliation_date_tolerance_days if date_tolerance_days is None else date_tolerance_days
    if days < 0:
        raise ValidationError("date_tolerance_days must be zero or greater")
    if days > settings.reconciliation_max_date_tolerance_days:
        raise ValidationError(
            f"date_tolerance_days must not exceed {settings.reconciliation_max_date_tolerance_days}"
        )
    return days


def plan_matches(
    transactions: Sequence[MatchableTransaction],
    candidates: Iterable[CandidateLine],
    *,
    description_match: bool,
    date_tolerance_days: int,
) -> list[PlannedMatch]:
    """Run the greedy pass over in-memory data.

    ``transactions`` must already be in statement order.
    """
    by_amount: dict[Decimal, list[CandidateLine]] = defaultdict(list)
    for candidate in candidates:
        by_amount[candidate.amount].append(candidate)

    consumed: set[UUID] = set()
    planned: list[PlannedMatch] = []

    for txn in transactions:
        pool = [
            c
            for c in by_amount.get(txn.amount, ())
            if c.id not in consumed and date_distance(c.entry_date, txn.txn_date) <= date_tolerance_days
        ]
        if not pool:
            continue

        if description_match:
            scored = [(score_description(txn.description, c.description), c) for c in pool]
            score, best = min(
                scored,
                key=lambda item: (-item[0], date_distance(item[1].entry_date, txn.txn_date), item[1].id),
            )
        else:
            score = None
            best = min(pool, key=lambda c: (date_distance(c.entry_date, txn.txn_date), c.id))

        consumed.add(best.id)
        planned.append(PlannedMatch(transaction_id=txn.id, journal_line_id=best.id, score=score))

    return planned


async def load_candidate_lines(
    db: AsyncSession,
    *,
    gl_account_id: UUID,
    window_start: date,
    window_end: date,
) -> list[CandidateLine]:
    """Posted, unmatched lines on ``gl_account_id`` dated within the window (inclusive)."""
    result = await db.execute(
        select(
            JournalLine.id,
            JournalLine.journal_entry_id,
            JournalEntry.entry_date,
            JournalLine.direction,
            JournalLine.amount,
            JournalLine.description,
            JournalEntry.memo,
            JournalEntry.reference,
        )
        .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
        .outerjoin(ReconciliationMatch, ReconciliationMatch.journal_line_id == JournalLine.id)
        .where(JournalLine.account_id == gl_account_id)
        .where(JournalEntry.status == JournalEntryStatus.POSTED)
        .where(JournalEntry.entry_date >= window_start)
        .where(JournalEntry.entry_date <= window_end)
        .where(ReconciliationMatch.id.is_(None))
        .order_by(JournalEntry.entry_date, JournalLine.id)
    )
    return [
        CandidateLine(
            id=row.id,
            journal_entry_id=row.journal_entry_id,
            entry_date=row.entry_date,
            amount=signed_bank_amount(row.direction, row.amount),
            description=row.description or row.memo,
            reference=row.reference,
        )
        for row in result.all()
    ]


async def _load_scope(db: AsyncSession, reconciliation: Reconciliation) -> tuple[BankStatement, BankAccount]:
    statement = await db.get(BankStatement, reconciliation.bank_statement_id)
    bank_account = await db.get(BankAccount, reconciliation.bank_account_id)
    return statement, bank_account


async def _unmatched_transactions(
    db: AsyncSession,
    statement_id: UUID,
    *,
    for_update: bool = False,
) -> list[StatementTransaction]:
    query = (
        select(StatementTransaction)
        .where(StatementTransaction.statement_id == statement_id)
        .where(StatementTransaction.status == StatementTransactionStatus.UNMATCHED)
        .order_by(StatementTransaction.line_number)
    )
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return list(result.scalars().all())


async def auto_match(
    db: AsyncSession,
    reconciliation_id: UUID,
    *,
    description_match: bool | None = None,
    date_tolerance_days: int | None = None,
) -> AutoMatchResult:
    """
    Match every unmatched statement transaction it can in one greedy pass.

    A pass that finds nothing returns ``matches == 0``; it is not an error.

    Raises:
        NotFoundError: Reconciliation does not exist
        SessionClosedError: Session is closed
        ValidationError: Tolerance out of range
        PersistenceError: Store rejected the writes (rolled back)
    """
    days = resolve_tolerance(date_tolerance_days)
    if description_match is None:
        description_match = settings.reconciliation_description_match

    reconciliation = await lock_open_session(db, reconciliation_id)
    statement, bank_account = await _load_scope(db, reconciliation)

    async with async_log_timing(
        "auto_match",
        logger=logger,
        reconciliation_id=str(reconciliation.id),
        description_match=description_match,
        date_tolerance_days=days,
    ) as timing:
        transactions = await _unmatched_transactions(db, statement.id, for_update=True)
        tolerance = timedelta(days=days)
        candidates = await load_candidate_lines(
            db,
            gl_account_id=bank_account.gl_account_id,
            window_start=statement.period_start - tolerance,
            window_end=statement.period_end + tolerance,
        )

        planned = plan_matches(
            transactions,
            candidates,
            description_match=description_match,
            date_tolerance_days=days,
        )

        by_id = {txn.id: txn for txn in transactions}
        for item in planned:
            db.add(
                ReconciliationMatch(
                    reconciliation_id=reconciliation.id,
                    bank_txn_id=item.transaction_id,
                    journal_line_id=item.journal_line_id,
                    match_type=MatchType.AUTO,
                    score=Decimal(str(item.score)) if item.score is not None else None,
                )
            )
            by_id[item.transaction_id].status = StatementTransactionStatus.MATCHED

        if planned:
            await persist(db, "auto_match", reconciliation_id=str(reconciliation.id))
            await recompute_balance(db, reconciliation)

        timing.update(transactions=len(transactions), candidates=len(candidates), matches=len(planned))

    return AutoMatchResult(
        matches=len(planned),
        pairs=[(item.transaction_id, item.journal_line_id) for item in planned],
    )


async def get_unmatched_items(
    db: AsyncSession,
    reconciliation_id: UUID,
    *,
    date_tolerance_days: int | None = None,
) -> tuple[list[StatementTransaction], list[CandidateLine]]:
    """Unmatched statement transactions and the ledger lines still available to them."""
    days = resolve_tolerance(date_tolerance_days)
    reconciliation = await get_reconciliation(db, reconciliation_id)
    statement, bank_account = await _load_scope(db, reconciliation)

    transactions = await _unmatched_transactions(db, statement.id)
    tolerance = timedelta(days=days)
    candidates = await load_candidate_lines(
        db,
        gl_account_id=bank_account.gl_account_id,
        window_start=statement.period_start - tolerance,
        window_end=statement.period_end + tolerance,
    )
    return transactions, candidates
