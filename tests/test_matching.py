"""Tests for the auto-matcher."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select

from bankrec.models import (
    JournalEntry,
    JournalEntryStatus,
    MatchType,
    ReconciliationMatch,
    ReconciliationStatus,
    StatementTransaction,
    StatementTransactionStatus,
)
from bankrec.services.errors import NotFoundError, SessionClosedError, ValidationError
from bankrec.services.matching import (
    CandidateLine,
    auto_match,
    get_unmatched_items,
    normalize_text,
    plan_matches,
    resolve_tolerance,
    score_description,
)
from bankrec.services.reconciliation import close_reconciliation, create_reconciliation, match_transaction
from tests.factories import (
    BankAccountFactory,
    BankStatementFactory,
    JournalEntryFactory,
    StatementTransactionFactory,
)


@dataclass
class Txn:
    id: UUID
    txn_date: date
    amount: Decimal
    description: str


def _txn(amount: str, day: int, description: str = "") -> Txn:
    return Txn(id=uuid4(), txn_date=date(2024, 1, day), amount=Decimal(amount), description=description)


def _line(amount: str, day: int, description: str = "", line_id: UUID | None = None) -> CandidateLine:
    return CandidateLine(
        id=line_id or uuid4(),
        journal_entry_id=uuid4(),
        entry_date=date(2024, 1, day),
        amount=Decimal(amount),
        description=description,
    )


class TestScoring:
    def test_normalize_text(self):
        assert normalize_text("  ACME-Corp.   Payroll!! ") == "acme corp payroll"

    def test_identical_descriptions_score_100(self):
        assert score_description("Deposit A", "deposit a") == 100.0

    def test_empty_descriptions_score_zero(self):
        assert score_description("", "Deposit") == 0.0
        assert score_description(None, "Deposit") == 0.0
        assert score_description("***", "Deposit") == 0.0

    def test_similar_beats_dissimilar(self):
        assert score_description("ACME PAYROLL", "Acme Corp Payroll") > score_description("ACME PAYROLL", "Water")


class TestResolveTolerance:
    def test_default_comes_from_settings(self, monkeypatch):
        from bankrec.config import settings

        monkeypatch.setattr(settings, "reconciliation_date_tolerance_days", 5)
        assert resolve_tolerance(None) == 5

    def test_zero_is_allowed(self):
        assert resolve_tolerance(0) == 0

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            resolve_tolerance(-1)

    def test_above_maximum_rejected(self, monkeypatch):
        from bankrec.config import settings

        monkeypatch.setattr(settings, "reconciliation_max_date_tolerance_days", 10)
        with pytest.raises(ValidationError, match="must not exceed 10"):
            resolve_tolerance(11)


class TestPlanMatches:
    def test_requires_exact_amount(self):
        txns = [_txn("100.00", 10)]
        lines = [_line("100.01", 10), _line("-100.00", 10)]

        assert plan_matches(txns, lines, description_match=False, date_tolerance_days=3) == []

    def test_date_window_is_inclusive(self):
        txns = [_txn("100.00", 10)]
        edge = _line("100.00", 13)
        outside = _line("100.00", 14)

        planned = plan_matches(txns, [outside, edge], description_match=False, date_tolerance_days=3)

        assert [p.journal_line_id for p in planned] == [edge.id]
        assert planned[0].score is None

    def test_nearest_date_wins_without_description_matching(self):
        txns = [_txn("40.00", 10, "Coffee")]
        far = _line("40.00", 12, "Coffee")
        near = _line("40.00", 9, "Something else")

        planned = plan_matches(txns, [far, near], description_match=False, date_tolerance_days=3)

        assert planned[0].journal_line_id == near.id

    def test_best_description_wins_with_description_matching(self):
        txns = [_txn("40.00", 10, "Coffee Roasters")]
        far = _line("40.00", 12, "COFFEE ROASTERS")
        near = _line("40.00", 10, "Hardware store")

        planned = plan_matches(txns, [near, far], description_match=True, date_tolerance_days=3)

        assert planned[0].journal_line_id == far.id
        assert planned[0].score == 100.0

    def test_lowest_id_breaks_full_ties(self):
        low = _line("10.00", 5, line_id=UUID(int=1))
        high = _line("10.00", 5, line_id=UUID(int=2))

        planned = plan_matches([_txn("10.00", 5)], [high, low], description_match=False, date_tolerance_days=0)

        assert planned[0].journal_line_id == low.id

    def test_candidate_is_consumed_once(self):
        first = _txn("25.00", 3)
        second = _txn("25.00", 3)
        only = _line("25.00", 3)

        planned = plan_matches([first, second], [only], description_match=False, date_tolerance_days=0)

        assert len(planned) == 1
        assert planned[0].transaction_id == first.id

    def test_greedy_pass_does_not_backtrack(self):
        """Statement order decides: the first transaction takes the closer line even if that strands the second."""
        t1 = _txn("5.00", 10)
        t2 = _txn("5.00", 7)
        l_near_both = _line("5.00", 9)
        l_near_t1 = _line("5.00", 12)

        planned = plan_matches([t1, t2], [l_near_both, l_near_t1], description_match=False, date_tolerance_days=2)

        assert [(p.transaction_id, p.journal_line_id) for p in planned] == [(t1.id, l_near_both.id)]

    def test_deterministic(self):
        txns = [_txn("10.00", d) for d in (1, 2, 3)]
        lines = [_line("10.00", d) for d in (1, 2, 3, 4)]

        first = plan_matches(txns, lines, description_match=True, date_tolerance_days=3)
        second = plan_matches(txns, list(reversed(lines)), description_match=True, date_tolerance_days=3)

        assert first == second


# --- Database-backed auto-match ---


async def _scenario(db, *, opening: str = "1000.00", closing: str = "1500.00"):
    """Statement [+200 Deposit A, -50 Fee B, +350 Deposit C] with matching ledger lines."""
    bank_account = await BankAccountFactory.create_with_gl_async(db, beginning_balance=Decimal(opening))
    statement = await BankStatementFactory.create_async(
        db,
        bank_account_id=bank_account.id,
        opening_balance=Decimal(opening),
        closing_balance=Decimal(closing),
    )
    txns = []
    for line_number, (amount, day, description) in enumerate(
        [("200.00", 10, "Deposit A"), ("-50.00", 12, "Fee B"), ("350.00", 20, "Deposit C")], start=1
    ):
        txns.append(
            await StatementTransactionFactory.create_async(
                db,
                statement_id=statement.id,
                line_number=line_number,
                txn_date=date(2024, 1, day),
                amount=Decimal(amount),
                description=description,
            )
        )

    lines = []
    for amount, day, memo in [("200.00", 10, "Deposit A"), ("-50.00", 13, "Bank Fee"), ("350.00", 20, "Deposit C")]:
        _, line = await JournalEntryFactory.create_cash_entry_async(
            db, bank_account.gl_account_id, Decimal(amount), entry_date=date(2024, 1, day), memo=memo
        )
        lines.append(line)
    await db.commit()

    reconciliation = await create_reconciliation(
        db,
        bank_account_id=bank_account.id,
        statement_id=statement.id,
        reconciliation_date=date(2024, 1, 31),
    )
    await db.commit()
    return reconciliation, txns, lines


async def test_auto_match_pairs_every_transaction(db):
    """
    GIVEN a statement whose three transactions each have a ledger counterpart
    WHEN auto-match runs with a 1 day tolerance and description matching
    THEN all three are matched and the session balances
    """
    reconciliation, txns, lines = await _scenario(db)

    result = await auto_match(db, reconciliation.id, description_match=True, date_tolerance_days=1)
    await db.commit()

    assert result.matches == 3
    assert result.pairs == [(t.id, line.id) for t, line in zip(txns, lines)]

    remaining, _ = await get_unmatched_items(db, reconciliation.id, date_tolerance_days=1)
    assert remaining == []

    matches = (await db.execute(select(ReconciliationMatch))).scalars().all()
    assert {m.match_type for m in matches} == {MatchType.AUTO}
    assert all(m.score is not None for m in matches)

    assert reconciliation.difference == Decimal("0.00")
    assert reconciliation.status == ReconciliationStatus.BALANCED


async def test_auto_match_respects_tolerance(db):
    """The fee line posted a day late is out of reach at tolerance 0."""
    reconciliation, txns, _ = await _scenario(db)

    result = await auto_match(db, reconciliation.id, date_tolerance_days=0)
    await db.commit()

    assert result.matches == 2
    fee = await db.get(StatementTransaction, txns[1].id)
    assert fee.status == StatementTransactionStatus.UNMATCHED
    assert reconciliation.difference == Decimal("-50.00")
    assert reconciliation.status == ReconciliationStatus.IN_PROGRESS


async def test_auto_match_twice_finds_nothing_new(db):
    reconciliation, _, _ = await _scenario(db)

    await auto_match(db, reconciliation.id, date_tolerance_days=1)
    await db.commit()
    second = await auto_match(db, reconciliation.id, date_tolerance_days=1)

    assert second.matches == 0
    assert second.pairs == []


async def test_auto_match_skips_lines_claimed_manually(db):
    reconciliation, txns, lines = await _scenario(db)
    # Pair the 350 deposit with the 200 ledger line by hand
    await match_transaction(db, reconciliation.id, txns[2].id, lines[0].id)
    await db.commit()

    result = await auto_match(db, reconciliation.id, date_tolerance_days=1)

    assert lines[0].id not in {line_id for _, line_id in result.pairs}
    assert txns[0].id not in {txn_id for txn_id, _ in result.pairs}
    assert result.matches == 1


async def test_auto_match_ignores_draft_and_void_entries(db):
    reconciliation, txns, lines = await _scenario(db)
    for line in lines:
        entry = await db.get(JournalEntry, line.journal_entry_id)
        entry.status = JournalEntryStatus.DRAFT if line is lines[0] else JournalEntryStatus.VOID
    await db.commit()

    result = await auto_match(db, reconciliation.id, date_tolerance_days=1)

    assert result.matches == 0


async def test_auto_match_rejects_closed_session(db):
    reconciliation, _, _ = await _scenario(db)
    await auto_match(db, reconciliation.id, date_tolerance_days=1)
    await db.commit()
    await close_reconciliation(db, reconciliation.id)
    await db.commit()

    with pytest.raises(SessionClosedError):
        await auto_match(db, reconciliation.id)


async def test_auto_match_unknown_session(db):
    with pytest.raises(NotFoundError):
        await auto_match(db, uuid4())


async def test_auto_match_rejects_out_of_range_tolerance(db):
    reconciliation, _, _ = await _scenario(db)

    with pytest.raises(ValidationError):
        await auto_match(db, reconciliation.id, date_tolerance_days=365)


async def test_unmatched_workspace_lists_candidates(db):
    reconciliation, txns, lines = await _scenario(db)

    transactions, candidates = await get_unmatched_items(db, reconciliation.id, date_tolerance_days=1)

    assert [t.id for t in transactions] == [t.id for t in txns]
    assert {c.id for c in candidates} == {line.id for line in lines}
    fee = next(c for c in candidates if c.id == lines[1].id)
    assert fee.amount == Decimal("-50.00")
    assert fee.description == "Bank Fee"
