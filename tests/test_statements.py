"""Tests for statement upload and transaction import."""

import hashlib
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from bankrec.models import (
    BankStatement,
    BankStatementStatus,
    ImportJob,
    ImportJobStatus,
    StatementFileFormat,
    StatementTransaction,
    StatementTransactionStatus,
)
from bankrec.services import statements as service
from bankrec.services.errors import ConflictError, NotFoundError, ParseError, PersistenceError, ValidationError
from bankrec.services.reconciliation import create_reconciliation
from tests.factories import BankAccountFactory, BankStatementFactory

CSV_CONTENT = b"""Date,Description,Amount,Reference
2024-01-05,ACME CORP PAYROLL,1500.00,DEP-1
2024-01-10,CHECK 1042,-250.75,
2024-01-12,Service charge,-12.00,
"""


async def _upload(db, bank_account, **kwargs) -> BankStatement:
    params = {
        "bank_account_id": bank_account.id,
        "statement_date": date(2024, 1, 31),
        "period_start": date(2024, 1, 1),
        "period_end": date(2024, 1, 31),
        "opening_balance": Decimal("1000.00"),
        "closing_balance": Decimal("2237.25"),
    }
    params.update(kwargs)
    statement = await service.upload_statement(db, **params)
    await db.commit()
    return statement


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestUploadStatement:
    async def test_creates_uploaded_header(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)

        statement = await _upload(db, bank_account, notes="January")

        assert statement.status == BankStatementStatus.UPLOADED
        assert statement.opening_balance == Decimal("1000.00")
        assert statement.import_method == "manual"
        assert statement.file_hash is None
        assert await _count(db, StatementTransaction) == 0

    async def test_stores_file_reference_only(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)

        statement = await _upload(db, bank_account, filename="jan.csv", content=CSV_CONTENT, import_method="upload")

        assert statement.file_format == StatementFileFormat.CSV
        assert statement.original_filename == "jan.csv"
        assert statement.file_size == len(CSV_CONTENT)
        assert statement.file_hash == hashlib.sha256(CSV_CONTENT).hexdigest()
        assert await _count(db, StatementTransaction) == 0

    async def test_inverted_period_creates_nothing(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        await db.commit()

        with pytest.raises(ValidationError, match="period_start"):
            await _upload(db, bank_account, period_start=date(2024, 2, 1), period_end=date(2024, 1, 1))

        assert await _count(db, BankStatement) == 0

    async def test_single_day_period_is_valid(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)

        statement = await _upload(db, bank_account, period_start=date(2024, 1, 15), period_end=date(2024, 1, 15))

        assert statement.period_start == statement.period_end

    async def test_non_finite_balance_rejected(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)

        with pytest.raises(ValidationError, match="closing_balance"):
            await _upload(db, bank_account, closing_balance=Decimal("NaN"))

    async def test_unsupported_file_rejected(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)

        with pytest.raises(ValidationError, match="Unsupported"):
            await _upload(db, bank_account, filename="jan.pdf", content=b"%PDF-1.4")

    async def test_unknown_bank_account(self, db):
        with pytest.raises(NotFoundError):
            await service.upload_statement(
                db,
                bank_account_id=uuid4(),
                statement_date=date(2024, 1, 31),
                period_start=date(2024, 1, 1),
                period_end=date(2024, 1, 31),
                opening_balance=Decimal("0"),
                closing_balance=Decimal("0"),
            )


class TestImportTransactions:
    async def test_imports_rows_in_file_order(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)

        result = await service.import_transactions(db, statement.id, CSV_CONTENT, StatementFileFormat.CSV)
        await db.commit()

        assert result.inserted == 3
        rows = await service.list_statement_transactions(db, statement.id)
        assert [row.line_number for row in rows] == [1, 2, 3]
        assert [row.amount for row in rows] == [Decimal("1500.00"), Decimal("-250.75"), Decimal("-12.00")]
        assert {row.status for row in rows} == {StatementTransactionStatus.UNMATCHED}
        assert statement.status == BankStatementStatus.PROCESSED

        job = await db.get(ImportJob, result.job_id)
        assert job.status == ImportJobStatus.COMPLETED
        assert job.total_rows == 3
        assert job.inserted_rows == 3
        assert job.finished_at is not None

    async def test_malformed_row_inserts_nothing(self, db):
        """
        GIVEN a CSV whose second row has an unparseable amount
        WHEN it is imported
        THEN no transaction is stored and the job is recorded as failed
        """
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)
        content = b"Date,Description,Amount\n2024-01-05,Good,10.00\n2024-01-06,Bad,oops\n"

        with pytest.raises(ParseError, match="Row 2"):
            await service.import_transactions(db, statement.id, content, "csv")

        assert await _count(db, StatementTransaction) == 0
        job = (await db.execute(select(ImportJob))).scalar_one()
        assert job.status == ImportJobStatus.FAILED
        assert "Row 2" in job.error
        refreshed = await db.get(BankStatement, statement.id, populate_existing=True)
        assert refreshed.status == BankStatementStatus.UPLOADED

    async def test_empty_file_is_a_parse_error(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)

        with pytest.raises(ParseError, match="empty"):
            await service.import_transactions(db, statement.id, b"", StatementFileFormat.CSV)

    async def test_header_only_file_is_rejected_and_statement_stays_open(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)
        statement_id = statement.id

        with pytest.raises(ParseError, match="no transactions"):
            await service.import_transactions(db, statement_id, b"Date,Description,Amount\n", "csv")
        await db.rollback()

        job = (await db.execute(select(ImportJob))).scalar_one()
        assert job.status == ImportJobStatus.FAILED
        refreshed = await db.get(BankStatement, statement_id, populate_existing=True)
        assert refreshed.status == BankStatementStatus.UPLOADED

        result = await service.import_transactions(db, statement_id, CSV_CONTENT, "csv")
        assert result.inserted == 3

    async def test_second_import_is_refused(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)
        await service.import_transactions(db, statement.id, CSV_CONTENT, "csv")
        await db.commit()

        with pytest.raises(ConflictError, match="already imported"):
            await service.import_transactions(db, statement.id, CSV_CONTENT, "csv")

    async def test_unsupported_format(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)

        with pytest.raises(ValidationError):
            await service.import_transactions(db, statement.id, CSV_CONTENT, "xls")

    async def test_unknown_statement(self, db):
        with pytest.raises(NotFoundError):
            await service.import_transactions(db, uuid4(), CSV_CONTENT, "csv")

    async def test_store_failure_records_rolled_back_job(self, db, monkeypatch):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)
        real_flush = db.flush
        calls = {"n": 0}

        async def flaky_flush(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("INSERT", {}, Exception("connection reset"))
            return await real_flush(*args, **kwargs)

        monkeypatch.setattr(db, "flush", flaky_flush)

        with pytest.raises(PersistenceError):
            await service.import_transactions(db, statement.id, CSV_CONTENT, "csv")

        monkeypatch.undo()
        assert await _count(db, StatementTransaction) == 0
        job = (await db.execute(select(ImportJob))).scalar_one()
        assert job.status == ImportJobStatus.ROLLED_BACK


class TestStatementMaintenance:
    async def test_update_before_reconciliation(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)

        updated = await service.update_statement(db, statement.id, {"closing_balance": Decimal("2000.004")})

        assert updated.closing_balance == Decimal("2000.00")

    async def test_update_with_inverted_period_rejected(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)

        with pytest.raises(ValidationError):
            await service.update_statement(db, statement.id, {"period_end": date(2023, 12, 1)})

    async def test_referenced_statement_is_frozen(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await BankStatementFactory.create_async(
            db, bank_account_id=bank_account.id, status=BankStatementStatus.PROCESSED
        )
        await db.commit()
        await create_reconciliation(
            db, bank_account_id=bank_account.id, statement_id=statement.id, reconciliation_date=date(2024, 1, 31)
        )
        await db.commit()

        with pytest.raises(ConflictError):
            await service.update_statement(db, statement.id, {"notes": "changed"})
        with pytest.raises(ConflictError):
            await service.delete_statement(db, statement.id)

    async def test_delete_removes_transactions(self, db):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)
        await service.import_transactions(db, statement.id, CSV_CONTENT, "csv")
        await db.commit()

        await service.delete_statement(db, statement.id)
        await db.commit()

        assert await _count(db, BankStatement) == 0
        assert await _count(db, StatementTransaction) == 0

    async def test_list_statements_filters_by_account(self, db):
        first = await BankAccountFactory.create_with_gl_async(db)
        second = await BankAccountFactory.create_with_gl_async(db)
        await _upload(db, first)
        await _upload(db, second)
        await _upload(db, second, statement_date=date(2024, 2, 29))

        items, total = await service.list_statements(db, bank_account_id=second.id)

        assert total == 2
        assert [s.statement_date for s in items] == [date(2024, 2, 29), date(2024, 1, 31)]


def _failing_flush():
    async def failing_flush(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("connection reset"))

    return failing_flush


class TestStatementStoreFailures:
    async def test_upload_failure_raises_persistence_error(self, db, monkeypatch):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        await db.commit()
        monkeypatch.setattr(db, "flush", _failing_flush())

        with pytest.raises(PersistenceError, match="upload statement"):
            await _upload(db, bank_account)

        monkeypatch.undo()
        assert await _count(db, BankStatement) == 0

    async def test_update_failure_leaves_statement_unchanged(self, db, monkeypatch):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)
        statement_id = statement.id
        monkeypatch.setattr(db, "flush", _failing_flush())

        with pytest.raises(PersistenceError):
            await service.update_statement(db, statement_id, {"notes": "changed"})

        monkeypatch.undo()
        stored = await db.get(BankStatement, statement_id, populate_existing=True)
        assert stored.notes is None

    async def test_delete_failure_keeps_statement(self, db, monkeypatch):
        bank_account = await BankAccountFactory.create_with_gl_async(db)
        statement = await _upload(db, bank_account)
        statement_id = statement.id
        monkeypatch.setattr(db, "flush", _failing_flush())

        with pytest.raises(PersistenceError):
            await service.delete_statement(db, statement_id)

        monkeypatch.undo()
        assert await _count(db, BankStatement) == 1
