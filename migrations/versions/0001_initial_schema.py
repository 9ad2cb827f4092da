"""Initial schema for bank reconciliation.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    account_type_enum = sa.Enum(
        "ASSET",
        "LIABILITY",
        "EQUITY",
        "INCOME",
        "EXPENSE",
        name="account_type_enum",
    )
    journal_entry_status_enum = sa.Enum("draft", "posted", "void", name="journal_entry_status_enum")
    journal_line_direction_enum = sa.Enum("DEBIT", "CREDIT", name="journal_line_direction_enum")
    bank_statement_status_enum = sa.Enum(
        "uploaded",
        "processed",
        "reconciled",
        name="bank_statement_status_enum",
    )
    statement_file_format_enum = sa.Enum("csv", "ofx", "qfx", name="statement_file_format_enum")
    statement_transaction_status_enum = sa.Enum(
        "unmatched",
        "matched",
        name="statement_transaction_status_enum",
    )
    reconciliation_status_enum = sa.Enum(
        "created",
        "in_progress",
        "balanced",
        "closed",
        name="reconciliation_status_enum",
    )
    match_type_enum = sa.Enum("auto", "manual", name="reconciliation_match_type_enum")
    adjustment_type_enum = sa.Enum(
        "bank_fee",
        "interest",
        "error",
        "other",
        name="reconciliation_adjustment_type_enum",
    )
    adjustment_status_enum = sa.Enum("pending", "approved", name="reconciliation_adjustment_status_enum")
    import_job_status_enum = sa.Enum(
        "processing",
        "completed",
        "failed",
        "rolled_back",
        name="import_job_status_enum",
    )

    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=True, unique=True),
        sa.Column("type", account_type_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "journal_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("memo", sa.String(length=500), nullable=False),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("status", journal_entry_status_enum, nullable=False),
        sa.Column("void_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_journal_entries_entry_date", "journal_entries", ["entry_date"])
    op.create_index("ix_journal_entries_status", "journal_entries", ["status"])

    op.create_table(
        "journal_lines",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("journal_entry_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("direction", journal_line_direction_enum, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="positive_amount"),
        sa.ForeignKeyConstraint(["journal_entry_id"], ["journal_entries.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
    )
    op.create_index("ix_journal_lines_journal_entry_id", "journal_lines", ["journal_entry_id"])
    op.create_index("ix_journal_lines_account_id", "journal_lines", ["account_id"])

    op.create_table(
        "bank_accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("bank_name", sa.String(length=255), nullable=False),
        sa.Column("account_number", sa.String(length=50), nullable=False),
        sa.Column("routing_number", sa.String(length=20), nullable=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("gl_account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("beginning_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("last_reconciliation_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("last_reconciliation_date", sa.Date(), nullable=True),
        sa.Column("reconciled_balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["gl_account_id"], ["accounts.id"]),
    )
    op.create_index("ix_bank_accounts_entity_id", "bank_accounts", ["entity_id"])
    op.create_index("ix_bank_accounts_gl_account_id", "bank_accounts", ["gl_account_id"])

    op.create_table(
        "bank_statements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("bank_account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("statement_date", sa.Date(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("opening_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("closing_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", bank_statement_status_enum, nullable=False),
        sa.Column("original_filename", sa.String(length=255), nullable=True),
        sa.Column("file_format", statement_file_format_enum, nullable=True),
        sa.Column("file_hash", sa.String(length=64), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("import_method", sa.String(length=20), nullable=False, server_default="manual"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["bank_account_id"], ["bank_accounts.id"]),
    )
    op.create_index("ix_bank_statements_bank_account_id", "bank_statements", ["bank_account_id"])

    op.create_table(
        "statement_transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("statement_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("txn_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("reference", sa.String(length=100), nullable=True),
        sa.Column("check_number", sa.String(length=50), nullable=True),
        sa.Column("running_balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("transaction_type", sa.String(length=30), nullable=False, server_default="other"),
        sa.Column("status", statement_transaction_status_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["statement_id"], ["bank_statements.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("statement_id", "line_number", name="uq_statement_transactions_line"),
    )
    op.create_index("ix_statement_transactions_statement_id", "statement_transactions", ["statement_id"])
    op.create_index("ix_statement_transactions_status", "statement_transactions", ["status"])

    op.create_table(
        "reconciliations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("bank_account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("bank_statement_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reconciliation_date", sa.Date(), nullable=False),
        sa.Column("start_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("end_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("book_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("statement_balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("difference", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("status", reconciliation_status_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["bank_account_id"], ["bank_accounts.id"]),
        sa.ForeignKeyConstraint(["bank_statement_id"], ["bank_statements.id"]),
    )
    op.create_index("ix_reconciliations_bank_account_id", "reconciliations", ["bank_account_id"])
    op.create_index("ix_reconciliations_bank_statement_id", "reconciliations", ["bank_statement_id"])
    op.create_index("ix_reconciliations_status", "reconciliations", ["status"])
    op.create_index(
        "uq_reconciliations_open_statement",
        "reconciliations",
        ["bank_statement_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'closed'"),
    )

    op.create_table(
        "reconciliation_matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("reconciliation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("bank_txn_id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("journal_line_id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("match_type", match_type_enum, nullable=False),
        sa.Column("score", sa.Numeric(5, 2), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["reconciliation_id"], ["reconciliations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["bank_txn_id"], ["statement_transactions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["journal_line_id"], ["journal_lines.id"]),
    )
    op.create_index("ix_reconciliation_matches_reconciliation_id", "reconciliation_matches", ["reconciliation_id"])

    op.create_table(
        "reconciliation_adjustments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("reconciliation_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("adjustment_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("adjustment_type", adjustment_type_enum, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("status", adjustment_status_enum, nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["reconciliation_id"], ["reconciliations.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_reconciliation_adjustments_reconciliation_id", "reconciliation_adjustments", ["reconciliation_id"]
    )

    op.create_table(
        "import_jobs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("kind", sa.String(length=50), nullable=False, server_default="statement_transactions"),
        sa.Column("statement_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", import_job_status_enum, nullable=False),
        sa.Column("file_format", sa.String(length=10), nullable=True),
        sa.Column("total_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inserted_rows", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["statement_id"], ["bank_statements.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_import_jobs_statement_id", "import_jobs", ["statement_id"])


def downgrade() -> None:
    op.drop_table("import_jobs")
    op.drop_table("reconciliation_adjustments")
    op.drop_table("reconciliation_matches")
    op.drop_index("uq_reconciliations_open_statement", table_name="reconciliations")
    op.drop_table("reconciliations")
    op.drop_table("statement_transactions")
    op.drop_table("bank_statements")
    op.drop_table("bank_accounts")
    op.drop_table("journal_lines")
    op.drop_table("journal_entries")
    op.drop_table("accounts")

    op.execute("DROP TYPE IF EXISTS import_job_status_enum")
    op.execute("DROP TYPE IF EXISTS reconciliation_adjustment_status_enum")
    op.execute("DROP TYPE IF EXISTS reconciliation_adjustment_type_enum")
    op.execute("DROP TYPE IF EXISTS reconciliation_match_type_enum")
    op.execute("DROP TYPE IF EXISTS reconciliation_status_enum")
    op.execute("DROP TYPE IF EXISTS statement_transaction_status_enum")
    op.execute("DROP TYPE IF EXISTS statement_file_format_enum")
    op.execute("DROP TYPE IF EXISTS bank_statement_status_enum")
    op.execute("DROP TYPE IF EXISTS journal_line_direction_enum")
    op.execute("DROP TYPE IF EXISTS journal_entry_status_enum")
    op.execute("DROP TYPE IF EXISTS account_type_enum")
