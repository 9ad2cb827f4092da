"""SQLAlchemy models package."""

from bankrec.models.account import Account, AccountType
from bankrec.models.bank_account import BankAccount
from bankrec.models.import_job import ImportJob, ImportJobStatus
from bankrec.models.journal import Direction, JournalEntry, JournalEntryStatus, JournalLine
from bankrec.models.reconciliation import (
    AdjustmentStatus,
    AdjustmentType,
    MatchType,
    Reconciliation,
    ReconciliationAdjustment,
    ReconciliationMatch,
    ReconciliationStatus,
)
from bankrec.models.statement import (
    BankStatement,
    BankStatementStatus,
    StatementFileFormat,
    StatementTransaction,
    StatementTransactionStatus,
)

__all__ = [
    "Account",
    "AccountType",
    "AdjustmentStatus",
    "AdjustmentType",
    "BankAccount",
    "BankStatement",
    "BankStatementStatus",
    "Direction",
    "ImportJob",
    "ImportJobStatus",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "MatchType",
    "Reconciliation",
    "ReconciliationAdjustment",
    "ReconciliationMatch",
    "ReconciliationStatus",
    "StatementFileFormat",
    "StatementTransaction",
    "StatementTransactionStatus",
]
