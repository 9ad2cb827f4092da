"""Services package."""

from bankrec.services.errors import (
    AlreadyMatchedError,
    ConflictError,
    NotFoundError,
    ParseError,
    PersistenceError,
    ReconciliationError,
    SessionClosedError,
    ValidationError,
)
from bankrec.services.matching import AutoMatchResult, auto_match, score_description
from bankrec.services.reconciliation import (
    close_reconciliation,
    create_reconciliation,
    match_transaction,
    recompute_balance,
    unmatch_transaction,
)
from bankrec.services.statements import ImportResult, import_transactions, upload_statement

__all__ = [
    "AlreadyMatchedError",
    "AutoMatchResult",
    "ConflictError",
    "ImportResult",
    "NotFoundError",
    "ParseError",
    "PersistenceError",
    "ReconciliationError",
    "SessionClosedError",
    "ValidationError",
    "auto_match",
    "close_reconciliation",
    "create_reconciliation",
    "import_transactions",
    "match_transaction",
    "recompute_balance",
    "score_description",
    "unmatch_transaction",
    "upload_statement",
]
