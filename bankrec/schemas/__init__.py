from bankrec.schemas.bank_accounts import BankAccountCreate, BankAccountResponse, BankAccountUpdate
from bankrec.schemas.base import BaseResponse, ListResponse, Money
from bankrec.schemas.journal import (
    AccountCreate,
    AccountResponse,
    JournalEntryCreate,
    JournalEntryResponse,
    JournalEntryVoid,
    JournalLineCreate,
    JournalLineResponse,
)
from bankrec.schemas.reconciliation import (
    AdjustmentCreate,
    AdjustmentResponse,
    AdjustmentUpdate,
    AutoMatchRequest,
    AutoMatchResponse,
    CandidateLineResponse,
    MatchCreate,
    MatchPair,
    MatchResponse,
    ReconciliationCreate,
    ReconciliationDetailResponse,
    ReconciliationResponse,
    ReconciliationSummaryResponse,
    ReconciliationUpdate,
    UnmatchedItemsResponse,
)
from bankrec.schemas.statements import (
    BankStatementResponse,
    BankStatementUpdate,
    ImportJobResponse,
    ImportTransactionsResponse,
    StatementTransactionResponse,
)

__all__ = [
    "AccountCreate",
    "AccountResponse",
    "AdjustmentCreate",
    "AdjustmentResponse",
    "AdjustmentUpdate",
    "AutoMatchRequest",
    "AutoMatchResponse",
    "BankAccountCreate",
    "BankAccountResponse",
    "BankAccountUpdate",
    "BankStatementResponse",
    "BankStatementUpdate",
    "BaseResponse",
    "CandidateLineResponse",
    "ImportJobResponse",
    "ImportTransactionsResponse",
    "JournalEntryCreate",
    "JournalEntryResponse",
    "JournalEntryVoid",
    "JournalLineCreate",
    "JournalLineResponse",
    "ListResponse",
    "MatchCreate",
    "MatchPair",
    "MatchResponse",
    "Money",
    "ReconciliationCreate",
    "ReconciliationDetailResponse",
    "ReconciliationResponse",
    "ReconciliationSummaryResponse",
    "ReconciliationUpdate",
    "StatementTransactionResponse",
    "UnmatchedItemsResponse",
]
