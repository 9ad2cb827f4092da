"""Reconciliation session API router."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from bankrec.deps import DbSession
from bankrec.logger import get_logger
from bankrec.models import ReconciliationStatus
from bankrec.schemas import (
    AdjustmentCreate,
    AdjustmentResponse,
    AdjustmentUpdate,
    AutoMatchRequest,
    AutoMatchResponse,
    CandidateLineResponse,
    ListResponse,
    MatchCreate,
    MatchPair,
    MatchResponse,
    ReconciliationCreate,
    ReconciliationDetailResponse,
    ReconciliationResponse,
    ReconciliationSummaryResponse,
    ReconciliationUpdate,
    StatementTransactionResponse,
    UnmatchedItemsResponse,
)
from bankrec.services import matching
from bankrec.services import reconciliation as reconciliation_service
from bankrec.services.errors import ReconciliationError
from bankrec.utils import raise_for_service_error

router = APIRouter(prefix="/bank-reconciliation/reconciliations", tags=["reconciliation"])

logger = get_logger(__name__)


async def _detail(db: DbSession, reconciliation_id: UUID) -> ReconciliationDetailResponse:
    reconciliation = await reconciliation_service.get_reconciliation(db, reconciliation_id, with_details=True)
    return ReconciliationDetailResponse.model_validate(reconciliation)


@router.post("", response_model=ReconciliationDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_reconciliation(payload: ReconciliationCreate, db: DbSession) -> ReconciliationDetailResponse:
    """Open a session for a statement. At most one open session per statement."""
    try:
        reconciliation = await reconciliation_service.create_reconciliation(
            db,
            bank_account_id=payload.bank_account_id,
            statement_id=payload.bank_statement_id,
            reconciliation_date=payload.reconciliation_date,
            book_balance=payload.book_balance,
            statement_balance=payload.statement_balance,
            notes=payload.notes,
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return await _detail(db, reconciliation.id)


@router.get("", response_model=ListResponse[ReconciliationResponse])
async def list_reconciliations(
    db: DbSession,
    bank_account_id: UUID | None = Query(None),
    status_filter: ReconciliationStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ListResponse[ReconciliationResponse]:
    items, total = await reconciliation_service.list_reconciliations(
        db,
        bank_account_id=bank_account_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return ListResponse[ReconciliationResponse](
        items=[ReconciliationResponse.model_validate(item) for item in items],
        total=total,
    )


@router.get("/{reconciliation_id}", response_model=ReconciliationDetailResponse)
async def get_reconciliation(reconciliation_id: UUID, db: DbSession) -> ReconciliationDetailResponse:
    try:
        return await _detail(db, reconciliation_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)


@router.put("/{reconciliation_id}", response_model=ReconciliationResponse)
async def update_reconciliation(
    reconciliation_id: UUID,
    payload: ReconciliationUpdate,
    db: DbSession,
) -> ReconciliationResponse:
    try:
        reconciliation = await reconciliation_service.update_reconciliation(
            db, reconciliation_id, payload.model_dump(exclude_unset=True)
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return ReconciliationResponse.model_validate(reconciliation)


@router.post("/{reconciliation_id}/close", response_model=ReconciliationResponse)
async def close_reconciliation(reconciliation_id: UUID, db: DbSession) -> ReconciliationResponse:
    try:
        reconciliation = await reconciliation_service.close_reconciliation(db, reconciliation_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return ReconciliationResponse.model_validate(reconciliation)


@router.post("/{reconciliation_id}/auto-match", response_model=AutoMatchResponse)
async def auto_match(
    reconciliation_id: UUID,
    db: DbSession,
    payload: AutoMatchRequest | None = None,
) -> AutoMatchResponse:
    """Run one greedy matching pass. Zero matches is a normal outcome."""
    options = payload or AutoMatchRequest()
    try:
        result = await matching.auto_match(
            db,
            reconciliation_id,
            description_match=options.description_match,
            date_tolerance_days=options.date_tolerance_days,
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()

    reconciliation = await reconciliation_service.get_reconciliation(db, reconciliation_id)
    return AutoMatchResponse(
        matches=result.matches,
        pairs=[MatchPair(transaction_id=txn_id, journal_line_id=line_id) for txn_id, line_id in result.pairs],
        reconciliation=ReconciliationResponse.model_validate(reconciliation),
    )


@router.post("/{reconciliation_id}/matches", response_model=MatchResponse, status_code=status.HTTP_201_CREATED)
async def create_match(reconciliation_id: UUID, payload: MatchCreate, db: DbSession) -> MatchResponse:
    try:
        match = await reconciliation_service.match_transaction(
            db,
            reconciliation_id,
            payload.transaction_id,
            payload.journal_line_id,
            notes=payload.notes,
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return MatchResponse.model_validate(match)


@router.delete("/{reconciliation_id}/matches/{transaction_id}", response_model=ReconciliationResponse)
async def delete_match(reconciliation_id: UUID, transaction_id: UUID, db: DbSession) -> ReconciliationResponse:
    """Unmatch a statement transaction. Unmatching an unmatched transaction is a no-op."""
    try:
        removed = await reconciliation_service.unmatch_transaction(db, reconciliation_id, transaction_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    if not removed:
        logger.info(
            "Unmatch requested for unmatched transaction",
            reconciliation_id=str(reconciliation_id),
            transaction_id=str(transaction_id),
        )
    reconciliation = await reconciliation_service.get_reconciliation(db, reconciliation_id)
    return ReconciliationResponse.model_validate(reconciliation)


@router.post(
    "/{reconciliation_id}/adjustments",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_adjustment(reconciliation_id: UUID, payload: AdjustmentCreate, db: DbSession) -> AdjustmentResponse:
    try:
        adjustment = await reconciliation_service.add_adjustment(
            db,
            reconciliation_id,
            adjustment_date=payload.adjustment_date,
            description=payload.description,
            amount=payload.amount,
            adjustment_type=payload.adjustment_type,
            status=payload.status,
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return AdjustmentResponse.model_validate(adjustment)


@router.put("/{reconciliation_id}/adjustments/{adjustment_id}", response_model=AdjustmentResponse)
async def update_adjustment(
    reconciliation_id: UUID,
    adjustment_id: UUID,
    payload: AdjustmentUpdate,
    db: DbSession,
) -> AdjustmentResponse:
    """Edit an adjustment or approve it. The session difference is recomputed."""
    try:
        adjustment = await reconciliation_service.update_adjustment(
            db, reconciliation_id, adjustment_id, payload.model_dump(exclude_unset=True)
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return AdjustmentResponse.model_validate(adjustment)


@router.delete("/{reconciliation_id}/adjustments/{adjustment_id}", response_model=ReconciliationResponse)
async def delete_adjustment(reconciliation_id: UUID, adjustment_id: UUID, db: DbSession) -> ReconciliationResponse:
    try:
        await reconciliation_service.delete_adjustment(db, reconciliation_id, adjustment_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    reconciliation = await reconciliation_service.get_reconciliation(db, reconciliation_id)
    return ReconciliationResponse.model_validate(reconciliation)


@router.get("/{reconciliation_id}/unmatched", response_model=UnmatchedItemsResponse)
async def get_unmatched(
    reconciliation_id: UUID,
    db: DbSession,
    date_tolerance_days: int | None = Query(None, ge=0),
) -> UnmatchedItemsResponse:
    try:
        transactions, candidates = await matching.get_unmatched_items(
            db, reconciliation_id, date_tolerance_days=date_tolerance_days
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    return UnmatchedItemsResponse(
        transactions=[StatementTransactionResponse.model_validate(txn) for txn in transactions],
        candidates=[CandidateLineResponse.model_validate(line) for line in candidates],
    )


@router.get("/{reconciliation_id}/summary", response_model=ReconciliationSummaryResponse)
async def get_summary(reconciliation_id: UUID, db: DbSession) -> ReconciliationSummaryResponse:
    try:
        summary = await reconciliation_service.get_summary(db, reconciliation_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    return ReconciliationSummaryResponse.model_validate(summary)
