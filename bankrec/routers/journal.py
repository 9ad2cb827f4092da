"""Journal entry API router."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from bankrec.deps import DbSession
from bankrec.models import JournalEntryStatus
from bankrec.schemas import JournalEntryCreate, JournalEntryResponse, JournalEntryVoid, ListResponse
from bankrec.services import ledger
from bankrec.services.errors import ReconciliationError
from bankrec.utils import raise_for_service_error

router = APIRouter(prefix="/journal-entries", tags=["journal"])


@router.post("", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_journal_entry(payload: JournalEntryCreate, db: DbSession) -> JournalEntryResponse:
    """Create a draft journal entry. Post it to make its lines reconcilable."""
    try:
        entry = await ledger.create_journal_entry(
            db,
            entry_date=payload.entry_date,
            memo=payload.memo,
            reference=payload.reference,
            lines_data=[line.model_dump() for line in payload.lines],
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return JournalEntryResponse.model_validate(entry)


@router.get("", response_model=ListResponse[JournalEntryResponse])
async def list_journal_entries(
    db: DbSession,
    status_filter: JournalEntryStatus | None = Query(None, alias="status"),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> ListResponse[JournalEntryResponse]:
    entries, total = await ledger.list_journal_entries(
        db,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return ListResponse[JournalEntryResponse](
        items=[JournalEntryResponse.model_validate(entry) for entry in entries],
        total=total,
    )


@router.get("/{entry_id}", response_model=JournalEntryResponse)
async def get_journal_entry(entry_id: UUID, db: DbSession) -> JournalEntryResponse:
    try:
        entry = await ledger.get_journal_entry(db, entry_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    return JournalEntryResponse.model_validate(entry)


@router.post("/{entry_id}/post", response_model=JournalEntryResponse)
async def post_journal_entry(entry_id: UUID, db: DbSession) -> JournalEntryResponse:
    try:
        await ledger.post_journal_entry(db, entry_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    entry = await ledger.get_journal_entry(db, entry_id)
    return JournalEntryResponse.model_validate(entry)


@router.post("/{entry_id}/void", response_model=JournalEntryResponse)
async def void_journal_entry(entry_id: UUID, payload: JournalEntryVoid, db: DbSession) -> JournalEntryResponse:
    try:
        await ledger.void_journal_entry(db, entry_id, payload.reason)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    entry = await ledger.get_journal_entry(db, entry_id)
    return JournalEntryResponse.model_validate(entry)
