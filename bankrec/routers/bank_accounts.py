"""Bank account API router."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from bankrec.deps import DbSession
from bankrec.schemas import BankAccountCreate, BankAccountResponse, BankAccountUpdate, ListResponse
from bankrec.services import bank_accounts as bank_account_service
from bankrec.services.errors import ReconciliationError
from bankrec.utils import raise_for_service_error

router = APIRouter(prefix="/bank-accounts", tags=["bank-accounts"])


@router.post("", response_model=BankAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_bank_account(payload: BankAccountCreate, db: DbSession) -> BankAccountResponse:
    try:
        bank_account = await bank_account_service.create_bank_account(db, **payload.model_dump())
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return BankAccountResponse.model_validate(bank_account)


@router.get("", response_model=ListResponse[BankAccountResponse])
async def list_bank_accounts(
    db: DbSession,
    entity_id: UUID | None = Query(None),
    include_inactive: bool = Query(False),
) -> ListResponse[BankAccountResponse]:
    bank_accounts, total = await bank_account_service.list_bank_accounts(
        db, entity_id=entity_id, include_inactive=include_inactive
    )
    return ListResponse[BankAccountResponse](
        items=[BankAccountResponse.model_validate(item) for item in bank_accounts],
        total=total,
    )


@router.get("/{bank_account_id}", response_model=BankAccountResponse)
async def get_bank_account(bank_account_id: UUID, db: DbSession) -> BankAccountResponse:
    try:
        bank_account = await bank_account_service.get_bank_account(db, bank_account_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    return BankAccountResponse.model_validate(bank_account)


@router.put("/{bank_account_id}", response_model=BankAccountResponse)
async def update_bank_account(
    bank_account_id: UUID,
    payload: BankAccountUpdate,
    db: DbSession,
) -> BankAccountResponse:
    try:
        bank_account = await bank_account_service.update_bank_account(
            db, bank_account_id, payload.model_dump(exclude_unset=True)
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return BankAccountResponse.model_validate(bank_account)


@router.post("/{bank_account_id}/recalculate-balance", response_model=BankAccountResponse)
async def recalculate_balance(bank_account_id: UUID, db: DbSession) -> BankAccountResponse:
    try:
        bank_account = await bank_account_service.recalculate_current_balance(db, bank_account_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return BankAccountResponse.model_validate(bank_account)
