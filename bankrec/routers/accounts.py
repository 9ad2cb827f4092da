"""GL account API router."""

from fastapi import APIRouter, Query, status

from bankrec.deps import DbSession
from bankrec.models import AccountType
from bankrec.schemas import AccountCreate, AccountResponse, ListResponse
from bankrec.services import ledger
from bankrec.services.errors import ReconciliationError
from bankrec.utils import raise_for_service_error

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(payload: AccountCreate, db: DbSession) -> AccountResponse:
    try:
        account = await ledger.create_account(
            db,
            name=payload.name,
            type=payload.type,
            code=payload.code,
            description=payload.description,
        )
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    await db.commit()
    return AccountResponse.model_validate(account)


@router.get("", response_model=ListResponse[AccountResponse])
async def list_accounts(
    db: DbSession,
    account_type: AccountType | None = Query(None),
    include_inactive: bool = Query(False),
) -> ListResponse[AccountResponse]:
    accounts, total = await ledger.list_accounts(db, account_type=account_type, include_inactive=include_inactive)
    return ListResponse[AccountResponse](
        items=[AccountResponse.model_validate(account) for account in accounts],
        total=total,
    )
