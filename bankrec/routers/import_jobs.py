"""Import job status API router."""

from uuid import UUID

from fastapi import APIRouter

from bankrec.deps import DbSession
from bankrec.schemas import ImportJobResponse
from bankrec.services.errors import ReconciliationError
from bankrec.services.import_jobs import get_import_job
from bankrec.utils import raise_for_service_error

router = APIRouter(prefix="/import-jobs", tags=["import-jobs"])


@router.get("/{job_id}", response_model=ImportJobResponse)
async def get_job(job_id: UUID, db: DbSession) -> ImportJobResponse:
    try:
        job = await get_import_job(db, job_id)
    except ReconciliationError as exc:
        raise_for_service_error(exc)
    return ImportJobResponse.model_validate(job)
