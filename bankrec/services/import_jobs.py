"""Import job bookkeeping."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bankrec.models import ImportJob, ImportJobStatus
from bankrec.services.errors import NotFoundError


def start_job(db: AsyncSession, *, statement_id: UUID | None, file_format: str | None) -> ImportJob:
    """Add a PROCESSING job to the session. The caller decides when to flush."""
    job = ImportJob(
        statement_id=statement_id,
        file_format=file_format,
        status=ImportJobStatus.PROCESSING,
    )
    db.add(job)
    return job


def finish_job(
    job: ImportJob,
    status: ImportJobStatus,
    *,
    total_rows: int | None = None,
    inserted_rows: int | None = None,
    error: str | None = None,
) -> ImportJob:
    job.status = status
    if total_rows is not None:
        job.total_rows = total_rows
    if inserted_rows is not None:
        job.inserted_rows = inserted_rows
    job.error = error
    job.finished_at = datetime.now(UTC)
    return job


async def get_import_job(db: AsyncSession, job_id: UUID) -> ImportJob:
    job = await db.get(ImportJob, job_id)
    if job is None:
        raise NotFoundError("Import job", job_id)
    return job
