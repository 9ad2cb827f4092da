"""Durable record of statement import attempts."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from bankrec.database import Base
from bankrec.models.base import TimestampMixin, UUIDMixin, enum_values


class ImportJobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class ImportJob(Base, UUIDMixin, TimestampMixin):
    """One import call. Survives restarts so clients can poll by id."""

    __tablename__ = "import_jobs"

    kind: Mapped[str] = mapped_column(String(50), nullable=False, default="statement_transactions")
    statement_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("bank_statements.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status: Mapped[ImportJobStatus] = mapped_column(
        SQLEnum(ImportJobStatus, name="import_job_status_enum", values_callable=enum_values),
        nullable=False,
        default=ImportJobStatus.PROCESSING,
    )
    file_format: Mapped[str | None] = mapped_column(String(10), nullable=True)
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    inserted_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
