"""Pipeline stage job and job log models."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, CreatedAtMixin, IdMixin, TimestampMixin


class PipelineJob(Base, IdMixin, TimestampMixin):
    """One attempt at running a pipeline stage for a resume version."""

    __tablename__ = "pipeline_jobs"

    resume_version_id: Mapped[int] = mapped_column(
        ForeignKey("resume_versions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    stage: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    details_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)


class JobLog(Base, IdMixin, CreatedAtMixin):
    """Log line emitted while a stage job ran."""

    __tablename__ = "job_logs"

    job_id: Mapped[int] = mapped_column(
        ForeignKey("pipeline_jobs.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    stage: Mapped[str] = mapped_column(String(32), nullable=False)
    level: Mapped[str] = mapped_column(String(8), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
