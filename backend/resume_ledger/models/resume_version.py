"""Uploaded resume version model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, IdMixin, TimestampMixin


class ResumeVersion(Base, IdMixin, TimestampMixin):
    """One uploaded resume file; the unit the reconciliation pipeline runs over."""

    __tablename__ = "resume_versions"

    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
