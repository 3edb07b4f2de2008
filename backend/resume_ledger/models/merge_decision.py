"""Merge decision ledger model."""

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, IdMixin, TimestampMixin


class MergeDecision(Base, IdMixin, TimestampMixin):
    """Recorded accept/reject/override resolution for one reviewed field."""

    __tablename__ = "merge_decisions"
    __table_args__ = (
        UniqueConstraint(
            "resume_version_id",
            "parsed_entity_id",
            "field_name",
            name="uq_merge_decisions_version_parsed_field",
        ),
    )

    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    resume_version_id: Mapped[int] = mapped_column(
        ForeignKey("resume_versions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    parsed_entity_id: Mapped[int] = mapped_column(
        ForeignKey("parsed_resume_entities.id", ondelete="CASCADE"),
        nullable=False,
    )
    profile_entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    profile_entity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    field_name: Mapped[str] = mapped_column(String(128), nullable=False)
    decision_type: Mapped[str] = mapped_column(String(16), nullable=False)
    parsed_value: Mapped[str] = mapped_column(Text, nullable=False)
    confirmed_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    override_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    outcome: Mapped[str | None] = mapped_column(String(16), nullable=True)
