"""Resume diff model."""

from sqlalchemy import JSON, Boolean, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, IdMixin, TimestampMixin


class ResumeDiff(Base, IdMixin, TimestampMixin):
    """Classification of one parsed field against the confirmed profile."""

    __tablename__ = "resume_diffs"
    __table_args__ = (
        UniqueConstraint(
            "resume_version_id",
            "parsed_entity_id",
            "field_name",
            name="uq_resume_diffs_version_parsed_field",
        ),
    )

    resume_version_id: Mapped[int] = mapped_column(
        ForeignKey("resume_versions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    parsed_entity_id: Mapped[int] = mapped_column(
        ForeignKey("parsed_resume_entities.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    field_name: Mapped[str] = mapped_column(String(128), nullable=False)
    profile_entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    profile_entity_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    diff_type: Mapped[str] = mapped_column(String(16), nullable=False)
    similarity_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    requires_review: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    metadata_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
