"""Parsed resume field model."""

from sqlalchemy import Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, CreatedAtMixin, IdMixin


class ParsedResumeEntity(Base, IdMixin, CreatedAtMixin):
    """Raw field produced by the external resume parser. Never mutated after ingest."""

    __tablename__ = "parsed_resume_entities"

    resume_version_id: Mapped[int] = mapped_column(
        ForeignKey("resume_versions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    profile_entity_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    field_name: Mapped[str] = mapped_column(String(128), nullable=False)
    raw_value: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    @property
    def qualified_field_name(self) -> str:
        return f"{self.entity_type}.{self.field_name}"
