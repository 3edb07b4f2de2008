"""Canonical cross-user entity graph node model."""

from sqlalchemy import JSON, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, IdMixin, TimestampMixin


class NormalizedEntity(Base, IdMixin, TimestampMixin):
    """Deduplicated reference node (a company, school, skill) shared by all users."""

    __tablename__ = "normalized_entities"

    entity_type: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    canonical_name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    aliases_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    embedding: Mapped[list[float] | None] = mapped_column(JSON, nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    review_status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    metadata_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
