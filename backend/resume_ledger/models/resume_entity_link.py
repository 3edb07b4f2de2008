"""Parsed-entity-to-canonical-node link model."""

from sqlalchemy import Boolean, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, IdMixin, TimestampMixin


class ResumeEntityLink(Base, IdMixin, TimestampMixin):
    """Links one parsed resume entity to the canonical node it refers to.

    `match_method` and `match_score` are null when the parsed entity created the node.
    """

    __tablename__ = "resume_entity_links"

    parsed_entity_id: Mapped[int] = mapped_column(
        ForeignKey("parsed_resume_entities.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    normalized_entity_id: Mapped[int] = mapped_column(
        ForeignKey("normalized_entities.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    match_method: Mapped[str | None] = mapped_column(String(16), nullable=True)
    match_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    review_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
