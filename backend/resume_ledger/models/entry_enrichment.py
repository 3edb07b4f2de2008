"""Per-parsed-entity enrichment result model."""

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, IdMixin, TimestampMixin


class EntryEnrichment(Base, IdMixin, TimestampMixin):
    """Latest enrichment outcome for one parsed resume entity."""

    __tablename__ = "entry_enrichments"

    parsed_entity_id: Mapped[int] = mapped_column(
        ForeignKey("parsed_resume_entities.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    enrichment_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
