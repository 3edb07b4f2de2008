"""Canonical entity merge audit log model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from resume_ledger.models.base import Base, IdMixin


class NormalizedEntityMergeAudit(Base, IdMixin):
    """Immutable record of one canonical node being merged into another."""

    __tablename__ = "normalized_entity_merge_audits"

    source_entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    target_entity_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    actor_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_canonical_name: Mapped[str] = mapped_column(String(255), nullable=False)
    relinked_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    details_json: Mapped[dict[str, object]] = mapped_column(JSON, default=dict, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
