"""Versioned profile entity schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from resume_ledger.models.versioned_entity import VersionedEntityMixin


class EntityVersionRead(BaseModel):
    """Serialized version row with its entity-specific fields under `data`."""

    id: int
    entity_type: str
    logical_entity_id: str
    version: int
    is_active: bool
    source: str
    source_confidence: float | None
    user_id: str
    data: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: VersionedEntityMixin) -> "EntityVersionRead":
        return cls(
            id=row.id,
            entity_type=row.entity_type,
            logical_entity_id=row.logical_entity_id,
            version=row.version,
            is_active=row.is_active,
            source=row.source,
            source_confidence=row.source_confidence,
            user_id=row.user_id,
            data=row.data(),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class EntityCreateRequest(BaseModel):
    """Payload for the first version of a logical entity."""

    data: dict[str, Any]
    source: str = Field(default="manual", min_length=1)
    source_confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class EntityUpdateRequest(BaseModel):
    """Partial field update written as the next version."""

    data: dict[str, Any]
    source: str = Field(default="manual", min_length=1)
    source_confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_non_empty_update(self) -> "EntityUpdateRequest":
        if not self.data:
            raise ValueError("At least one field must be provided.")
        return self
