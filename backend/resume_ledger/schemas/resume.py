"""Resume version and parsed entity schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ResumeVersionCreate(BaseModel):
    """Registers an uploaded resume file."""

    label: str = Field(min_length=1)
    file_name: str | None = None


class ResumeVersionRead(BaseModel):
    """Serialized resume version."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    label: str
    file_name: str | None
    created_at: datetime
    updated_at: datetime


class ParsedFieldCreate(BaseModel):
    """One parser output row to ingest."""

    entity_type: str = Field(min_length=1)
    field_name: str = Field(min_length=1)
    raw_value: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    profile_entity_id: str | None = None


class ParsedResumeEntityRead(BaseModel):
    """Serialized parsed resume field."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    resume_version_id: int
    entity_type: str
    profile_entity_id: str | None
    field_name: str
    raw_value: str
    confidence_score: float
    created_at: datetime
