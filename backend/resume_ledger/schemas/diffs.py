"""Resume diff schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

DiffTypeLiteral = Literal["identical", "equivalent", "conflicting", "new"]


class ResumeDiffRead(BaseModel):
    """Serialized resume diff."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    resume_version_id: int
    parsed_entity_id: int
    field_name: str
    profile_entity_id: str | None
    profile_entity_type: str | None
    diff_type: DiffTypeLiteral
    similarity_score: float
    confidence_score: float
    justification: str
    requires_review: bool
    metadata_json: dict[str, object]
    created_at: datetime
    updated_at: datetime


class DiffAnalysisSummary(BaseModel):
    total: int = 0
    identical: int = 0
    equivalent: int = 0
    conflicting: int = 0
    new: int = 0
    requires_review: int = 0
    degraded: int = 0


class DiffAnalysisResult(BaseModel):
    """Diffs written by one analysis run plus aggregate counts."""

    resume_version_id: int
    diffs: list[ResumeDiffRead]
    summary: DiffAnalysisSummary


class MergeReviewItem(BaseModel):
    """A diffed field presented to the reviewer."""

    diff_id: int
    parsed_entity_id: int
    profile_entity_id: str | None
    profile_entity_type: str | None
    field_name: str
    parsed_value: str
    confirmed_value: str | None
    diff_type: DiffTypeLiteral
    confidence_score: float
    similarity_score: float
    justification: str
    requires_review: bool
