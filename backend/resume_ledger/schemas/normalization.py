"""Canonical entity graph schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ReviewStatusLiteral = Literal["approved", "pending", "flagged"]
MatchMethodLiteral = Literal["embedding", "fuzzy", "llm", "manual"]


class NormalizedEntityRead(BaseModel):
    """Serialized canonical node."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    canonical_name: str
    aliases_json: list[str]
    confidence_score: float
    review_status: ReviewStatusLiteral
    metadata_json: dict[str, object]
    created_at: datetime
    updated_at: datetime


class SimilarEntityRead(BaseModel):
    """Canonical node with its similarity to the queried node or name."""

    id: int
    entity_type: str
    canonical_name: str
    aliases: list[str]
    confidence_score: float
    similarity_score: float
    match_method: MatchMethodLiteral


class ResumeEntityLinkRead(BaseModel):
    """Serialized parsed-entity link."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    parsed_entity_id: int
    normalized_entity_id: int
    match_method: MatchMethodLiteral | None
    match_score: float | None
    confidence_score: float
    review_required: bool
    created_at: datetime
    updated_at: datetime


class NormalizationSummary(BaseModel):
    total: int = 0
    matched: int = 0
    created: int = 0
    needs_review: int = 0


class NormalizationResult(BaseModel):
    """Links produced by normalizing one resume version."""

    resume_version_id: int
    job_id: int | None = None
    summary: NormalizationSummary
    links: list[ResumeEntityLinkRead]


class EntityMergeRequest(BaseModel):
    source_entity_id: int = Field(ge=1)
    target_entity_id: int = Field(ge=1)


class EntityMergeResult(BaseModel):
    target: NormalizedEntityRead
    source_entity_id: int
    relinked_count: int
    audit_id: int


class ReviewStatusUpdateRequest(BaseModel):
    status: ReviewStatusLiteral


class UnresolvedEntityRead(BaseModel):
    """Canonical node awaiting curation, with usage statistics."""

    id: int
    entity_type: str
    canonical_name: str
    aliases: list[str]
    confidence_score: float
    review_status: ReviewStatusLiteral
    reference_count: int
    referencing_users: list[str]
    avg_match_score: float | None


class NormalizedEntityCreate(BaseModel):
    entity_type: str = Field(min_length=1)
    canonical_name: str = Field(min_length=1)
    aliases: list[str] = Field(default_factory=list)
    metadata: dict[str, object] = Field(default_factory=dict)


class ManualLinkRequest(BaseModel):
    parsed_entity_id: int = Field(ge=1)
    confidence_score: float = Field(default=1.0, ge=0.0, le=1.0)
