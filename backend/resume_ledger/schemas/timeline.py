"""Pipeline timeline schemas."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

StageStatusLiteral = Literal["pending", "in_progress", "completed", "failed", "skipped"]
OverallStatusLiteral = Literal["pending", "in_progress", "completed", "failed"]


class JobLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    stage: str
    level: str
    message: str
    metadata_json: dict[str, object]
    created_at: datetime


class PipelineJobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    resume_version_id: int
    user_id: str
    stage: str
    status: StageStatusLiteral
    started_at: datetime | None
    completed_at: datetime | None
    error_message: str | None
    details_json: dict[str, object]


class TimelineStage(BaseModel):
    name: str
    label: str
    order: int
    status: StageStatusLiteral
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: float | None = None
    error_message: str | None = None
    attempts: int = 0
    logs: list[JobLogRead] = Field(default_factory=list)


class ResumeTimelineData(BaseModel):
    resume_version_id: int
    user_id: str
    stages: list[TimelineStage]
    overall_status: OverallStatusLiteral
    created_at: datetime
    last_updated: datetime


class StageFailureRequest(BaseModel):
    error_message: str = Field(min_length=1)


class StageCompletionRequest(BaseModel):
    details: dict[str, Any] = Field(default_factory=dict)
