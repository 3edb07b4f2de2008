"""Merge decision ledger schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from resume_ledger.errors import PartialBatchFailure

DecisionTypeLiteral = Literal["accept", "reject", "override"]
OutcomeLiteral = Literal["accepted", "rejected", "overridden", "error", "skipped"]


class MergeDecisionCreate(BaseModel):
    """Reviewer resolution for one diffed field."""

    parsed_entity_id: int = Field(ge=1)
    field_name: str | None = None
    decision_type: DecisionTypeLiteral
    override_value: str | None = None
    justification: str | None = None
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)


class MergeDecisionRead(BaseModel):
    """Serialized merge decision."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    resume_version_id: int
    parsed_entity_id: int
    profile_entity_id: str | None
    profile_entity_type: str | None
    field_name: str
    decision_type: DecisionTypeLiteral
    parsed_value: str
    confirmed_value: str | None
    override_value: str | None
    justification: str | None
    confidence_score: float
    applied_at: datetime | None
    outcome: str | None
    created_at: datetime
    updated_at: datetime


class DecisionOutcome(BaseModel):
    """Result of applying one decision."""

    decision_id: int
    field_name: str
    status: OutcomeLiteral
    applied_value: str | None = None
    entity_version: int | None = None
    error: str | None = None


class ApplyDecisionsSummary(BaseModel):
    """Aggregate counts for an apply-all run; partial progress is always reported."""

    resume_version_id: int
    total_decisions: int = 0
    applied: int = 0
    rejected: int = 0
    overridden: int = 0
    skipped: int = 0
    errors: int = 0
    results: list[DecisionOutcome] = Field(default_factory=list)

    def failures(self) -> list[DecisionOutcome]:
        return [result for result in self.results if result.status == "error"]

    def raise_for_failures(self) -> None:
        """Raise `PartialBatchFailure` when any decision failed."""

        failed = self.failures()
        if failed:
            raise PartialBatchFailure([result.model_dump() for result in failed])
