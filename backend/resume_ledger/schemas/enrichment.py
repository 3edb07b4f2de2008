"""Bulk enrichment schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from resume_ledger.errors import PartialBatchFailure


class EnrichmentOutcome(BaseModel):
    parsed_entity_id: int
    status: Literal["enriched", "error"]
    error: str | None = None


class BulkEnrichmentResult(BaseModel):
    """Per-item outcomes of a chunked enrichment run."""

    resume_version_id: int
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    outcomes: list[EnrichmentOutcome] = Field(default_factory=list)

    def raise_for_failures(self) -> None:
        """Raise `PartialBatchFailure` when any item failed."""

        failed = [outcome.model_dump() for outcome in self.outcomes if outcome.status == "error"]
        if failed:
            raise PartialBatchFailure(failed)
