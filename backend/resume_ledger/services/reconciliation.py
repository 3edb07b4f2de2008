"""Stage runners that sequence reconciliation work under timeline tracking.

upload -> parse -> diff -> normalize -> enrich -> review -> update
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from resume_ledger.entity_resolution.diff_classifier import DiffClassifier
from resume_ledger.entity_resolution.linking import LinkThresholds
from resume_ledger.models.merge_decision import MergeDecision
from resume_ledger.models.parsed_resume_entity import ParsedResumeEntity
from resume_ledger.models.resume_version import ResumeVersion
from resume_ledger.parsing.parser_interface import ResumeParserInterface
from resume_ledger.parsing.types import ParsedField
from resume_ledger.schemas.diffs import DiffAnalysisResult
from resume_ledger.schemas.enrichment import BulkEnrichmentResult
from resume_ledger.schemas.merge_decisions import ApplyDecisionsSummary, MergeDecisionCreate
from resume_ledger.schemas.normalization import NormalizationResult
from resume_ledger.services.embeddings import EmbeddingClient
from resume_ledger.services.enrichment import EnrichmentClient, enrich_parsed_entities
from resume_ledger.services.merge_decisions import apply_all_merge_decisions, create_merge_decision
from resume_ledger.services.normalization import normalize_resume_version
from resume_ledger.services.resume_diffs import analyze_resume_diffs
from resume_ledger.services.resumes import create_resume_version, get_resume_version, record_parsed_entities
from resume_ledger.services.timeline import SATISFIED_STATUSES, log_stage, record_completed_stage, run_stage, stage_status

logger = logging.getLogger(__name__)


def register_resume_upload(
    db: Session,
    user_id: str,
    label: str,
    *,
    file_name: str | None = None,
) -> ResumeVersion:
    """Create the resume version; the upload stage completes with it."""

    version = create_resume_version(db, user_id, label, file_name=file_name)
    record_completed_stage(db, version.id, "upload", details={"file_name": file_name})
    return version


def run_parse_stage(
    db: Session,
    resume_version_id: int,
    parser: ResumeParserInterface,
    *,
    user_id: str | None = None,
) -> list[ParsedResumeEntity]:
    version = get_resume_version(db, resume_version_id, user_id=user_id)
    return run_stage(
        db,
        resume_version_id,
        "parse",
        lambda job: record_parsed_entities(db, resume_version_id, parser.parse(version)),
        user_id=user_id,
        details=lambda rows: {"parsed_entities": len(rows)},
    )


def ingest_parsed_fields(
    db: Session,
    resume_version_id: int,
    fields: Iterable[ParsedField],
    *,
    user_id: str | None = None,
) -> list[ParsedResumeEntity]:
    """Parse stage for output an external parser already produced."""

    materialized = list(fields)
    return run_stage(
        db,
        resume_version_id,
        "parse",
        lambda job: record_parsed_entities(db, resume_version_id, materialized),
        user_id=user_id,
        details=lambda rows: {"parsed_entities": len(rows)},
    )


def run_diff_stage(
    db: Session,
    resume_version_id: int,
    *,
    user_id: str | None = None,
    classifier: DiffClassifier | None = None,
) -> DiffAnalysisResult:
    return run_stage(
        db,
        resume_version_id,
        "diff",
        lambda job: analyze_resume_diffs(db, resume_version_id, user_id=user_id, classifier=classifier),
        user_id=user_id,
        details=lambda result: result.summary.model_dump(),
    )


def run_normalize_stage(
    db: Session,
    resume_version_id: int,
    *,
    user_id: str | None = None,
    entity_type: str | None = None,
    embedding_client: EmbeddingClient | None = None,
    thresholds: LinkThresholds | None = None,
) -> NormalizationResult:
    def _normalize(job) -> NormalizationResult:
        result = normalize_resume_version(
            db,
            resume_version_id,
            entity_type=entity_type,
            embedding_client=embedding_client,
            thresholds=thresholds,
        )
        result.job_id = job.id
        return result

    return run_stage(
        db,
        resume_version_id,
        "normalize",
        _normalize,
        user_id=user_id,
        details=lambda result: result.summary.model_dump(),
    )


def run_enrich_stage(
    db: Session,
    resume_version_id: int,
    *,
    user_id: str | None = None,
    client: EnrichmentClient | None = None,
    force_refresh: bool = False,
) -> BulkEnrichmentResult:
    """Enrichment completes even when some entries failed; each failure is logged on the job."""

    def _enrich(job) -> BulkEnrichmentResult:
        result = enrich_parsed_entities(db, resume_version_id, client=client, force_refresh=force_refresh)
        for outcome in result.outcomes:
            if outcome.status == "error":
                log_stage(
                    db,
                    job,
                    f"Enrichment failed for parsed entity {outcome.parsed_entity_id}",
                    level="warning",
                    metadata={"error": outcome.error},
                )
        return result

    return run_stage(
        db,
        resume_version_id,
        "enrich",
        _enrich,
        user_id=user_id,
        details=lambda result: {
            "total": result.total,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "batches": result.batches,
        },
    )


def run_review_stage(
    db: Session,
    resume_version_id: int,
    user_id: str,
    decisions: Iterable[MergeDecisionCreate],
) -> list[MergeDecision]:
    """Record a reviewer's decisions as one review pass."""

    payloads = list(decisions)
    return run_stage(
        db,
        resume_version_id,
        "review",
        lambda job: [create_merge_decision(db, user_id, resume_version_id, payload) for payload in payloads],
        user_id=user_id,
        details=lambda rows: {"decisions": len(rows)},
    )


def run_update_stage(
    db: Session,
    resume_version_id: int,
    *,
    user_id: str | None = None,
) -> ApplyDecisionsSummary:
    def _apply(job) -> ApplyDecisionsSummary:
        result = apply_all_merge_decisions(db, resume_version_id, user_id=user_id)
        for failure in result.failures():
            log_stage(
                db,
                job,
                f"Decision {failure.decision_id} ({failure.field_name}) failed",
                level="warning",
                metadata={"error": failure.error},
            )
        return result

    summary = run_stage(
        db,
        resume_version_id,
        "update",
        _apply,
        user_id=user_id,
        details=lambda result: result.model_dump(exclude={"results"}),
    )
    if summary.errors:
        logger.warning(
            "reconciliation.update_partial resume_version_id=%s errors=%d",
            resume_version_id,
            summary.errors,
        )
    return summary


def apply_all_decisions(
    db: Session,
    resume_version_id: int,
    *,
    user_id: str | None = None,
) -> ApplyDecisionsSummary:
    """Apply every unapplied decision of a resume version.

    Runs as the tracked update stage once the review stage is completed or skipped.
    Decisions recorded one by one outside a review pass are applied without touching
    the timeline.
    """

    if stage_status(db, resume_version_id, "review") in SATISFIED_STATUSES:
        return run_update_stage(db, resume_version_id, user_id=user_id)
    summary = apply_all_merge_decisions(db, resume_version_id, user_id=user_id)
    logger.info(
        "reconciliation.apply_untracked resume_version_id=%s applied=%d skipped=%d errors=%d",
        resume_version_id,
        summary.applied,
        summary.skipped,
        summary.errors,
    )
    return summary
