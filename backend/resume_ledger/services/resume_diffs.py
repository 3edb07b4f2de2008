"""Diff analysis of parsed resume fields against the confirmed profile."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from time import perf_counter

from sqlalchemy import select
from sqlalchemy.orm import Session

from resume_ledger.config import get_settings
from resume_ledger.entity_resolution.diff_classifier import DiffClassification, DiffClassifier
from resume_ledger.entity_resolution.similarity import string_similarity
from resume_ledger.models.merge_decision import MergeDecision
from resume_ledger.models.parsed_resume_entity import ParsedResumeEntity
from resume_ledger.models.resume_diff import ResumeDiff
from resume_ledger.models.user_confirmed_profile import UserConfirmedProfile
from resume_ledger.schemas.diffs import (
    DiffAnalysisResult,
    DiffAnalysisSummary,
    MergeReviewItem,
    ResumeDiffRead,
)
from resume_ledger.services.confirmed_profile import get_confirmed_value, list_confirmed_profile
from resume_ledger.services.resumes import get_resume_version, list_parsed_entities

logger = logging.getLogger(__name__)

_ConfirmedKey = tuple[str, str, str]


def classify_diff(
    parsed_entity: ParsedResumeEntity,
    confirmed: UserConfirmedProfile | None,
    *,
    classifier: DiffClassifier | None = None,
) -> DiffClassification:
    """Classify one parsed field against its confirmed value (or the lack of one)."""

    active = classifier or DiffClassifier()
    if confirmed is None:
        return active.classify(
            parsed_entity.raw_value,
            None,
            confidence_score=parsed_entity.confidence_score,
        )
    return active.classify(
        parsed_entity.raw_value,
        confirmed.confirmed_value,
        confidence_score=parsed_entity.confidence_score,
        profile_entity_id=confirmed.entity_id,
        profile_entity_type=confirmed.entity_type,
    )


def analyze_resume_diffs(
    db: Session,
    resume_version_id: int,
    *,
    user_id: str | None = None,
    classifier: DiffClassifier | None = None,
) -> DiffAnalysisResult:
    """Classify every parsed field of a resume version and upsert its diff row.

    Diffs already resolved by an applied merge decision are left untouched.
    """

    total_started = perf_counter()
    version = get_resume_version(db, resume_version_id, user_id=user_id)
    active_classifier = classifier or DiffClassifier()
    parsed_rows = list_parsed_entities(db, resume_version_id)
    confirmed_by_key, confirmed_by_field = _index_confirmed(list_confirmed_profile(db, version.user_id))
    existing_by_key = {
        (diff.parsed_entity_id, diff.field_name): diff
        for diff in db.scalars(select(ResumeDiff).where(ResumeDiff.resume_version_id == resume_version_id))
    }
    link_floor = get_settings().link_floor_threshold

    diffs: list[ResumeDiff] = []
    summary = DiffAnalysisSummary()
    for parsed in parsed_rows:
        existing = existing_by_key.get((parsed.id, parsed.field_name))
        if existing is not None and existing.metadata_json.get("resolution"):
            diffs.append(existing)
            _count(summary, existing.diff_type, existing.requires_review, degraded=False)
            continue

        confirmed, matched_by = _match_confirmed(parsed, confirmed_by_key, confirmed_by_field, link_floor)
        classification = classify_diff(parsed, confirmed, classifier=active_classifier)
        metadata = {
            "rule": classification.rule,
            "scorer": classification.scorer,
            "degraded": classification.degraded,
            "matched_by": matched_by,
        }
        if existing is None:
            existing = ResumeDiff(
                resume_version_id=resume_version_id,
                parsed_entity_id=parsed.id,
                field_name=parsed.field_name,
            )
            db.add(existing)
        existing.profile_entity_id = classification.profile_entity_id
        existing.profile_entity_type = classification.profile_entity_type
        existing.diff_type = classification.diff_type
        existing.similarity_score = classification.similarity_score
        existing.confidence_score = classification.confidence_score
        existing.justification = classification.justification
        existing.requires_review = classification.requires_review
        existing.metadata_json = metadata
        diffs.append(existing)
        _count(summary, classification.diff_type, classification.requires_review, degraded=classification.degraded)

    db.commit()
    for diff in diffs:
        db.refresh(diff)
    logger.info(
        (
            "diffs.analysis_timing resume_version_id=%s total=%d identical=%d equivalent=%d "
            "conflicting=%d new=%d requires_review=%d degraded=%d total_ms=%.2f"
        ),
        resume_version_id,
        summary.total,
        summary.identical,
        summary.equivalent,
        summary.conflicting,
        summary.new,
        summary.requires_review,
        summary.degraded,
        (perf_counter() - total_started) * 1000.0,
    )
    return DiffAnalysisResult(
        resume_version_id=resume_version_id,
        diffs=[ResumeDiffRead.model_validate(diff) for diff in diffs],
        summary=summary,
    )


def list_resume_diffs(
    db: Session,
    resume_version_id: int,
    *,
    requires_review: bool | None = None,
) -> list[ResumeDiff]:
    stmt = select(ResumeDiff).where(ResumeDiff.resume_version_id == resume_version_id)
    if requires_review is not None:
        stmt = stmt.where(ResumeDiff.requires_review.is_(requires_review))
    return list(db.scalars(stmt.order_by(ResumeDiff.id.asc())).all())


def get_diff_for_field(
    db: Session,
    resume_version_id: int,
    parsed_entity_id: int,
    field_name: str,
) -> ResumeDiff | None:
    return db.scalar(
        select(ResumeDiff).where(
            ResumeDiff.resume_version_id == resume_version_id,
            ResumeDiff.parsed_entity_id == parsed_entity_id,
            ResumeDiff.field_name == field_name,
        )
    )


def list_merge_review_items(db: Session, resume_version_id: int) -> list[MergeReviewItem]:
    """Diffs joined with the parsed value and the current confirmed value."""

    version = get_resume_version(db, resume_version_id)
    rows = db.execute(
        select(ResumeDiff, ParsedResumeEntity)
        .join(ParsedResumeEntity, ParsedResumeEntity.id == ResumeDiff.parsed_entity_id)
        .where(ResumeDiff.resume_version_id == resume_version_id)
        .order_by(ResumeDiff.id.asc())
    ).all()

    items: list[MergeReviewItem] = []
    for diff, parsed in rows:
        confirmed_value = None
        if diff.profile_entity_id is not None and diff.profile_entity_type is not None:
            confirmed = get_confirmed_value(
                db,
                version.user_id,
                diff.profile_entity_type,
                diff.profile_entity_id,
                diff.field_name,
            )
            confirmed_value = confirmed.confirmed_value if confirmed is not None else None
        items.append(
            MergeReviewItem(
                diff_id=diff.id,
                parsed_entity_id=parsed.id,
                profile_entity_id=diff.profile_entity_id,
                profile_entity_type=diff.profile_entity_type,
                field_name=diff.field_name,
                parsed_value=parsed.raw_value,
                confirmed_value=confirmed_value,
                diff_type=diff.diff_type,
                confidence_score=diff.confidence_score,
                similarity_score=diff.similarity_score,
                justification=diff.justification,
                requires_review=diff.requires_review,
            )
        )
    return items


def mark_diff_resolved(diff: ResumeDiff, decision: MergeDecision) -> None:
    """Record on the diff which decision resolved it; the caller commits."""

    metadata = dict(diff.metadata_json or {})
    metadata["resolution"] = {
        "decision_id": decision.id,
        "decision_type": decision.decision_type,
        "resolved_by": decision.user_id,
        "resolved_at": datetime.now(timezone.utc).isoformat(),
    }
    diff.metadata_json = metadata
    diff.requires_review = False


def _index_confirmed(
    rows: list[UserConfirmedProfile],
) -> tuple[dict[_ConfirmedKey, UserConfirmedProfile], dict[tuple[str, str], list[UserConfirmedProfile]]]:
    by_key: dict[_ConfirmedKey, UserConfirmedProfile] = {}
    by_field: dict[tuple[str, str], list[UserConfirmedProfile]] = defaultdict(list)
    for row in rows:
        by_key[(row.entity_type, row.entity_id, row.field_name)] = row
        by_field[(row.entity_type, row.field_name)].append(row)
    return by_key, by_field


def _match_confirmed(
    parsed: ParsedResumeEntity,
    by_key: dict[_ConfirmedKey, UserConfirmedProfile],
    by_field: dict[tuple[str, str], list[UserConfirmedProfile]],
    link_floor: float,
) -> tuple[UserConfirmedProfile | None, str]:
    if parsed.profile_entity_id:
        row = by_key.get((parsed.entity_type, parsed.profile_entity_id, parsed.field_name))
        return row, "profile_entity_id"

    best: UserConfirmedProfile | None = None
    best_score = 0.0
    candidates = sorted(by_field.get((parsed.entity_type, parsed.field_name), []), key=lambda row: row.entity_id)
    for candidate in candidates:
        score = string_similarity(parsed.raw_value, candidate.confirmed_value)
        if score >= link_floor and score > best_score:
            best, best_score = candidate, score
    return best, ("field_similarity" if best is not None else "none")


def _count(summary: DiffAnalysisSummary, diff_type: str, requires_review: bool, *, degraded: bool) -> None:
    summary.total += 1
    setattr(summary, diff_type, getattr(summary, diff_type) + 1)
    if requires_review:
        summary.requires_review += 1
    if degraded:
        summary.degraded += 1
