"""Merge decision ledger: record reviewer resolutions and apply them to the profile."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from sqlalchemy import JSON, Float, Integer, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resume_ledger.entity_resolution.similarity import normalize_field_value
from resume_ledger.errors import NotFoundError, ValidationError
from resume_ledger.models.merge_decision import MergeDecision
from resume_ledger.models.parsed_resume_entity import ParsedResumeEntity
from resume_ledger.models.versioned_entity import ENTITY_MODELS, VersionedEntityMixin
from resume_ledger.schemas.merge_decisions import ApplyDecisionsSummary, DecisionOutcome, MergeDecisionCreate
from resume_ledger.services.confirmed_profile import get_confirmed_value, upsert_confirmed_value
from resume_ledger.services.resume_diffs import get_diff_for_field, mark_diff_resolved
from resume_ledger.services.resumes import get_parsed_entity, get_resume_version
from resume_ledger.services.versioned_entities import get_current_entity, update_entity

logger = logging.getLogger(__name__)

_OUTCOME_BY_DECISION = {"accept": "accepted", "reject": "rejected", "override": "overridden"}


def create_merge_decision(
    db: Session,
    user_id: str,
    resume_version_id: int,
    payload: MergeDecisionCreate,
) -> MergeDecision:
    """Record a decision for one diffed field.

    The ledger holds one decision per (resume version, parsed entity, field); recording
    again for an existing key returns the stored decision unchanged.
    """

    get_resume_version(db, resume_version_id, user_id=user_id)
    parsed = get_parsed_entity(db, payload.parsed_entity_id)
    if parsed.resume_version_id != resume_version_id:
        raise ValidationError(
            f"Parsed entity {parsed.id} does not belong to resume version {resume_version_id}"
        )
    if payload.decision_type == "override" and not (payload.override_value or "").strip():
        raise ValidationError("An override decision requires a non-empty override_value.")

    field_name = parsed.field_name
    if payload.field_name is not None and payload.field_name.strip() != field_name:
        raise ValidationError(
            f"Parsed entity {parsed.id} holds field '{field_name}', not '{payload.field_name.strip()}'"
        )

    existing = get_decision_for_field(db, resume_version_id, parsed.id, field_name)
    if existing is not None:
        logger.info(
            "decisions.already_recorded decision_id=%s resume_version_id=%s parsed_entity_id=%s field=%s",
            existing.id,
            resume_version_id,
            parsed.id,
            field_name,
        )
        return existing

    entity_type, entity_id = _profile_key(db, parsed, field_name)
    confirmed = get_confirmed_value(db, user_id, entity_type, entity_id, field_name)
    decision = MergeDecision(
        user_id=user_id,
        resume_version_id=resume_version_id,
        parsed_entity_id=parsed.id,
        profile_entity_id=entity_id,
        profile_entity_type=entity_type,
        field_name=field_name,
        decision_type=payload.decision_type,
        parsed_value=parsed.raw_value,
        confirmed_value=confirmed.confirmed_value if confirmed is not None else None,
        override_value=payload.override_value.strip() if payload.override_value else None,
        justification=payload.justification,
        confidence_score=(
            payload.confidence_score if payload.confidence_score is not None else parsed.confidence_score
        ),
    )
    db.add(decision)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_decision_for_field(db, resume_version_id, parsed.id, field_name)
        if existing is None:
            raise
        return existing
    db.refresh(decision)
    return decision


def get_merge_decision(db: Session, decision_id: int, *, user_id: str | None = None) -> MergeDecision:
    decision = db.scalar(select(MergeDecision).where(MergeDecision.id == decision_id))
    if decision is None or (user_id is not None and decision.user_id != user_id):
        raise NotFoundError(f"Merge decision {decision_id} not found")
    return decision


def get_decision_for_field(
    db: Session,
    resume_version_id: int,
    parsed_entity_id: int,
    field_name: str,
) -> MergeDecision | None:
    return db.scalar(
        select(MergeDecision).where(
            MergeDecision.resume_version_id == resume_version_id,
            MergeDecision.parsed_entity_id == parsed_entity_id,
            MergeDecision.field_name == field_name,
        )
    )


def list_merge_decisions(
    db: Session,
    resume_version_id: int,
    *,
    unapplied_only: bool = False,
) -> list[MergeDecision]:
    stmt = select(MergeDecision).where(MergeDecision.resume_version_id == resume_version_id)
    if unapplied_only:
        stmt = stmt.where(MergeDecision.applied_at.is_(None))
    return list(db.scalars(stmt.order_by(MergeDecision.created_at.asc(), MergeDecision.id.asc())).all())


def apply_merge_decision(db: Session, decision: MergeDecision) -> DecisionOutcome:
    """Apply one decision; an already applied decision is a no-op reported as skipped.

    accept writes the parsed value and override the override value into the confirmed
    profile; both also write the next entity version when the field is a column of the
    backing entity and its value changes. reject leaves the profile untouched. The
    matching diff is marked resolved. All writes commit together.
    """

    if decision.applied_at is not None:
        return DecisionOutcome(
            decision_id=decision.id,
            field_name=decision.field_name,
            status="skipped",
            applied_value=None,
        )

    status = _OUTCOME_BY_DECISION.get(decision.decision_type)
    if status is None:
        raise ValidationError(f"Unknown decision type '{decision.decision_type}'")

    try:
        applied_value: str | None = None
        entity_version: int | None = None
        if decision.decision_type in ("accept", "override"):
            if decision.decision_type == "override":
                applied_value = decision.override_value
                confidence, source = 1.0, "merge_review_override"
            else:
                applied_value = decision.parsed_value
                confidence, source = decision.confidence_score, "merge_review_accepted"
            if not (applied_value or "").strip():
                raise ValidationError(f"Decision {decision.id} has no value to apply")
            upsert_confirmed_value(
                db,
                user_id=decision.user_id,
                entity_type=decision.profile_entity_type or "unknown",
                entity_id=decision.profile_entity_id or str(decision.parsed_entity_id),
                field_name=decision.field_name,
                confirmed_value=applied_value,
                confidence_score=confidence,
                source=source,
                commit=False,
            )
            entity_version = _update_backing_entity(db, decision, applied_value, confidence)

        diff = get_diff_for_field(db, decision.resume_version_id, decision.parsed_entity_id, decision.field_name)
        if diff is not None:
            mark_diff_resolved(diff, decision)
        decision.applied_at = datetime.now(timezone.utc)
        decision.outcome = status
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "decisions.applied decision_id=%s field=%s outcome=%s entity_version=%s",
        decision.id,
        decision.field_name,
        status,
        entity_version,
    )
    return DecisionOutcome(
        decision_id=decision.id,
        field_name=decision.field_name,
        status=status,
        applied_value=applied_value,
        entity_version=entity_version,
    )


def apply_all_merge_decisions(
    db: Session,
    resume_version_id: int,
    *,
    user_id: str | None = None,
) -> ApplyDecisionsSummary:
    """Apply every unapplied decision of a resume version, one commit per decision.

    A failing decision is rolled back and reported; it never blocks the others and
    stays unapplied so a later call retries it.
    """

    total_started = perf_counter()
    get_resume_version(db, resume_version_id, user_id=user_id)
    decisions = list_merge_decisions(db, resume_version_id)
    summary = ApplyDecisionsSummary(resume_version_id=resume_version_id, total_decisions=len(decisions))

    pending: list[tuple[int, str]] = []
    for decision in decisions:
        if decision.applied_at is not None:
            summary.skipped += 1
        else:
            pending.append((decision.id, decision.field_name))

    for decision_id, field_name in pending:
        try:
            outcome = apply_merge_decision(db, get_merge_decision(db, decision_id))
        except Exception as exc:
            logger.warning(
                "decisions.apply_failed decision_id=%s field=%s error=%s",
                decision_id,
                field_name,
                exc,
            )
            outcome = DecisionOutcome(decision_id=decision_id, field_name=field_name, status="error", error=str(exc))
        summary.results.append(outcome)
        if outcome.status == "accepted":
            summary.applied += 1
        elif outcome.status == "rejected":
            summary.rejected += 1
        elif outcome.status == "overridden":
            summary.overridden += 1
        elif outcome.status == "skipped":
            summary.skipped += 1
        else:
            summary.errors += 1

    logger.info(
        (
            "decisions.apply_all_timing resume_version_id=%s total=%d applied=%d rejected=%d "
            "overridden=%d skipped=%d errors=%d total_ms=%.2f"
        ),
        resume_version_id,
        summary.total_decisions,
        summary.applied,
        summary.rejected,
        summary.overridden,
        summary.skipped,
        summary.errors,
        (perf_counter() - total_started) * 1000.0,
    )
    return summary


def _profile_key(db: Session, parsed: ParsedResumeEntity, field_name: str) -> tuple[str, str]:
    """Confirmed-profile key for a parsed field: the diff's profile reference when
    classification matched one, else the parser's target entity, else the parsed row."""

    diff = get_diff_for_field(db, parsed.resume_version_id, parsed.id, field_name)
    if diff is not None and diff.profile_entity_id and diff.profile_entity_type:
        return diff.profile_entity_type, diff.profile_entity_id
    return parsed.entity_type, parsed.profile_entity_id or str(parsed.id)


def _update_backing_entity(
    db: Session,
    decision: MergeDecision,
    value: str,
    confidence: float,
) -> int | None:
    model = ENTITY_MODELS.get(decision.profile_entity_type or "")
    if model is None or decision.field_name not in model.data_fields or not decision.profile_entity_id:
        return None
    try:
        current = get_current_entity(
            db,
            model.entity_type,
            decision.profile_entity_id,
            user_id=decision.user_id,
        )
    except NotFoundError:
        return None

    new_value = _coerce_for_column(model, decision.field_name, value)
    if _same_value(getattr(current, decision.field_name), new_value):
        return None
    row = update_entity(
        db,
        model.entity_type,
        decision.profile_entity_id,
        {decision.field_name: new_value},
        source="user_acceptance",
        source_confidence=confidence,
        user_id=decision.user_id,
        commit=False,
    )
    return row.version


def _coerce_for_column(model: type[VersionedEntityMixin], field_name: str, value: str) -> Any:
    column_type = model.__table__.columns[field_name].type
    text = value.strip()
    try:
        if isinstance(column_type, JSON):
            if text.startswith("["):
                decoded = json.loads(text)
                if isinstance(decoded, list):
                    return [str(item).strip() for item in decoded if str(item).strip()]
            return [part.strip() for part in text.split(",") if part.strip()]
        if isinstance(column_type, Integer):
            return int(text)
        if isinstance(column_type, Float):
            return float(text)
    except (ValueError, json.JSONDecodeError) as exc:
        raise ValidationError(f"Value {value!r} is not valid for {model.entity_type}.{field_name}") from exc
    return text


def _same_value(current: Any, new_value: Any) -> bool:
    if isinstance(current, str) and isinstance(new_value, str):
        return normalize_field_value(current) == normalize_field_value(new_value)
    return current == new_value
