"""Resume version registration and parsed field ingestion."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from resume_ledger.errors import NotFoundError, ValidationError
from resume_ledger.models.parsed_resume_entity import ParsedResumeEntity
from resume_ledger.models.resume_version import ResumeVersion
from resume_ledger.models.versioned_entity import ENTITY_MODELS
from resume_ledger.parsing.types import ParsedField

logger = logging.getLogger(__name__)


def create_resume_version(
    db: Session,
    user_id: str,
    label: str,
    *,
    file_name: str | None = None,
) -> ResumeVersion:
    """Register an uploaded resume; the upload stage is complete once this row exists."""

    clean_label = label.strip()
    if not clean_label:
        raise ValidationError("Resume label must not be empty.")
    version = ResumeVersion(user_id=user_id, label=clean_label, file_name=file_name)
    db.add(version)
    db.commit()
    db.refresh(version)
    return version


def get_resume_version(db: Session, resume_version_id: int, *, user_id: str | None = None) -> ResumeVersion:
    """Return a resume version or raise `NotFoundError`; scoped to `user_id` when given."""

    version = db.scalar(select(ResumeVersion).where(ResumeVersion.id == resume_version_id))
    if version is None or (user_id is not None and version.user_id != user_id):
        raise NotFoundError(f"Resume version {resume_version_id} not found")
    return version


def list_resume_versions(db: Session, user_id: str) -> list[ResumeVersion]:
    stmt = (
        select(ResumeVersion)
        .where(ResumeVersion.user_id == user_id)
        .order_by(ResumeVersion.created_at.desc(), ResumeVersion.id.desc())
    )
    return list(db.scalars(stmt).all())


def record_parsed_entities(
    db: Session,
    resume_version_id: int,
    fields: Iterable[ParsedField],
) -> list[ParsedResumeEntity]:
    """Persist parser output for a resume version. Rows are immutable afterwards."""

    get_resume_version(db, resume_version_id)
    rows: list[ParsedResumeEntity] = []
    for parsed in fields:
        if parsed.entity_type not in ENTITY_MODELS:
            raise ValidationError(f"Unknown entity type '{parsed.entity_type}' in parser output")
        field_name = parsed.field_name.strip()
        if not field_name:
            raise ValidationError("Parsed field name must not be empty.")
        if not 0.0 <= parsed.confidence <= 1.0:
            raise ValidationError(f"Confidence for '{field_name}' must be within [0, 1]")
        rows.append(
            ParsedResumeEntity(
                resume_version_id=resume_version_id,
                entity_type=parsed.entity_type,
                profile_entity_id=parsed.profile_entity_id,
                field_name=field_name,
                raw_value=parsed.raw_value,
                confidence_score=parsed.confidence,
            )
        )
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info(
        "resumes.parsed_entities_recorded resume_version_id=%s rows=%d",
        resume_version_id,
        len(rows),
    )
    return rows


def list_parsed_entities(db: Session, resume_version_id: int) -> list[ParsedResumeEntity]:
    stmt = (
        select(ParsedResumeEntity)
        .where(ParsedResumeEntity.resume_version_id == resume_version_id)
        .order_by(ParsedResumeEntity.id.asc())
    )
    return list(db.scalars(stmt).all())


def get_parsed_entity(db: Session, parsed_entity_id: int) -> ParsedResumeEntity:
    row = db.scalar(select(ParsedResumeEntity).where(ParsedResumeEntity.id == parsed_entity_id))
    if row is None:
        raise NotFoundError(f"Parsed entity {parsed_entity_id} not found")
    return row
