"""Append-only version chains for profile entities.

Every write inserts a new row; the "current" row of a logical entity is derived as
the highest version, and the entity counts as deleted when that row is inactive.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resume_ledger.errors import ConflictError, NotFoundError, ValidationError
from resume_ledger.models.versioned_entity import ENTITY_MODELS, VersionedEntityMixin

logger = logging.getLogger(__name__)


def get_entity_model(entity_type: str) -> type[VersionedEntityMixin]:
    """Resolve an entity type name to its version table model."""

    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValidationError(
            f"Unknown entity type '{entity_type}'. Expected one of: {', '.join(sorted(ENTITY_MODELS))}"
        )
    return model


def get_latest_entities(db: Session, entity_type: str, user_id: str) -> list[VersionedEntityMixin]:
    """Return one row per logical entity: its newest version, if that version is active."""

    model = get_entity_model(entity_type)
    latest_versions = (
        select(
            model.logical_entity_id.label("logical_entity_id"),
            func.max(model.version).label("max_version"),
        )
        .where(model.user_id == user_id)
        .group_by(model.logical_entity_id)
        .subquery()
    )
    stmt = (
        select(model)
        .join(
            latest_versions,
            (model.logical_entity_id == latest_versions.c.logical_entity_id)
            & (model.version == latest_versions.c.max_version),
        )
        .where(model.user_id == user_id, model.is_active.is_(True))
        .order_by(model.logical_entity_id.asc())
    )
    return list(db.scalars(stmt).all())


def get_current_entity(
    db: Session,
    entity_type: str,
    logical_entity_id: str,
    *,
    user_id: str | None = None,
) -> VersionedEntityMixin:
    """Return the active head of a version chain or raise `NotFoundError`."""

    model = get_entity_model(entity_type)
    current = _latest_row(db, model, logical_entity_id)
    if current is None or not current.is_active or (user_id is not None and current.user_id != user_id):
        raise NotFoundError(f"No active {entity_type} with logical id '{logical_entity_id}'")
    return current


def create_entity(
    db: Session,
    entity_type: str,
    user_id: str,
    data: Mapping[str, Any],
    *,
    source: str = "manual",
    source_confidence: float | None = None,
    commit: bool = True,
) -> VersionedEntityMixin:
    """Insert version 1 of a new logical entity."""

    model = get_entity_model(entity_type)
    clean = _validate_fields(model, data)
    _check_required(model, clean)

    row = model(
        **clean,
        logical_entity_id=str(uuid.uuid4()),
        version=1,
        is_active=True,
        source=source,
        source_confidence=1.0 if source_confidence is None else source_confidence,
        user_id=user_id,
    )
    return _insert_version(db, row, commit=commit)


def update_entity(
    db: Session,
    entity_type: str,
    logical_entity_id: str,
    updates: Mapping[str, Any],
    *,
    source: str = "manual",
    source_confidence: float | None = None,
    user_id: str | None = None,
    commit: bool = True,
) -> VersionedEntityMixin:
    """Merge `updates` over the current version and insert it as the next version."""

    model = get_entity_model(entity_type)
    clean = _validate_fields(model, updates)
    if not clean:
        raise ValidationError("At least one field must be provided.")
    current = get_current_entity(db, entity_type, logical_entity_id, user_id=user_id)
    data = current.data()
    data.update(clean)
    _check_required(model, data)
    row = model(
        **data,
        logical_entity_id=logical_entity_id,
        version=current.version + 1,
        is_active=True,
        source=source,
        source_confidence=1.0 if source_confidence is None else source_confidence,
        user_id=current.user_id,
    )
    return _insert_version(db, row, commit=commit)


def delete_entity(
    db: Session,
    entity_type: str,
    logical_entity_id: str,
    *,
    source: str = "manual",
    user_id: str | None = None,
    commit: bool = True,
) -> VersionedEntityMixin:
    """Soft-delete: insert a copy of the current version marked inactive."""

    model = get_entity_model(entity_type)
    current = get_current_entity(db, entity_type, logical_entity_id, user_id=user_id)
    row = model(
        **current.data(),
        logical_entity_id=logical_entity_id,
        version=current.version + 1,
        is_active=False,
        source=source,
        source_confidence=1.0,
        user_id=current.user_id,
    )
    return _insert_version(db, row, commit=commit)


def get_entity_history(
    db: Session,
    entity_type: str,
    logical_entity_id: str,
    *,
    user_id: str | None = None,
) -> list[VersionedEntityMixin]:
    """Return every version of a logical entity, newest first."""

    model = get_entity_model(entity_type)
    stmt = select(model).where(model.logical_entity_id == logical_entity_id)
    if user_id is not None:
        stmt = stmt.where(model.user_id == user_id)
    return list(db.scalars(stmt.order_by(model.version.desc())).all())


def get_entity_version(
    db: Session,
    entity_type: str,
    logical_entity_id: str,
    version: int,
) -> VersionedEntityMixin | None:
    """Return one specific version of a logical entity."""

    model = get_entity_model(entity_type)
    return db.scalar(
        select(model).where(model.logical_entity_id == logical_entity_id, model.version == version)
    )


def _latest_row(
    db: Session,
    model: type[VersionedEntityMixin],
    logical_entity_id: str,
) -> VersionedEntityMixin | None:
    stmt = (
        select(model)
        .where(model.logical_entity_id == logical_entity_id)
        .order_by(model.version.desc())
        .limit(1)
    )
    return db.scalar(stmt)


def _insert_version(db: Session, row: VersionedEntityMixin, *, commit: bool) -> VersionedEntityMixin:
    db.add(row)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "entities.version_conflict entity_type=%s logical_entity_id=%s version=%d",
            row.entity_type,
            row.logical_entity_id,
            row.version,
        )
        raise ConflictError(
            f"Version {row.version} of {row.entity_type} '{row.logical_entity_id}' was written "
            "concurrently; re-read the latest version and retry"
        ) from exc
    if commit:
        db.commit()
        db.refresh(row)
    logger.info(
        "entities.version_written entity_type=%s logical_entity_id=%s version=%d is_active=%s source=%s",
        row.entity_type,
        row.logical_entity_id,
        row.version,
        row.is_active,
        row.source,
    )
    return row


def _validate_fields(model: type[VersionedEntityMixin], data: Mapping[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(data) - set(model.data_fields))
    if unknown:
        raise ValidationError(f"Unknown {model.entity_type} field(s): {', '.join(unknown)}")
    return dict(data)


def _check_required(model: type[VersionedEntityMixin], data: Mapping[str, Any]) -> None:
    columns = model.__table__.columns
    missing = [
        name
        for name in model.data_fields
        if not columns[name].nullable and columns[name].default is None and data.get(name) in (None, "")
    ]
    if missing:
        raise ValidationError(f"Missing required {model.entity_type} field(s): {', '.join(missing)}")
