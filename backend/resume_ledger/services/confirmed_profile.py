"""User confirmed profile values."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from resume_ledger.models.user_confirmed_profile import UserConfirmedProfile


def list_confirmed_profile(
    db: Session,
    user_id: str,
    *,
    entity_type: str | None = None,
) -> list[UserConfirmedProfile]:
    """List a user's confirmed values, optionally for one entity type."""

    stmt = select(UserConfirmedProfile).where(UserConfirmedProfile.user_id == user_id)
    if entity_type is not None:
        stmt = stmt.where(UserConfirmedProfile.entity_type == entity_type)
    stmt = stmt.order_by(
        UserConfirmedProfile.entity_type.asc(),
        UserConfirmedProfile.entity_id.asc(),
        UserConfirmedProfile.field_name.asc(),
    )
    return list(db.scalars(stmt).all())


def get_confirmed_value(
    db: Session,
    user_id: str,
    entity_type: str,
    entity_id: str,
    field_name: str,
) -> UserConfirmedProfile | None:
    """Return the confirmed row for one exact key."""

    return db.scalar(
        select(UserConfirmedProfile).where(
            UserConfirmedProfile.user_id == user_id,
            UserConfirmedProfile.entity_type == entity_type,
            UserConfirmedProfile.entity_id == entity_id,
            UserConfirmedProfile.field_name == field_name,
        )
    )


def upsert_confirmed_value(
    db: Session,
    *,
    user_id: str,
    entity_type: str,
    entity_id: str,
    field_name: str,
    confirmed_value: str,
    confidence_score: float,
    source: str,
    commit: bool = True,
) -> UserConfirmedProfile:
    """Insert or replace the confirmed value for a key; at most one row per key."""

    now = datetime.now(timezone.utc)
    row = get_confirmed_value(db, user_id, entity_type, entity_id, field_name)
    if row is None:
        row = UserConfirmedProfile(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            field_name=field_name,
            confirmed_value=confirmed_value,
            confidence_score=confidence_score,
            source=source,
            last_confirmed_at=now,
        )
        db.add(row)
    else:
        row.confirmed_value = confirmed_value
        row.confidence_score = confidence_score
        row.source = source
        row.last_confirmed_at = now
    db.flush()
    if commit:
        db.commit()
        db.refresh(row)
    return row
