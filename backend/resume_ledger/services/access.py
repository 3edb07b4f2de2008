"""Privilege checks for the shared canonical entity graph."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from resume_ledger.cache import TTLCache
from resume_ledger.config import get_settings
from resume_ledger.errors import PermissionDeniedError
from resume_ledger.models.user_role import UserRole

ADMIN_ROLE = "admin"


class AdminChecker:
    """Answers "is this user an admin?" from `user_roles`, memoized in a TTL cache."""

    def __init__(self, cache: TTLCache[str, bool] | None = None) -> None:
        self.cache = cache if cache is not None else TTLCache(ttl_seconds=get_settings().admin_cache_ttl_seconds)

    def is_admin(self, db: Session, user_id: str) -> bool:
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached
        role = db.scalar(select(UserRole).where(UserRole.user_id == user_id, UserRole.role == ADMIN_ROLE))
        is_admin = role is not None
        self.cache.set(user_id, is_admin)
        return is_admin

    def require_admin(self, db: Session, user_id: str) -> None:
        if not self.is_admin(db, user_id):
            raise PermissionDeniedError(f"User '{user_id}' lacks the admin role required for this action")

    def invalidate(self, user_id: str) -> None:
        self.cache.invalidate(user_id)


def grant_role(db: Session, user_id: str, role: str, *, checker: AdminChecker | None = None) -> UserRole:
    """Grant a role (idempotent) and drop any cached answer for the user."""

    existing = db.scalar(select(UserRole).where(UserRole.user_id == user_id, UserRole.role == role))
    if existing is None:
        existing = UserRole(user_id=user_id, role=role)
        db.add(existing)
        db.commit()
        db.refresh(existing)
    if checker is not None:
        checker.invalidate(user_id)
    return existing
