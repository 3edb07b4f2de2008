"""FastAPI dependencies for the acting user and shared collaborators."""

from functools import lru_cache

from fastapi import Header

from resume_ledger.cache import TTLCache
from resume_ledger.config import get_settings
from resume_ledger.services.access import AdminChecker


def get_current_user_id(x_user_id: str = Header(..., min_length=1, alias="X-User-Id")) -> str:
    """Acting user id, asserted by the upstream authentication layer."""

    return x_user_id.strip()


@lru_cache
def get_admin_checker() -> AdminChecker:
    """Process-wide admin checker; override in tests for an isolated cache."""

    return AdminChecker(TTLCache(ttl_seconds=get_settings().admin_cache_ttl_seconds))
