"""Tests for the expiring cache and the admin privilege checker."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resume_ledger.cache import TTLCache
from resume_ledger.db.base import Base
from resume_ledger.errors import PermissionDeniedError
from resume_ledger.models.user_role import UserRole
from resume_ledger.services.access import ADMIN_ROLE, AdminChecker, grant_role


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TTLCacheTests(unittest.TestCase):
    def test_entries_expire_after_ttl(self) -> None:
        clock = _FakeClock()
        cache: TTLCache[str, bool] = TTLCache(ttl_seconds=30, clock=clock)
        cache.set("user-1", True)

        clock.now += 29
        self.assertTrue(cache.get("user-1"))
        clock.now += 1
        self.assertIsNone(cache.get("user-1"))
        self.assertEqual(len(cache), 0)

    def test_per_entry_ttl_and_invalidation(self) -> None:
        clock = _FakeClock()
        cache: TTLCache[str, bool] = TTLCache(ttl_seconds=30, clock=clock)
        cache.set("short", False, ttl_seconds=1)
        cache.set("long", True)

        clock.now += 2
        self.assertIsNone(cache.get("short"))
        self.assertTrue(cache.get("long"))

        cache.invalidate("long")
        cache.invalidate("missing")
        self.assertIsNone(cache.get("long"))

        cache.set("again", True)
        cache.clear()
        self.assertEqual(len(cache), 0)

    def test_false_values_are_cached(self) -> None:
        cache: TTLCache[str, bool] = TTLCache(ttl_seconds=30, clock=_FakeClock())
        cache.set("user-1", False)

        self.assertIs(cache.get("user-1"), False)


class AdminCheckerTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        self.db: Session = self.SessionLocal()
        for table in reversed(Base.metadata.sorted_tables):
            self.db.execute(table.delete())
        self.db.commit()
        self.clock = _FakeClock()
        self.checker = AdminChecker(TTLCache(ttl_seconds=60, clock=self.clock))

    def tearDown(self) -> None:
        self.db.close()

    def test_answer_is_cached_until_expiry(self) -> None:
        self.assertFalse(self.checker.is_admin(self.db, "user-1"))

        self.db.add(UserRole(user_id="user-1", role=ADMIN_ROLE))
        self.db.commit()
        self.assertFalse(self.checker.is_admin(self.db, "user-1"))

        self.clock.now += 60
        self.assertTrue(self.checker.is_admin(self.db, "user-1"))

    def test_grant_role_invalidates_cached_answer(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            self.checker.require_admin(self.db, "user-1")

        grant_role(self.db, "user-1", ADMIN_ROLE, checker=self.checker)
        grant_role(self.db, "user-1", ADMIN_ROLE, checker=self.checker)

        self.checker.require_admin(self.db, "user-1")
        self.assertEqual(len(self.db.scalars(select(UserRole)).all()), 1)

    def test_other_roles_are_not_admin(self) -> None:
        grant_role(self.db, "user-2", "reviewer", checker=self.checker)

        self.assertFalse(self.checker.is_admin(self.db, "user-2"))


if __name__ == "__main__":
    unittest.main()
