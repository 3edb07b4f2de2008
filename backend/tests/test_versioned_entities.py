"""Service-level tests for append-only profile entity version chains."""

from __future__ import annotations

import unittest
from unittest import mock

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resume_ledger.db.base import Base
from resume_ledger.errors import ConflictError, NotFoundError, ValidationError
from resume_ledger.models.versioned_entity import WorkExperience
from resume_ledger.services.versioned_entities import (
    create_entity,
    delete_entity,
    get_current_entity,
    get_entity_history,
    get_entity_version,
    get_latest_entities,
    update_entity,
)


class VersionedEntitiesTests(unittest.TestCase):
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

    def tearDown(self) -> None:
        self.db.close()

    def _create_job(self, user_id: str = "user-1", **overrides) -> WorkExperience:
        data = {"company": "Acme Corp", "title": "Software Engineer", "start_date": "2021-03"}
        data.update(overrides)
        return create_entity(self.db, "work_experience", user_id, data)

    def test_create_writes_version_one_with_fresh_logical_id(self) -> None:
        first = self._create_job()
        second = self._create_job(company="Globex")

        self.assertEqual(first.version, 1)
        self.assertTrue(first.is_active)
        self.assertEqual(first.source, "manual")
        self.assertEqual(first.source_confidence, 1.0)
        self.assertNotEqual(first.logical_entity_id, second.logical_entity_id)

    def test_update_appends_next_version_and_keeps_history(self) -> None:
        created = self._create_job()
        logical_id = created.logical_entity_id

        updated = update_entity(
            self.db,
            "work_experience",
            logical_id,
            {"title": "Senior Software Engineer"},
            source="user_acceptance",
            source_confidence=0.9,
        )

        self.assertEqual(updated.version, 2)
        self.assertEqual(updated.title, "Senior Software Engineer")
        self.assertEqual(updated.company, "Acme Corp")
        self.assertEqual(updated.start_date, "2021-03")
        self.assertEqual(updated.source, "user_acceptance")

        original = get_entity_version(self.db, "work_experience", logical_id, 1)
        self.assertIsNotNone(original)
        self.assertEqual(original.title, "Software Engineer")

        history = get_entity_history(self.db, "work_experience", logical_id)
        self.assertEqual([row.version for row in history], [2, 1])

        current = get_current_entity(self.db, "work_experience", logical_id)
        self.assertEqual(current.version, 2)

    def test_latest_returns_one_row_per_logical_entity(self) -> None:
        first = self._create_job()
        self._create_job(company="Globex")
        update_entity(self.db, "work_experience", first.logical_entity_id, {"title": "Staff Engineer"})
        update_entity(self.db, "work_experience", first.logical_entity_id, {"title": "Principal Engineer"})

        latest = get_latest_entities(self.db, "work_experience", "user-1")

        self.assertEqual(len(latest), 2)
        by_logical_id = {row.logical_entity_id: row for row in latest}
        self.assertEqual(by_logical_id[first.logical_entity_id].version, 3)
        self.assertEqual(by_logical_id[first.logical_entity_id].title, "Principal Engineer")

    def test_latest_is_scoped_to_user(self) -> None:
        self._create_job(user_id="user-1")
        self._create_job(user_id="user-2")

        self.assertEqual(len(get_latest_entities(self.db, "work_experience", "user-1")), 1)
        self.assertEqual(len(get_latest_entities(self.db, "work_experience", "user-3")), 0)

    def test_delete_writes_inactive_version_and_hides_entity(self) -> None:
        created = self._create_job()
        logical_id = created.logical_entity_id

        tombstone = delete_entity(self.db, "work_experience", logical_id)

        self.assertEqual(tombstone.version, 2)
        self.assertFalse(tombstone.is_active)
        self.assertEqual(tombstone.company, "Acme Corp")
        self.assertEqual(get_latest_entities(self.db, "work_experience", "user-1"), [])
        self.assertEqual(len(get_entity_history(self.db, "work_experience", logical_id)), 2)
        with self.assertRaises(NotFoundError):
            get_current_entity(self.db, "work_experience", logical_id)

    def test_update_or_delete_of_deleted_entity_is_not_found(self) -> None:
        created = self._create_job()
        delete_entity(self.db, "work_experience", created.logical_entity_id)

        with self.assertRaises(NotFoundError):
            update_entity(self.db, "work_experience", created.logical_entity_id, {"title": "Ghost"})
        with self.assertRaises(NotFoundError):
            delete_entity(self.db, "work_experience", created.logical_entity_id)

    def test_update_of_unknown_logical_id_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            update_entity(self.db, "work_experience", "missing-id", {"title": "Nobody"})

    def test_update_scoped_to_other_user_is_not_found(self) -> None:
        created = self._create_job(user_id="user-1")

        with self.assertRaises(NotFoundError):
            update_entity(
                self.db,
                "work_experience",
                created.logical_entity_id,
                {"title": "Hijacked"},
                user_id="user-2",
            )

    def test_unknown_entity_type_and_field_are_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            create_entity(self.db, "hobby", "user-1", {"name": "Chess"})
        with self.assertRaises(ValidationError):
            self._create_job(salary="lots")

        created = self._create_job()
        with self.assertRaises(ValidationError):
            update_entity(self.db, "work_experience", created.logical_entity_id, {"salary": "lots"})
        with self.assertRaises(ValidationError):
            update_entity(self.db, "work_experience", created.logical_entity_id, {})

    def test_missing_required_field_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            create_entity(self.db, "work_experience", "user-1", {"company": "Acme Corp"})

        created = self._create_job()
        with self.assertRaises(ValidationError):
            update_entity(self.db, "work_experience", created.logical_entity_id, {"title": ""})

    def test_lost_version_race_raises_conflict(self) -> None:
        created = self._create_job()
        logical_id = created.logical_entity_id
        stale_head = get_entity_version(self.db, "work_experience", logical_id, 1)
        update_entity(self.db, "work_experience", logical_id, {"title": "Winner"})

        with mock.patch(
            "resume_ledger.services.versioned_entities._latest_row",
            return_value=stale_head,
        ):
            with self.assertRaises(ConflictError):
                update_entity(self.db, "work_experience", logical_id, {"title": "Loser"})

        rows = self.db.scalars(
            select(WorkExperience).where(WorkExperience.logical_entity_id == logical_id)
        ).all()
        self.assertEqual(sorted(row.version for row in rows), [1, 2])
        self.assertEqual(get_current_entity(self.db, "work_experience", logical_id).title, "Winner")


if __name__ == "__main__":
    unittest.main()
