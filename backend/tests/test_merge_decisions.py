"""Service-level tests for the merge decision ledger and its application."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resume_ledger.db.base import Base
from resume_ledger.entity_resolution.diff_classifier import DiffClassifier, DiffThresholds
from resume_ledger.entity_resolution.scoring import StringSimilarityScorer
from resume_ledger.errors import NotFoundError, PartialBatchFailure, ValidationError
from resume_ledger.parsing.types import ParsedField
from resume_ledger.schemas.merge_decisions import MergeDecisionCreate
from resume_ledger.services.confirmed_profile import get_confirmed_value, upsert_confirmed_value
from resume_ledger.services.merge_decisions import (
    apply_all_merge_decisions,
    apply_merge_decision,
    create_merge_decision,
    list_merge_decisions,
)
from resume_ledger.services.resume_diffs import analyze_resume_diffs, get_diff_for_field
from resume_ledger.services.resumes import create_resume_version, record_parsed_entities
from resume_ledger.services.versioned_entities import create_entity, get_current_entity, get_entity_history


class MergeDecisionTests(unittest.TestCase):
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
        self.user_id = "user-1"
        self.job_id = self._seed_job()
        version = create_resume_version(self.db, self.user_id, "Spring resume")
        self.version_id = version.id
        rows = record_parsed_entities(
            self.db,
            self.version_id,
            [
                ParsedField("work_experience", "title", "Staff Engineer", 0.88, self.job_id),
                ParsedField("work_experience", "company", "Acme Corp", 0.97, self.job_id),
                ParsedField("skill", "name", "Rust", 0.91),
            ],
        )
        self.title_id, self.company_id, self.skill_id = (row.id for row in rows)
        classifier = DiffClassifier(scorer=StringSimilarityScorer(), thresholds=DiffThresholds())
        analyze_resume_diffs(self.db, self.version_id, classifier=classifier)

    def tearDown(self) -> None:
        self.db.close()

    def _seed_job(self) -> str:
        job = create_entity(
            self.db,
            "work_experience",
            self.user_id,
            {"company": "Acme Corp", "title": "Senior Software Engineer"},
        )
        for field_name, value in (("company", "Acme Corp"), ("title", "Senior Software Engineer")):
            upsert_confirmed_value(
                self.db,
                user_id=self.user_id,
                entity_type="work_experience",
                entity_id=job.logical_entity_id,
                field_name=field_name,
                confirmed_value=value,
                confidence_score=1.0,
                source="manual",
            )
        return job.logical_entity_id

    def _decide(self, parsed_entity_id: int, decision_type: str, override_value: str | None = None):
        return create_merge_decision(
            self.db,
            self.user_id,
            self.version_id,
            MergeDecisionCreate(
                parsed_entity_id=parsed_entity_id,
                decision_type=decision_type,
                override_value=override_value,
            ),
        )

    def test_override_without_value_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._decide(self.title_id, "override")
        with self.assertRaises(ValidationError):
            self._decide(self.title_id, "override", "   ")

        self.assertEqual(list_merge_decisions(self.db, self.version_id), [])

    def test_decision_for_a_different_field_is_rejected(self) -> None:
        payload = MergeDecisionCreate(parsed_entity_id=self.title_id, field_name="company", decision_type="accept")

        with self.assertRaises(ValidationError):
            create_merge_decision(self.db, self.user_id, self.version_id, payload)

        self.assertEqual(list_merge_decisions(self.db, self.version_id), [])
        current = get_current_entity(self.db, "work_experience", self.job_id)
        self.assertEqual(current.company, "Acme Corp")
        self.assertEqual(current.version, 1)

    def test_matching_field_name_is_accepted(self) -> None:
        decision = create_merge_decision(
            self.db,
            self.user_id,
            self.version_id,
            MergeDecisionCreate(parsed_entity_id=self.title_id, field_name=" title ", decision_type="accept"),
        )

        self.assertEqual(decision.field_name, "title")

    def test_decision_captures_profile_key_and_values(self) -> None:
        decision = self._decide(self.title_id, "accept")

        self.assertEqual(decision.profile_entity_type, "work_experience")
        self.assertEqual(decision.profile_entity_id, self.job_id)
        self.assertEqual(decision.field_name, "title")
        self.assertEqual(decision.parsed_value, "Staff Engineer")
        self.assertEqual(decision.confirmed_value, "Senior Software Engineer")
        self.assertEqual(decision.confidence_score, 0.88)
        self.assertIsNone(decision.applied_at)

    def test_recording_same_field_twice_returns_existing_decision(self) -> None:
        first = self._decide(self.title_id, "accept")
        second = self._decide(self.title_id, "reject")

        self.assertEqual(first.id, second.id)
        self.assertEqual(second.decision_type, "accept")
        self.assertEqual(len(list_merge_decisions(self.db, self.version_id)), 1)

    def test_accept_updates_confirmed_profile_and_entity_version(self) -> None:
        decision = self._decide(self.title_id, "accept")

        outcome = apply_merge_decision(self.db, decision)

        self.assertEqual(outcome.status, "accepted")
        self.assertEqual(outcome.applied_value, "Staff Engineer")
        self.assertEqual(outcome.entity_version, 2)
        confirmed = get_confirmed_value(self.db, self.user_id, "work_experience", self.job_id, "title")
        self.assertEqual(confirmed.confirmed_value, "Staff Engineer")
        self.assertEqual(confirmed.source, "merge_review_accepted")
        self.assertEqual(confirmed.confidence_score, 0.88)

        current = get_current_entity(self.db, "work_experience", self.job_id)
        self.assertEqual(current.version, 2)
        self.assertEqual(current.title, "Staff Engineer")
        self.assertEqual(current.source, "user_acceptance")

        diff = get_diff_for_field(self.db, self.version_id, self.title_id, "title")
        self.assertFalse(diff.requires_review)
        self.assertEqual(diff.metadata_json["resolution"]["decision_id"], decision.id)
        self.assertIsNotNone(decision.applied_at)

    def test_override_writes_override_value_with_full_confidence(self) -> None:
        decision = self._decide(self.company_id, "override", "Acme Corporation")

        outcome = apply_merge_decision(self.db, decision)

        self.assertEqual(outcome.status, "overridden")
        confirmed = get_confirmed_value(self.db, self.user_id, "work_experience", self.job_id, "company")
        self.assertEqual(confirmed.confirmed_value, "Acme Corporation")
        self.assertEqual(confirmed.source, "merge_review_override")
        self.assertEqual(confirmed.confidence_score, 1.0)
        self.assertEqual(get_current_entity(self.db, "work_experience", self.job_id).company, "Acme Corporation")

    def test_reject_leaves_profile_untouched(self) -> None:
        decision = self._decide(self.title_id, "reject")

        outcome = apply_merge_decision(self.db, decision)

        self.assertEqual(outcome.status, "rejected")
        confirmed = get_confirmed_value(self.db, self.user_id, "work_experience", self.job_id, "title")
        self.assertEqual(confirmed.confirmed_value, "Senior Software Engineer")
        self.assertEqual(len(get_entity_history(self.db, "work_experience", self.job_id)), 1)
        diff = get_diff_for_field(self.db, self.version_id, self.title_id, "title")
        self.assertEqual(diff.metadata_json["resolution"]["decision_type"], "reject")

    def test_accepting_identical_value_does_not_bump_version(self) -> None:
        decision = self._decide(self.company_id, "accept")

        outcome = apply_merge_decision(self.db, decision)

        self.assertEqual(outcome.status, "accepted")
        self.assertIsNone(outcome.entity_version)
        self.assertEqual(len(get_entity_history(self.db, "work_experience", self.job_id)), 1)

    def test_new_field_is_confirmed_under_parsed_entity_key(self) -> None:
        decision = self._decide(self.skill_id, "accept")

        self.assertEqual(decision.profile_entity_type, "skill")
        self.assertEqual(decision.profile_entity_id, str(self.skill_id))
        apply_merge_decision(self.db, decision)

        confirmed = get_confirmed_value(self.db, self.user_id, "skill", str(self.skill_id), "name")
        self.assertEqual(confirmed.confirmed_value, "Rust")

    def test_applying_twice_is_skipped(self) -> None:
        decision = self._decide(self.title_id, "accept")
        apply_merge_decision(self.db, decision)

        outcome = apply_merge_decision(self.db, decision)

        self.assertEqual(outcome.status, "skipped")
        self.assertEqual(len(get_entity_history(self.db, "work_experience", self.job_id)), 2)

    def test_apply_all_is_idempotent(self) -> None:
        self._decide(self.title_id, "accept")
        self._decide(self.company_id, "reject")
        self._decide(self.skill_id, "override", "Rust (systems)")

        first = apply_all_merge_decisions(self.db, self.version_id, user_id=self.user_id)
        second = apply_all_merge_decisions(self.db, self.version_id, user_id=self.user_id)

        self.assertEqual((first.applied, first.rejected, first.overridden, first.errors), (1, 1, 1, 0))
        self.assertEqual(second.total_decisions, 3)
        self.assertEqual(second.applied + second.rejected + second.overridden, 0)
        self.assertEqual(second.skipped, 3)
        self.assertEqual(len(get_entity_history(self.db, "work_experience", self.job_id)), 2)

    def test_apply_all_isolates_failing_decision(self) -> None:
        skill = create_entity(self.db, "skill", self.user_id, {"name": "Go", "years_of_experience": 2.0})
        version = create_resume_version(self.db, self.user_id, "Autumn resume")
        years, name = record_parsed_entities(
            self.db,
            version.id,
            [
                ParsedField("skill", "years_of_experience", "3", 0.9, skill.logical_entity_id),
                ParsedField("skill", "name", "Golang", 0.9, skill.logical_entity_id),
            ],
        )
        for parsed_id, decision_type, override_value in (
            (years.id, "override", "lots"),
            (name.id, "accept", None),
        ):
            create_merge_decision(
                self.db,
                self.user_id,
                version.id,
                MergeDecisionCreate(
                    parsed_entity_id=parsed_id,
                    decision_type=decision_type,
                    override_value=override_value,
                ),
            )

        summary = apply_all_merge_decisions(self.db, version.id)

        self.assertEqual(summary.applied, 1)
        self.assertEqual(summary.errors, 1)
        self.assertEqual(summary.failures()[0].field_name, "years_of_experience")
        self.assertIsNone(
            get_confirmed_value(self.db, self.user_id, "skill", skill.logical_entity_id, "years_of_experience")
        )
        current = get_current_entity(self.db, "skill", skill.logical_entity_id)
        self.assertEqual(current.name, "Golang")
        self.assertEqual(current.years_of_experience, 2.0)
        with self.assertRaises(PartialBatchFailure):
            summary.raise_for_failures()

        retry = apply_all_merge_decisions(self.db, version.id)
        self.assertEqual(retry.skipped, 1)
        self.assertEqual(retry.errors, 1)
        self.assertEqual(len(list_merge_decisions(self.db, version.id, unapplied_only=True)), 1)

    def test_decision_must_belong_to_resume_version(self) -> None:
        other = create_resume_version(self.db, self.user_id, "Other resume")

        with self.assertRaises(ValidationError):
            create_merge_decision(
                self.db,
                self.user_id,
                other.id,
                MergeDecisionCreate(parsed_entity_id=self.title_id, decision_type="accept"),
            )
        with self.assertRaises(NotFoundError):
            create_merge_decision(
                self.db,
                "user-2",
                self.version_id,
                MergeDecisionCreate(parsed_entity_id=self.title_id, decision_type="accept"),
            )


if __name__ == "__main__":
    unittest.main()
