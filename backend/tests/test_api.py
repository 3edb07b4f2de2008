"""HTTP-level tests for routing, the response envelope and error status mapping."""

from __future__ import annotations

import unittest
from collections.abc import Iterator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resume_ledger.cache import TTLCache
from resume_ledger.db.base import Base
from resume_ledger.db.dependencies import get_db
from resume_ledger.dependencies import get_admin_checker
from resume_ledger.main import app
from resume_ledger.services.access import ADMIN_ROLE, AdminChecker, grant_role


class ApiTests(unittest.TestCase):
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
        with self.SessionLocal() as db:
            for table in reversed(Base.metadata.sorted_tables):
                db.execute(table.delete())
            db.commit()
            self.checker = AdminChecker(TTLCache(ttl_seconds=60))
            grant_role(db, "curator", ADMIN_ROLE, checker=self.checker)

        def _get_db() -> Iterator[Session]:
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_admin_checker] = lambda: self.checker
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def _headers(self, user_id: str = "user-1") -> dict[str, str]:
        return {"X-User-Id": user_id}

    def test_entity_lifecycle_over_http(self) -> None:
        created = self.client.post(
            "/entities/skill",
            json={"data": {"name": "Python", "category": "Languages"}},
            headers=self._headers(),
        )
        self.assertEqual(created.status_code, 201)
        logical_id = created.json()["data"]["logical_entity_id"]

        updated = self.client.patch(
            f"/entities/skill/{logical_id}",
            json={"data": {"proficiency_level": "expert"}},
            headers=self._headers(),
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["data"]["version"], 2)
        self.assertEqual(updated.json()["data"]["data"]["category"], "Languages")

        history = self.client.get(f"/entities/skill/{logical_id}/history", headers=self._headers())
        self.assertEqual([row["version"] for row in history.json()["data"]], [2, 1])

        deleted = self.client.delete(f"/entities/skill/{logical_id}", headers=self._headers())
        self.assertEqual(deleted.json()["data"], {"id": logical_id, "deleted": True})
        self.assertEqual(self.client.get("/entities/skill", headers=self._headers()).json()["data"], [])

    def test_error_taxonomy_maps_to_status_codes(self) -> None:
        missing = self.client.patch(
            "/entities/skill/missing-id",
            json={"data": {"name": "Go"}},
            headers=self._headers(),
        )
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"], "NotFoundError")

        unknown_field = self.client.post(
            "/entities/skill",
            json={"data": {"name": "Go", "salary": 1}},
            headers=self._headers(),
        )
        self.assertEqual(unknown_field.status_code, 422)
        self.assertEqual(unknown_field.json()["error"], "ValidationError")

        forbidden = self.client.post(
            "/normalized-entities",
            json={"entity_type": "company", "canonical_name": "Acme Corp"},
            headers=self._headers(),
        )
        self.assertEqual(forbidden.status_code, 403)
        self.assertEqual(forbidden.json()["error"], "PermissionDeniedError")

    def test_missing_user_header_is_rejected(self) -> None:
        response = self.client.get("/entities/skill")

        self.assertEqual(response.status_code, 422)

    def test_admin_can_curate_canonical_nodes(self) -> None:
        created = self.client.post(
            "/normalized-entities",
            json={"entity_type": "company", "canonical_name": "Acme Corp", "aliases": ["ACME"]},
            headers=self._headers("curator"),
        )
        self.assertEqual(created.status_code, 201)
        node = created.json()["data"]
        self.assertEqual(node["review_status"], "approved")
        self.assertEqual(node["aliases_json"], ["ACME"])

        flagged = self.client.patch(
            f"/normalized-entities/{node['id']}/review-status",
            json={"status": "flagged"},
            headers=self._headers("curator"),
        )
        self.assertEqual(flagged.json()["data"]["review_status"], "flagged")

        removed = self.client.delete(f"/normalized-entities/{node['id']}", headers=self._headers("user-1"))
        self.assertEqual(removed.status_code, 403)
        self.assertEqual(self.client.get(f"/normalized-entities/{node['id']}").status_code, 200)

    def test_review_flow_over_http(self) -> None:
        version = self.client.post(
            "/resume-versions",
            json={"label": "Spring resume", "file_name": "resume.pdf"},
            headers=self._headers(),
        )
        self.assertEqual(version.status_code, 201)
        version_id = version.json()["data"]["id"]

        parsed = self.client.post(
            f"/resume-versions/{version_id}/parsed-entities",
            json=[{"entity_type": "skill", "field_name": "name", "raw_value": "Rust", "confidence": 0.9}],
            headers=self._headers(),
        )
        self.assertEqual(parsed.status_code, 201)
        parsed_id = parsed.json()["data"][0]["id"]

        empty_override = self.client.post(
            f"/resume-versions/{version_id}/merge-decisions",
            json={"parsed_entity_id": parsed_id, "decision_type": "override", "override_value": ""},
            headers=self._headers(),
        )
        self.assertEqual(empty_override.status_code, 422)

        decision = self.client.post(
            f"/resume-versions/{version_id}/merge-decisions",
            json={"parsed_entity_id": parsed_id, "decision_type": "accept"},
            headers=self._headers(),
        )
        self.assertEqual(decision.status_code, 201)
        decision_id = decision.json()["data"]["id"]

        applied = self.client.post(
            f"/resume-versions/{version_id}/merge-decisions/{decision_id}/apply",
            headers=self._headers(),
        )
        self.assertEqual(applied.json()["data"]["status"], "accepted")
        again = self.client.post(
            f"/resume-versions/{version_id}/merge-decisions/{decision_id}/apply",
            headers=self._headers(),
        )
        self.assertEqual(again.json()["data"]["status"], "skipped")

        profile = self.client.get("/confirmed-profile", headers=self._headers())
        self.assertEqual([row["confirmed_value"] for row in profile.json()["data"]], ["Rust"])

        timeline = self.client.get(f"/resume-versions/{version_id}/timeline", headers=self._headers())
        statuses = {stage["name"]: stage["status"] for stage in timeline.json()["data"]["stages"]}
        self.assertEqual(statuses["upload"], "completed")
        self.assertEqual(statuses["parse"], "completed")
        self.assertEqual(statuses["diff"], "pending")

        other_user = self.client.get(f"/resume-versions/{version_id}", headers=self._headers("user-2"))
        self.assertEqual(other_user.status_code, 404)

    def test_apply_all_after_single_recorded_decisions(self) -> None:
        version = self.client.post("/resume-versions", json={"label": "Resume"}, headers=self._headers())
        version_id = version.json()["data"]["id"]
        parsed = self.client.post(
            f"/resume-versions/{version_id}/parsed-entities",
            json=[
                {"entity_type": "skill", "field_name": "name", "raw_value": "Rust", "confidence": 0.9},
                {"entity_type": "skill", "field_name": "name", "raw_value": "Go", "confidence": 0.8},
            ],
            headers=self._headers(),
        )
        rust_id, go_id = (row["id"] for row in parsed.json()["data"])
        for parsed_id, decision_type in ((rust_id, "accept"), (go_id, "reject")):
            recorded = self.client.post(
                f"/resume-versions/{version_id}/merge-decisions",
                json={"parsed_entity_id": parsed_id, "decision_type": decision_type},
                headers=self._headers(),
            )
            self.assertEqual(recorded.status_code, 201)

        applied = self.client.post(f"/resume-versions/{version_id}/merge-decisions/apply-all", headers=self._headers())

        self.assertEqual(applied.status_code, 200)
        summary = applied.json()["data"]
        self.assertEqual(summary["applied"], 1)
        self.assertEqual(summary["rejected"], 1)
        self.assertEqual(summary["errors"], 0)
        profile = self.client.get("/confirmed-profile", headers=self._headers())
        self.assertEqual([row["confirmed_value"] for row in profile.json()["data"]], ["Rust"])
        timeline = self.client.get(f"/resume-versions/{version_id}/timeline", headers=self._headers())
        statuses = {stage["name"]: stage["status"] for stage in timeline.json()["data"]["stages"]}
        self.assertEqual(statuses["update"], "pending")

    def test_decision_for_another_field_is_rejected_over_http(self) -> None:
        version = self.client.post("/resume-versions", json={"label": "Resume"}, headers=self._headers())
        version_id = version.json()["data"]["id"]
        parsed = self.client.post(
            f"/resume-versions/{version_id}/parsed-entities",
            json=[{"entity_type": "work_experience", "field_name": "title", "raw_value": "Staff Engineer"}],
            headers=self._headers(),
        )
        parsed_id = parsed.json()["data"][0]["id"]

        response = self.client.post(
            f"/resume-versions/{version_id}/merge-decisions",
            json={"parsed_entity_id": parsed_id, "field_name": "company", "decision_type": "accept"},
            headers=self._headers(),
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"], "ValidationError")

    def test_stage_out_of_order_is_rejected(self) -> None:
        version = self.client.post("/resume-versions", json={"label": "Resume"}, headers=self._headers())
        version_id = version.json()["data"]["id"]

        response = self.client.post(f"/resume-versions/{version_id}/stages/diff/start", headers=self._headers())

        self.assertEqual(response.status_code, 422)
        self.assertIn("predecessor", response.json()["detail"])

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()
