"""Service-level tests for chunked enrichment of parsed entries."""

from __future__ import annotations

import threading
import unittest
from typing import Any
from unittest import mock

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from resume_ledger.db.base import Base
from resume_ledger.errors import PartialBatchFailure
from resume_ledger.parsing.types import ParsedField
from resume_ledger.services.enrichment import EnrichmentError, enrich_parsed_entities, get_entry_enrichment
from resume_ledger.services.resumes import create_resume_version, record_parsed_entities


class _RecordingEnrichmentClient:
    def __init__(self, failing_values: set[str] | None = None) -> None:
        self.failing_values = failing_values or set()
        self.requests: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def enrich_entry(self, entry: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            self.requests.append(entry)
        if entry["value"] in self.failing_values:
            raise EnrichmentError(f"provider rejected {entry['value']}")
        return {
            "summary": f"Experience with {entry['value']}",
            "skills": [entry["value"]],
            "insights": [],
            "confidence": 0.8,
        }


class _MalformedEnrichmentClient:
    def enrich_entry(self, entry: dict[str, Any]) -> dict[str, Any]:
        return {"skills": "not-a-list", "confidence": 3}


class EnrichmentTests(unittest.TestCase):
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
        version = create_resume_version(self.db, "user-1", "Resume")
        self.version_id = version.id
        skills = ["Python", "SQL", "Docker", "Kubernetes", "Terraform", "Go", "Rust"]
        self.rows = record_parsed_entities(
            self.db,
            self.version_id,
            [ParsedField("skill", "name", name, 0.9) for name in skills],
        )
        self.sleeps: list[float] = []

    def tearDown(self) -> None:
        self.db.close()

    def test_entries_are_enriched_in_delayed_chunks(self) -> None:
        client = _RecordingEnrichmentClient()

        result = enrich_parsed_entities(
            self.db,
            self.version_id,
            client=client,
            batch_size=3,
            batch_delay_seconds=0.5,
            sleep=self.sleeps.append,
        )

        self.assertEqual(result.total, 7)
        self.assertEqual(result.succeeded, 7)
        self.assertEqual(result.batches, 3)
        self.assertEqual(self.sleeps, [0.5, 0.5])
        self.assertEqual(len(client.requests), 7)
        stored = get_entry_enrichment(self.db, self.rows[0].id)
        self.assertEqual(stored.status, "enriched")
        self.assertEqual(stored.enrichment_json["skills"], ["Python"])

    def test_one_failure_does_not_cancel_the_rest(self) -> None:
        client = _RecordingEnrichmentClient(failing_values={"Docker"})

        result = enrich_parsed_entities(
            self.db,
            self.version_id,
            client=client,
            batch_size=3,
            batch_delay_seconds=0,
            sleep=self.sleeps.append,
        )

        self.assertEqual(result.succeeded, 6)
        self.assertEqual(result.failed, 1)
        self.assertEqual(self.sleeps, [])
        failed = [outcome for outcome in result.outcomes if outcome.status == "error"]
        self.assertEqual(failed[0].parsed_entity_id, self.rows[2].id)
        self.assertIn("Docker", failed[0].error)
        self.assertEqual(get_entry_enrichment(self.db, self.rows[2].id).status, "error")
        with self.assertRaises(PartialBatchFailure):
            result.raise_for_failures()

    def test_enriched_entries_are_skipped_unless_refreshed(self) -> None:
        failing = _RecordingEnrichmentClient(failing_values={"Docker"})
        enrich_parsed_entities(self.db, self.version_id, client=failing, batch_delay_seconds=0, sleep=self.sleeps.append)

        retry_client = _RecordingEnrichmentClient()
        retry = enrich_parsed_entities(
            self.db,
            self.version_id,
            client=retry_client,
            batch_delay_seconds=0,
            sleep=self.sleeps.append,
        )
        refresh_client = _RecordingEnrichmentClient()
        refreshed = enrich_parsed_entities(
            self.db,
            self.version_id,
            client=refresh_client,
            batch_delay_seconds=0,
            force_refresh=True,
            sleep=self.sleeps.append,
        )

        self.assertEqual(retry.total, 1)
        self.assertEqual([request["value"] for request in retry_client.requests], ["Docker"])
        self.assertEqual(refreshed.total, 7)
        self.assertEqual(len(refresh_client.requests), 7)

    def test_invalid_payload_is_recorded_as_error(self) -> None:
        result = enrich_parsed_entities(
            self.db,
            self.version_id,
            client=_MalformedEnrichmentClient(),
            batch_delay_seconds=0,
            sleep=self.sleeps.append,
        )

        self.assertEqual(result.failed, 7)
        self.assertTrue(all("invalid enrichment payload" in outcome.error for outcome in result.outcomes))

    def test_missing_provider_marks_every_entry_failed(self) -> None:
        with mock.patch(
            "resume_ledger.services.enrichment.get_default_enrichment_client",
            side_effect=EnrichmentError("OPENAI_API_KEY is required for enrichment"),
        ):
            result = enrich_parsed_entities(self.db, self.version_id, sleep=self.sleeps.append)

        self.assertEqual(result.failed, 7)
        self.assertEqual(result.batches, 0)
        self.assertEqual(get_entry_enrichment(self.db, self.rows[0].id).error_message, "OPENAI_API_KEY is required for enrichment")


if __name__ == "__main__":
    unittest.main()
