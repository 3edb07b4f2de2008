"""Unit tests for the four-way diff classification policy."""

from __future__ import annotations

import unittest
from dataclasses import dataclass

from resume_ledger.entity_resolution.diff_classifier import DiffClassifier, DiffThresholds
from resume_ledger.entity_resolution.scoring import (
    EmbeddingSimilarityScorer,
    HybridSimilarityScorer,
    StringSimilarityScorer,
)
from resume_ledger.errors import DegradedModeError
from resume_ledger.services.embeddings import EmbeddingError, HashEmbeddingsClient


@dataclass(slots=True)
class _FixedScorer:
    value: float
    name: str = "fixed"

    def score(self, left: str, right: str) -> float:
        return self.value


class _UnavailableScorer:
    name = "unavailable"

    def score(self, left: str, right: str) -> float:
        raise DegradedModeError("similarity service timed out")


class _FailingEmbeddingsClient:
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingError("provider returned HTTP 503")


class _FixedVectorsClient:
    def __init__(self, vectors: dict[str, list[float]]) -> None:
        self.vectors = vectors

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [list(self.vectors[text]) for text in texts]


def _classifier(similarity: float) -> DiffClassifier:
    return DiffClassifier(scorer=_FixedScorer(similarity), thresholds=DiffThresholds())


class DiffClassifierTests(unittest.TestCase):
    def test_equal_values_are_identical(self) -> None:
        result = _classifier(0.1).classify(
            "Senior Software Engineer",
            "Senior Software Engineer",
            confidence_score=0.97,
            profile_entity_id="job-1",
            profile_entity_type="work_experience",
        )

        self.assertEqual(result.diff_type, "identical")
        self.assertEqual(result.similarity_score, 1.0)
        self.assertFalse(result.requires_review)
        self.assertEqual(result.profile_entity_id, "job-1")
        self.assertEqual(result.profile_entity_type, "work_experience")

    def test_identity_ignores_whitespace_and_case(self) -> None:
        result = _classifier(0.1).classify("  senior software ENGINEER ", "Senior Software Engineer", confidence_score=0.5)

        self.assertEqual(result.diff_type, "identical")
        self.assertEqual(result.similarity_score, 1.0)
        self.assertEqual(result.rule, "normalized_exact_match")

    def test_similar_values_are_equivalent_and_reviewed_below_ceiling(self) -> None:
        result = _classifier(0.93).classify("Senior Engineer", "Sr. Engineer", confidence_score=0.9)

        self.assertEqual(result.diff_type, "equivalent")
        self.assertAlmostEqual(result.similarity_score, 0.93)
        self.assertTrue(result.requires_review)
        self.assertIn("similarity=0.93", result.justification)

    def test_very_similar_values_are_equivalent_without_review(self) -> None:
        result = _classifier(0.96).classify("Senior Engineer", "Sr. Engineer", confidence_score=0.9)

        self.assertEqual(result.diff_type, "equivalent")
        self.assertFalse(result.requires_review)

    def test_missing_confirmed_value_is_new(self) -> None:
        result = _classifier(0.99).classify("Python", None, confidence_score=0.95)

        self.assertEqual(result.diff_type, "new")
        self.assertEqual(result.similarity_score, 0.0)
        self.assertFalse(result.requires_review)
        self.assertIsNone(result.profile_entity_id)
        self.assertIsNone(result.profile_entity_type)

    def test_low_confidence_new_value_requires_review(self) -> None:
        result = _classifier(0.99).classify("Python", None, confidence_score=0.6)

        self.assertEqual(result.diff_type, "new")
        self.assertTrue(result.requires_review)

    def test_dissimilar_values_conflict_and_require_review(self) -> None:
        result = _classifier(0.4).classify("Globex", "Acme Corp", confidence_score=0.99)

        self.assertEqual(result.diff_type, "conflicting")
        self.assertAlmostEqual(result.similarity_score, 0.4)
        self.assertTrue(result.requires_review)

    def test_threshold_boundaries_are_inclusive(self) -> None:
        at_equivalence = _classifier(0.90).classify("a1", "b2", confidence_score=1.0)
        below_equivalence = _classifier(0.8999).classify("a1", "b2", confidence_score=1.0)
        at_ceiling = _classifier(0.95).classify("a1", "b2", confidence_score=1.0)
        at_review = _classifier(0.0).classify("a1", None, confidence_score=0.85)
        below_review = _classifier(0.0).classify("a1", None, confidence_score=0.8499)

        self.assertEqual(at_equivalence.diff_type, "equivalent")
        self.assertTrue(at_equivalence.requires_review)
        self.assertEqual(below_equivalence.diff_type, "conflicting")
        self.assertEqual(at_ceiling.diff_type, "equivalent")
        self.assertFalse(at_ceiling.requires_review)
        self.assertFalse(at_review.requires_review)
        self.assertTrue(below_review.requires_review)

    def test_confidence_is_carried_through_unchanged(self) -> None:
        for confirmed in (None, "Acme Corp", "Globex"):
            result = _classifier(0.5).classify("Acme Corp", confirmed, confidence_score=0.42)
            self.assertEqual(result.confidence_score, 0.42)

    def test_classification_is_deterministic(self) -> None:
        classifier = DiffClassifier(scorer=StringSimilarityScorer(), thresholds=DiffThresholds())

        runs = [
            classifier.classify("Sr. Software Eng", "Senior Software Engineer", confidence_score=0.9)
            for _ in range(3)
        ]

        self.assertEqual(len({(run.diff_type, run.similarity_score, run.justification) for run in runs}), 1)
        self.assertEqual(runs[0].diff_type, "equivalent")

    def test_abbreviations_expand_before_scoring(self) -> None:
        classifier = DiffClassifier(scorer=StringSimilarityScorer(), thresholds=DiffThresholds())

        result = classifier.classify("Sr. Software Engineer", "Senior Software Engineer", confidence_score=0.9)

        self.assertEqual(result.diff_type, "equivalent")
        self.assertEqual(result.similarity_score, 1.0)
        self.assertFalse(result.requires_review)

    def test_degraded_scorer_yields_conflicting_with_review(self) -> None:
        classifier = DiffClassifier(scorer=_UnavailableScorer(), thresholds=DiffThresholds())

        result = classifier.classify("Globex", "Acme Corp", confidence_score=0.99)

        self.assertEqual(result.diff_type, "conflicting")
        self.assertTrue(result.requires_review)
        self.assertTrue(result.degraded)
        self.assertEqual(result.rule, "degraded_mode")
        self.assertIn("similarity=unavailable", result.justification)

    def test_identical_values_do_not_need_the_scorer(self) -> None:
        classifier = DiffClassifier(scorer=_UnavailableScorer(), thresholds=DiffThresholds())

        result = classifier.classify("Acme Corp", "acme corp", confidence_score=0.99)

        self.assertEqual(result.diff_type, "identical")
        self.assertFalse(result.degraded)

    def test_hybrid_scorer_degrades_when_embeddings_fail(self) -> None:
        scorer = HybridSimilarityScorer(embedding=EmbeddingSimilarityScorer(client=_FailingEmbeddingsClient()))

        with self.assertRaises(DegradedModeError):
            scorer.score("Acme Corp", "Acme Corporation")

    def test_hybrid_scorer_takes_best_of_string_and_embedding(self) -> None:
        scorer = HybridSimilarityScorer(embedding=EmbeddingSimilarityScorer(client=HashEmbeddingsClient(dimensions=64)))

        score = scorer.score("Sr. Engineer", "Senior Engineer")

        self.assertEqual(score, 1.0)

    def test_embedding_scores_are_raw_cosine(self) -> None:
        client = _FixedVectorsClient(
            {
                "Acme Corp": [1.0, 0.0],
                "Globex": [0.0, 1.0],
                "Acme Corporation": [0.9, 0.43588989],
            }
        )
        classifier = DiffClassifier(scorer=EmbeddingSimilarityScorer(client=client), thresholds=DiffThresholds())

        unrelated = classifier.classify("Globex", "Acme Corp", confidence_score=0.9)
        close = classifier.classify("Acme Corporation", "Acme Corp", confidence_score=0.9)

        self.assertEqual(unrelated.similarity_score, 0.0)
        self.assertEqual(unrelated.diff_type, "conflicting")
        self.assertEqual(close.similarity_score, 0.9)
        self.assertEqual(close.diff_type, "equivalent")
        self.assertTrue(close.requires_review)

    def test_json_encoded_values_are_compared_as_text(self) -> None:
        result = _classifier(0.1).classify('["Python", "SQL"]', "Python, SQL", confidence_score=0.9)

        self.assertEqual(result.diff_type, "identical")


if __name__ == "__main__":
    unittest.main()
