"""Four-way classification of parsed resume values against confirmed profile values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from resume_ledger.config import Settings, get_settings
from resume_ledger.entity_resolution.scoring import SimilarityScorer, get_default_similarity_scorer
from resume_ledger.entity_resolution.similarity import coerce_field_value, normalize_field_value
from resume_ledger.errors import DegradedModeError

DiffType = Literal["identical", "equivalent", "conflicting", "new"]
DIFF_TYPES: tuple[str, ...] = ("identical", "equivalent", "conflicting", "new")


@dataclass(frozen=True, slots=True)
class DiffThresholds:
    """Classification boundaries; every comparison is inclusive at the threshold."""

    review_threshold: float = 0.85
    equivalence_threshold: float = 0.90
    equivalent_review_ceiling: float = 0.95

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DiffThresholds":
        active = settings or get_settings()
        return cls(
            review_threshold=active.review_threshold,
            equivalence_threshold=active.equivalence_threshold,
            equivalent_review_ceiling=active.equivalent_review_ceiling,
        )


@dataclass(slots=True)
class DiffClassification:
    """Outcome of comparing one parsed value to the confirmed value."""

    diff_type: DiffType
    similarity_score: float
    confidence_score: float
    justification: str
    requires_review: bool
    rule: str
    profile_entity_id: str | None = None
    profile_entity_type: str | None = None
    degraded: bool = False
    scorer: str | None = None


class DiffClassifier:
    """Applies the ordered classification policy; the first matching rule wins.

    1. no confirmed value -> new
    2. trimmed, case-folded values equal -> identical
    3. similarity >= equivalence threshold -> equivalent
    4. otherwise -> conflicting

    The confidence score is carried through from the parser, never computed here.
    """

    def __init__(
        self,
        scorer: SimilarityScorer | None = None,
        thresholds: DiffThresholds | None = None,
    ) -> None:
        self.scorer = scorer or get_default_similarity_scorer()
        self.thresholds = thresholds or DiffThresholds.from_settings()

    def classify(
        self,
        parsed_value: str,
        confirmed_value: str | None,
        *,
        confidence_score: float,
        profile_entity_id: str | None = None,
        profile_entity_type: str | None = None,
    ) -> DiffClassification:
        parsed_text = coerce_field_value(parsed_value)

        if confirmed_value is None:
            requires_review = confidence_score < self.thresholds.review_threshold
            return DiffClassification(
                diff_type="new",
                similarity_score=0.0,
                confidence_score=confidence_score,
                justification=(
                    "rule=no_confirmed_value: no confirmed profile value for this field; "
                    f"similarity=0.00 confidence={confidence_score:.2f} "
                    f"review_threshold={self.thresholds.review_threshold:.2f}"
                ),
                requires_review=requires_review,
                rule="no_confirmed_value",
            )

        confirmed_text = coerce_field_value(confirmed_value)
        if normalize_field_value(parsed_text) == normalize_field_value(confirmed_text):
            return DiffClassification(
                diff_type="identical",
                similarity_score=1.0,
                confidence_score=confidence_score,
                justification="rule=normalized_exact_match: values equal after trim and case-fold; similarity=1.00",
                requires_review=False,
                rule="normalized_exact_match",
                profile_entity_id=profile_entity_id,
                profile_entity_type=profile_entity_type,
            )

        try:
            similarity = round(self.scorer.score(parsed_text, confirmed_text), 4)
        except DegradedModeError as exc:
            return DiffClassification(
                diff_type="conflicting",
                similarity_score=0.0,
                confidence_score=confidence_score,
                justification=(
                    "rule=degraded_mode: similarity could not be computed, "
                    f"treating as conflicting; similarity=unavailable reason={exc}"
                ),
                requires_review=True,
                rule="degraded_mode",
                profile_entity_id=profile_entity_id,
                profile_entity_type=profile_entity_type,
                degraded=True,
                scorer=self.scorer.name,
            )

        if similarity >= self.thresholds.equivalence_threshold:
            return DiffClassification(
                diff_type="equivalent",
                similarity_score=similarity,
                confidence_score=confidence_score,
                justification=(
                    f"rule=similarity_equivalent: similarity={similarity:.2f} "
                    f">= equivalence_threshold={self.thresholds.equivalence_threshold:.2f}"
                ),
                requires_review=similarity < self.thresholds.equivalent_review_ceiling,
                rule="similarity_equivalent",
                profile_entity_id=profile_entity_id,
                profile_entity_type=profile_entity_type,
                scorer=self.scorer.name,
            )

        return DiffClassification(
            diff_type="conflicting",
            similarity_score=similarity,
            confidence_score=confidence_score,
            justification=(
                f"rule=similarity_conflicting: similarity={similarity:.2f} "
                f"< equivalence_threshold={self.thresholds.equivalence_threshold:.2f}"
            ),
            requires_review=True,
            rule="similarity_conflicting",
            profile_entity_id=profile_entity_id,
            profile_entity_type=profile_entity_type,
            scorer=self.scorer.name,
        )
