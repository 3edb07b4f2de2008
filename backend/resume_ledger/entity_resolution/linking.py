"""Candidate scoring and the auto-link tie-break policy for the canonical graph."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from resume_ledger.config import Settings, get_settings
from resume_ledger.entity_resolution.similarity import normalize_entity_text, string_similarity
from resume_ledger.services.embeddings import cosine_similarity

MatchMethod = Literal["embedding", "fuzzy", "llm", "manual"]
LinkAction = Literal["auto_link", "review_link", "create"]


@dataclass(slots=True)
class CandidateNode:
    """The parts of a canonical node needed to score it."""

    entity_id: int
    canonical_name: str
    aliases: list[str]
    embedding: list[float] | None = None


@dataclass(slots=True)
class CandidateMatch:
    entity_id: int
    canonical_name: str
    score: float
    method: MatchMethod
    embedding_score: float
    fuzzy_score: float


@dataclass(slots=True)
class LinkDecision:
    action: LinkAction
    match: CandidateMatch | None
    review_required: bool
    reason: str


@dataclass(frozen=True, slots=True)
class LinkThresholds:
    link_floor: float = 0.70
    auto_merge: float = 0.92

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LinkThresholds":
        active = settings or get_settings()
        return cls(link_floor=active.link_floor_threshold, auto_merge=active.auto_merge_threshold)


def score_candidate(
    name: str,
    name_embedding: list[float] | None,
    candidate: CandidateNode,
) -> CandidateMatch:
    """Score one canonical node against a name by embedding and by fuzzy text."""

    labels = [candidate.canonical_name, *candidate.aliases]
    fuzzy = round(max((string_similarity(name, label) for label in labels if label.strip()), default=0.0), 4)
    semantic = round(cosine_similarity(name_embedding, candidate.embedding), 4)
    # Ties favour embedding evidence.
    if semantic >= fuzzy:
        method: MatchMethod = "embedding"
        score = semantic
    else:
        method = "fuzzy"
        score = fuzzy
    return CandidateMatch(
        entity_id=candidate.entity_id,
        canonical_name=candidate.canonical_name,
        score=score,
        method=method,
        embedding_score=semantic,
        fuzzy_score=fuzzy,
    )


def rank_candidates(
    name: str,
    name_embedding: list[float] | None,
    candidates: Iterable[CandidateNode],
    *,
    threshold: float = 0.0,
) -> list[CandidateMatch]:
    """Return matches at or above `threshold`, best first, ties by lowest node id."""

    if not normalize_entity_text(name):
        return []
    matches = [score_candidate(name, name_embedding, candidate) for candidate in candidates]
    kept = [match for match in matches if match.score >= threshold]
    kept.sort(key=lambda match: (-match.score, match.entity_id))
    return kept


def decide_link(best: CandidateMatch | None, thresholds: LinkThresholds | None = None) -> LinkDecision:
    """Apply the tie-break policy to the top-ranked candidate.

    score >= auto_merge with embedding evidence links without review; score >=
    link_floor links with review; anything lower creates a new canonical node.
    """

    active = thresholds or LinkThresholds.from_settings()
    if best is None or best.score < active.link_floor:
        score_text = "none" if best is None else f"{best.score:.2f}"
        return LinkDecision(
            action="create",
            match=None,
            review_required=True,
            reason=f"top_score={score_text} below link_floor={active.link_floor:.2f}",
        )
    if best.score >= active.auto_merge and best.method == "embedding":
        return LinkDecision(
            action="auto_link",
            match=best,
            review_required=False,
            reason=f"embedding score={best.score:.2f} >= auto_merge={active.auto_merge:.2f}",
        )
    return LinkDecision(
        action="review_link",
        match=best,
        review_required=True,
        reason=(
            f"{best.method} score={best.score:.2f} between link_floor={active.link_floor:.2f} "
            f"and auto_merge={active.auto_merge:.2f} or non-embedding match"
        ),
    )
