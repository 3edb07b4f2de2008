"""Pluggable similarity scorers used by the diff classifier."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from resume_ledger.entity_resolution.similarity import string_similarity
from resume_ledger.errors import DegradedModeError
from resume_ledger.services.embeddings import (
    EmbeddingClient,
    EmbeddingError,
    cosine_similarity,
    embed_texts,
    get_default_embedding_client,
)


class SimilarityScorer(Protocol):
    """Scores how alike two field values are, in [0, 1]."""

    name: str

    def score(self, left: str, right: str) -> float:
        """Return a similarity score or raise `DegradedModeError`."""


@dataclass(slots=True)
class StringSimilarityScorer:
    """Deterministic fuzzy string scorer with abbreviation expansion."""

    name: str = "string"

    def score(self, left: str, right: str) -> float:
        return string_similarity(left, right)


@dataclass(slots=True)
class EmbeddingSimilarityScorer:
    """Cosine similarity of provider embeddings; provider failure is degraded mode."""

    client: EmbeddingClient = field(default_factory=get_default_embedding_client)
    name: str = "embedding"

    def score(self, left: str, right: str) -> float:
        try:
            left_vector, right_vector = embed_texts([left, right], client=self.client)
        except EmbeddingError as exc:
            raise DegradedModeError(f"embedding service unavailable: {exc}") from exc
        return cosine_similarity(left_vector, right_vector)


@dataclass(slots=True)
class HybridSimilarityScorer:
    """Best of fuzzy string and embedding similarity.

    The embedding half is mandatory: if it cannot run the whole score is degraded,
    never the string score alone.
    """

    embedding: EmbeddingSimilarityScorer = field(default_factory=EmbeddingSimilarityScorer)
    string: StringSimilarityScorer = field(default_factory=StringSimilarityScorer)
    name: str = "hybrid"

    def score(self, left: str, right: str) -> float:
        semantic = self.embedding.score(left, right)
        return max(semantic, self.string.score(left, right))


def get_default_similarity_scorer() -> SimilarityScorer:
    """Return the scorer used by diff analysis when none is injected."""

    return HybridSimilarityScorer()
