"""Embedding clients and vector math for matching entity names and field values.

Scores produced here are raw cosine similarity clamped to [0, 1], so they can be
compared directly against the diff and link thresholds.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from resume_ledger.config import get_settings

DEFAULT_HASH_DIMENSIONS = 256
HASH_SLOTS_PER_TOKEN = 4
_WORD_RE = re.compile(r"[a-z0-9+#]+")

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """Raised when an embedding provider cannot return usable vectors."""


class EmbeddingClient(Protocol):
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in input order."""


@dataclass(slots=True)
class OpenAIEmbeddingsClient:
    """OpenAI `/embeddings` client over stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60
    dimensions: int | None = None

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        payload: dict[str, Any] = {"model": self.model, "input": texts}
        if self.dimensions:
            payload["dimensions"] = self.dimensions
        return _parse_embeddings_response(self._post(payload), expected=len(texts))

    def _post(self, payload: dict[str, Any]) -> str:
        req = urllib_request.Request(
            url=f"{self.base_url.rstrip('/')}/embeddings",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                return resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise EmbeddingError(f"embeddings provider HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise EmbeddingError(f"embeddings provider unreachable: {exc.reason}") from exc


@dataclass(slots=True)
class HashEmbeddingsClient:
    """Offline embeddings: each word token is hashed into a few signed slots.

    Names that share words share slots, names with no word in common are close to
    orthogonal. Used when no provider key is configured and in tests.
    """

    dimensions: int = DEFAULT_HASH_DIMENSIONS

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [hash_embed_text(text, dimensions=self.dimensions) for text in texts]


def get_default_embedding_client() -> EmbeddingClient:
    settings = get_settings()
    if settings.openai_api_key:
        return OpenAIEmbeddingsClient(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.openai_timeout_seconds,
            dimensions=settings.openai_embedding_dimensions,
        )
    return HashEmbeddingsClient()


def embed_texts(texts: list[str], *, client: EmbeddingClient | None = None) -> list[list[float]]:
    """Embed `texts` with the given or default client; failures raise `EmbeddingError`."""

    if not texts:
        return []
    vectors = (client or get_default_embedding_client()).embed_texts(texts)
    if len(vectors) != len(texts):
        raise EmbeddingError(f"expected {len(texts)} vectors, provider returned {len(vectors)}")
    return [_unit(vector) for vector in vectors]


def embed_texts_with_fallback(
    texts: list[str],
    *,
    client: EmbeddingClient | None = None,
) -> list[list[float]]:
    """Like `embed_texts`, but a provider failure falls back to hash embeddings.

    Canonical node vectors use this; diff scoring uses the strict variant and reports
    a provider outage as degraded mode.
    """

    try:
        return embed_texts(texts, client=client)
    except EmbeddingError as exc:
        logger.warning("embeddings.fallback_to_hash texts=%d reason=%s", len(texts), exc)
        return HashEmbeddingsClient().embed_texts(texts)


def hash_embed_text(text: str, *, dimensions: int = DEFAULT_HASH_DIMENSIONS) -> list[float]:
    size = max(1, int(dimensions))
    vector = [0.0] * size
    for token in _WORD_RE.findall((text or "").lower()):
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=3 * HASH_SLOTS_PER_TOKEN).digest()
        for slot in range(HASH_SLOTS_PER_TOKEN):
            index = int.from_bytes(digest[2 * slot : 2 * slot + 2], "big") % size
            sign = -1.0 if digest[2 * HASH_SLOTS_PER_TOKEN + slot] & 1 else 1.0
            vector[index] += sign
    return _unit(vector)


def cosine_similarity(left: list[float] | None, right: list[float] | None) -> float:
    """Raw cosine of two vectors clamped to [0, 1].

    Opposed and orthogonal vectors both score 0.0. Missing or mismatched vectors score
    0.0 as well.
    """

    if not left or not right or len(left) != len(right):
        return 0.0
    left_norm = _norm(left)
    right_norm = _norm(right)
    if left_norm == 0.0 or right_norm == 0.0:
        return 0.0
    cosine = sum(a * b for a, b in zip(left, right)) / (left_norm * right_norm)
    return min(1.0, max(0.0, cosine))


def ensure_embedding(value: Any) -> list[float] | None:
    """Read a stored JSON vector; anything that is not a list of numbers is None."""

    if not isinstance(value, list):
        return None
    try:
        return [float(item) for item in value]
    except (TypeError, ValueError):
        return None


def _parse_embeddings_response(raw: str, *, expected: int) -> list[list[float]]:
    try:
        rows = sorted(json.loads(raw)["data"], key=lambda row: int(row.get("index", 0)))
        vectors = [[float(value) for value in row["embedding"]] for row in rows]
    except (KeyError, TypeError, ValueError, json.JSONDecodeError) as exc:
        raise EmbeddingError("embeddings provider returned a malformed response") from exc
    if len(vectors) != expected:
        raise EmbeddingError(f"expected {expected} vectors, provider returned {len(vectors)}")
    return vectors


def _unit(vector: list[float]) -> list[float]:
    norm = _norm(vector)
    if norm == 0.0:
        return vector
    return [value / norm for value in vector]


def _norm(vector: list[float]) -> float:
    return math.sqrt(sum(value * value for value in vector))
