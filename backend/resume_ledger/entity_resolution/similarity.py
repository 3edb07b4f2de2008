"""Deterministic string similarity helpers for profile reconciliation."""

from __future__ import annotations

import json
import re
from difflib import SequenceMatcher


_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_MULTISPACE_RE = re.compile(r"\s+")

# Common resume abbreviations expanded before fuzzy comparison.
_ABBREVIATIONS = {
    "sr": "senior",
    "jr": "junior",
    "snr": "senior",
    "mgr": "manager",
    "eng": "engineer",
    "engr": "engineer",
    "dev": "developer",
    "assoc": "associate",
    "asst": "assistant",
    "dir": "director",
    "vp": "vice president",
    "univ": "university",
    "intl": "international",
    "corp": "corporation",
    "inc": "incorporated",
    "co": "company",
}


def normalize_entity_text(value: str) -> str:
    """Normalize entity names/aliases for matching."""

    collapsed = _MULTISPACE_RE.sub(" ", value.strip().lower())
    cleaned = _NON_ALNUM_RE.sub("", collapsed)
    return _MULTISPACE_RE.sub(" ", cleaned).strip()


def expand_abbreviations(value: str) -> str:
    """Expand well-known resume abbreviations token by token."""

    tokens = normalize_entity_text(value).split()
    return " ".join(_ABBREVIATIONS.get(token, token) for token in tokens)


def normalize_field_value(value: str) -> str:
    """Trim and case-fold a field value; the identity test for diff classification."""

    return value.strip().casefold()


def coerce_field_value(raw_value: str | None) -> str:
    """Render a raw parsed value as comparable text.

    Parsers sometimes emit JSON-encoded values; lists are joined and objects are
    serialized with sorted keys so equal payloads compare equal.
    """

    if raw_value is None:
        return ""
    stripped = raw_value.strip()
    if not stripped or stripped[0] not in '["{':
        return stripped
    try:
        decoded = json.loads(stripped)
    except json.JSONDecodeError:
        return stripped
    if isinstance(decoded, str):
        return decoded.strip()
    if isinstance(decoded, list):
        return ", ".join(str(item).strip() for item in decoded if str(item).strip())
    if isinstance(decoded, dict):
        return json.dumps(decoded, sort_keys=True, ensure_ascii=True)
    return stripped


def token_set_similarity(left: str, right: str) -> float:
    """Return token overlap similarity in [0, 1]."""

    left_tokens = set(normalize_entity_text(left).split())
    right_tokens = set(normalize_entity_text(right).split())
    if not left_tokens or not right_tokens:
        return 0.0
    intersection = len(left_tokens & right_tokens)
    union = len(left_tokens | right_tokens)
    return intersection / union if union else 0.0


def string_similarity(left: str, right: str) -> float:
    """Composite deterministic similarity score."""

    norm_left = expand_abbreviations(left)
    norm_right = expand_abbreviations(right)
    if not norm_left or not norm_right:
        return 0.0
    if norm_left == norm_right:
        return 1.0
    sequence = SequenceMatcher(a=norm_left, b=norm_right).ratio()
    token = token_set_similarity(norm_left, norm_right)
    return max(sequence, token)
