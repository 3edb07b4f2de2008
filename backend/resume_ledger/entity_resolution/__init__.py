"""Reconciliation scoring package: diff classification and canonical linking."""

from resume_ledger.entity_resolution.diff_classifier import (
    DIFF_TYPES,
    DiffClassification,
    DiffClassifier,
    DiffThresholds,
)
from resume_ledger.entity_resolution.linking import (
    CandidateMatch,
    CandidateNode,
    LinkDecision,
    LinkThresholds,
    decide_link,
    rank_candidates,
)

__all__ = [
    "DIFF_TYPES",
    "DiffClassification",
    "DiffClassifier",
    "DiffThresholds",
    "CandidateMatch",
    "CandidateNode",
    "LinkDecision",
    "LinkThresholds",
    "decide_link",
    "rank_candidates",
]
