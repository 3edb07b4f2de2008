"""Error taxonomy for the reconciliation core."""

from __future__ import annotations

from typing import Any


class ReconciliationError(Exception):
    """Base class for reconciliation failures surfaced to callers."""


class ValidationError(ReconciliationError):
    """Raised for malformed input, such as an override without a value."""


class NotFoundError(ReconciliationError):
    """Raised when a logical entity, decision or canonical node is missing."""


class ConflictError(ReconciliationError):
    """Raised when a version race is lost at the uniqueness constraint.

    Callers should re-read the latest version and retry.
    """


class DegradedModeError(ReconciliationError):
    """Raised when the similarity/embedding service cannot produce a score."""


class PermissionDeniedError(ReconciliationError):
    """Raised when an actor lacks the privilege to mutate shared reference data."""


class PartialBatchFailure(ReconciliationError):
    """One or more items of a batch failed while the rest were processed."""

    def __init__(self, failures: list[dict[str, Any]]) -> None:
        self.failures = failures
        super().__init__(f"{len(failures)} batch item(s) failed")
