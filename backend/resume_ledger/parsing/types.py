"""Typed parser outputs independent of persistence."""

from dataclasses import dataclass


@dataclass(slots=True)
class ParsedField:
    """One field value extracted from an uploaded resume."""

    entity_type: str
    field_name: str
    raw_value: str
    confidence: float = 0.0
    profile_entity_id: str | None = None
