"""Chunked LLM enrichment of parsed resume entries."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from resume_ledger.config import get_settings
from resume_ledger.entity_resolution.similarity import coerce_field_value
from resume_ledger.models.entry_enrichment import EntryEnrichment
from resume_ledger.models.parsed_resume_entity import ParsedResumeEntity
from resume_ledger.schemas.enrichment import BulkEnrichmentResult, EnrichmentOutcome
from resume_ledger.services.resumes import get_resume_version, list_parsed_entities

logger = logging.getLogger(__name__)

_ENRICHMENT_JSON_SCHEMA: dict[str, Any] = {
    "name": "resume_entry_enrichment",
    "strict": True,
    "schema": {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "summary": {"type": "string"},
            "skills": {"type": "array", "items": {"type": "string"}},
            "insights": {"type": "array", "items": {"type": "string"}},
            "confidence": {"type": "number"},
        },
        "required": ["summary", "skills", "insights", "confidence"],
    },
}
_SYSTEM_PROMPT = (
    "You enrich one entry of a parsed resume. Summarize it in one sentence, list the "
    "skills it demonstrates and give short career insights. Respond with JSON only."
)


class EnrichmentError(RuntimeError):
    """Raised when enrichment is misconfigured or the provider response is invalid."""


class EntryEnrichmentPayload(BaseModel):
    summary: str
    skills: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class EnrichmentClient(Protocol):
    """Protocol for pluggable enrichment clients."""

    def enrich_entry(self, entry: dict[str, Any]) -> dict[str, Any]:
        """Return an enrichment payload for one parsed entry."""


@dataclass(slots=True)
class OpenAIEnrichmentClient:
    """Minimal OpenAI Chat Completions enrichment client using stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60

    def enrich_entry(self, entry: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_schema", "json_schema": _ENRICHMENT_JSON_SCHEMA},
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": json.dumps(entry, ensure_ascii=True)},
            ],
        }
        url = f"{self.base_url.rstrip('/')}/chat/completions"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise EnrichmentError(f"OpenAI HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise EnrichmentError(f"OpenAI request failed: {exc.reason}") from exc

        try:
            decoded = json.loads(raw)
            content = decoded["choices"][0]["message"]["content"]
            return json.loads(content)
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
            raise EnrichmentError("OpenAI enrichment response was invalid") from exc


def get_default_enrichment_client() -> EnrichmentClient:
    settings = get_settings()
    if not settings.openai_api_key:
        raise EnrichmentError("OPENAI_API_KEY is required for enrichment")
    return OpenAIEnrichmentClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
    )


def enrich_parsed_entities(
    db: Session,
    resume_version_id: int,
    *,
    client: EnrichmentClient | None = None,
    batch_size: int | None = None,
    batch_delay_seconds: float | None = None,
    force_refresh: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> BulkEnrichmentResult:
    """Enrich every parsed entry of a resume version in small chunks.

    Entries of one chunk are enriched concurrently; chunks are separated by a fixed
    delay. Each entry's outcome is stored on its own, so one failure never cancels
    the rest. Entries already enriched are skipped unless `force_refresh` is set.
    """

    settings = get_settings()
    size = max(1, batch_size or settings.enrichment_batch_size)
    delay = settings.enrichment_batch_delay_seconds if batch_delay_seconds is None else batch_delay_seconds
    total_started = perf_counter()

    get_resume_version(db, resume_version_id)
    entries = list_parsed_entities(db, resume_version_id)
    if not force_refresh:
        done = set(
            db.scalars(
                select(EntryEnrichment.parsed_entity_id).where(
                    EntryEnrichment.parsed_entity_id.in_([entry.id for entry in entries]),
                    EntryEnrichment.status == "enriched",
                )
            )
        )
        entries = [entry for entry in entries if entry.id not in done]

    result = BulkEnrichmentResult(resume_version_id=resume_version_id, total=len(entries))
    if not entries:
        return result

    try:
        active_client = client or get_default_enrichment_client()
    except EnrichmentError as exc:
        for entry in entries:
            _record_outcome(db, result, entry.id, None, str(exc))
        db.commit()
        return result

    chunks = [entries[start : start + size] for start in range(0, len(entries), size)]
    for index, chunk in enumerate(chunks):
        if index > 0 and delay > 0:
            sleep(delay)
        started = perf_counter()
        # Worker threads only see plain dicts, never session-bound rows.
        requests = [(entry.id, _entry_request(entry)) for entry in chunk]
        with ThreadPoolExecutor(max_workers=len(requests)) as pool:
            responses = list(pool.map(lambda item: _enrich_one(active_client, *item), requests))
        for (parsed_entity_id, _), (payload, error) in zip(requests, responses, strict=True):
            _record_outcome(db, result, parsed_entity_id, payload, error)
        db.commit()
        result.batches += 1
        logger.info(
            "enrichment.batch_timing resume_version_id=%s batch=%d size=%d batch_ms=%.2f",
            resume_version_id,
            index + 1,
            len(chunk),
            (perf_counter() - started) * 1000.0,
        )

    logger.info(
        "enrichment.run_timing resume_version_id=%s total=%d succeeded=%d failed=%d batches=%d total_ms=%.2f",
        resume_version_id,
        result.total,
        result.succeeded,
        result.failed,
        result.batches,
        (perf_counter() - total_started) * 1000.0,
    )
    return result


def get_entry_enrichment(db: Session, parsed_entity_id: int) -> EntryEnrichment | None:
    return db.scalar(select(EntryEnrichment).where(EntryEnrichment.parsed_entity_id == parsed_entity_id))


def _entry_request(entry: ParsedResumeEntity) -> dict[str, Any]:
    return {
        "entity_type": entry.entity_type,
        "field_name": entry.field_name,
        "value": coerce_field_value(entry.raw_value),
    }


def _enrich_one(
    client: EnrichmentClient,
    parsed_entity_id: int,
    request: dict[str, Any],
) -> tuple[dict[str, Any] | None, str | None]:
    try:
        raw = client.enrich_entry(request)
        payload = EntryEnrichmentPayload.model_validate(raw)
    except PydanticValidationError as exc:
        logger.warning("enrichment.entry_invalid parsed_entity_id=%s error=%s", parsed_entity_id, exc)
        return None, f"invalid enrichment payload: {exc.error_count()} error(s)"
    except Exception as exc:  # noqa: BLE001
        logger.warning("enrichment.entry_failed parsed_entity_id=%s error=%s", parsed_entity_id, exc)
        return None, str(exc) or exc.__class__.__name__
    return payload.model_dump(), None


def _record_outcome(
    db: Session,
    result: BulkEnrichmentResult,
    parsed_entity_id: int,
    payload: dict[str, Any] | None,
    error: str | None,
) -> None:
    row = get_entry_enrichment(db, parsed_entity_id)
    if row is None:
        row = EntryEnrichment(parsed_entity_id=parsed_entity_id)
        db.add(row)
    if error is None:
        row.status = "enriched"
        row.enrichment_json = payload or {}
        row.error_message = None
        result.succeeded += 1
        result.outcomes.append(EnrichmentOutcome(parsed_entity_id=parsed_entity_id, status="enriched"))
    else:
        row.status = "error"
        row.enrichment_json = {}
        row.error_message = error
        result.failed += 1
        result.outcomes.append(EnrichmentOutcome(parsed_entity_id=parsed_entity_id, status="error", error=error))
    db.flush()
