"""Cross-user canonical entity graph: matching, linking, merging and curation."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from time import perf_counter

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from resume_ledger.entity_resolution.linking import (
    CandidateMatch,
    CandidateNode,
    LinkDecision,
    LinkThresholds,
    decide_link,
    rank_candidates,
)
from resume_ledger.entity_resolution.similarity import coerce_field_value, normalize_entity_text
from resume_ledger.errors import NotFoundError, ValidationError
from resume_ledger.models.normalized_entity import NormalizedEntity
from resume_ledger.models.normalized_entity_merge_audit import NormalizedEntityMergeAudit
from resume_ledger.models.parsed_resume_entity import ParsedResumeEntity
from resume_ledger.models.resume_entity_link import ResumeEntityLink
from resume_ledger.models.resume_version import ResumeVersion
from resume_ledger.models.versioned_entity import ENTITY_MODELS
from resume_ledger.schemas.normalization import (
    EntityMergeResult,
    NormalizationResult,
    NormalizationSummary,
    NormalizedEntityRead,
    ResumeEntityLinkRead,
    SimilarEntityRead,
    UnresolvedEntityRead,
)
from resume_ledger.services.access import AdminChecker
from resume_ledger.services.embeddings import EmbeddingClient, embed_texts_with_fallback, ensure_embedding
from resume_ledger.services.resumes import get_resume_version, list_parsed_entities

logger = logging.getLogger(__name__)

REVIEW_STATUSES: tuple[str, ...] = ("approved", "pending", "flagged")


@dataclass(slots=True)
class LinkOutcome:
    """Result of linking one parsed entity into the canonical graph."""

    entity: NormalizedEntity
    link: ResumeEntityLink
    decision: LinkDecision
    created: bool


def canonical_type_for(entity_type: str, field_name: str) -> str | None:
    """Return the canonical node type for a name-like parsed field, else None.

    A `name` field takes its entity's type (skill name -> skill); other name-like
    fields are their own type (work_experience.company -> company).
    """

    model = ENTITY_MODELS.get(entity_type)
    if model is None or field_name not in model.name_fields:
        return None
    return entity_type if field_name == "name" else field_name


def get_normalized_entity(db: Session, entity_id: int) -> NormalizedEntity:
    entity = db.scalar(select(NormalizedEntity).where(NormalizedEntity.id == entity_id))
    if entity is None:
        raise NotFoundError(f"Normalized entity {entity_id} not found")
    return entity


def list_normalized_entities(
    db: Session,
    *,
    entity_type: str | None = None,
    review_status: str | None = None,
) -> list[NormalizedEntity]:
    stmt = select(NormalizedEntity)
    if entity_type is not None:
        stmt = stmt.where(NormalizedEntity.entity_type == entity_type)
    if review_status is not None:
        stmt = stmt.where(NormalizedEntity.review_status == review_status)
    return list(db.scalars(stmt.order_by(NormalizedEntity.canonical_name.asc(), NormalizedEntity.id.asc())).all())


def list_entity_links(db: Session, normalized_entity_id: int) -> list[ResumeEntityLink]:
    stmt = (
        select(ResumeEntityLink)
        .where(ResumeEntityLink.normalized_entity_id == normalized_entity_id)
        .order_by(ResumeEntityLink.id.asc())
    )
    return list(db.scalars(stmt).all())


def get_link_for_parsed_entity(db: Session, parsed_entity_id: int) -> ResumeEntityLink | None:
    return db.scalar(select(ResumeEntityLink).where(ResumeEntityLink.parsed_entity_id == parsed_entity_id))


def create_normalized_entity(
    db: Session,
    entity_type: str,
    canonical_name: str,
    *,
    aliases: list[str] | None = None,
    metadata: dict[str, object] | None = None,
    embedding_client: EmbeddingClient | None = None,
) -> NormalizedEntity:
    """Curator-created node; approved with full confidence."""

    clean_name = canonical_name.strip()
    if not clean_name:
        raise ValidationError("Canonical name must not be empty.")
    entity = NormalizedEntity(
        entity_type=entity_type,
        canonical_name=clean_name,
        aliases_json=_merge_aliases(clean_name, [], aliases or []),
        embedding=embed_texts_with_fallback([clean_name], client=embedding_client)[0],
        confidence_score=1.0,
        review_status="approved",
        metadata_json=dict(metadata or {}),
    )
    db.add(entity)
    db.commit()
    db.refresh(entity)
    return entity


def find_normalized_matches(
    db: Session,
    entity_type: str,
    name: str,
    *,
    threshold: float = 0.0,
    exclude_id: int | None = None,
    name_embedding: list[float] | None = None,
    embedding_client: EmbeddingClient | None = None,
) -> list[CandidateMatch]:
    """Rank canonical nodes of `entity_type` against a name, best first."""

    stmt = select(NormalizedEntity).where(NormalizedEntity.entity_type == entity_type)
    if exclude_id is not None:
        stmt = stmt.where(NormalizedEntity.id != exclude_id)
    candidates = [_candidate(entity) for entity in db.scalars(stmt)]
    if not candidates:
        return []
    if name_embedding is None:
        name_embedding = embed_texts_with_fallback([name], client=embedding_client)[0]
    return rank_candidates(name, name_embedding, candidates, threshold=threshold)


def find_similar_entities(
    db: Session,
    entity_id: int,
    *,
    threshold: float = 0.7,
    embedding_client: EmbeddingClient | None = None,
) -> list[SimilarEntityRead]:
    """Nodes of the same type similar to `entity_id`, sorted by similarity descending."""

    entity = get_normalized_entity(db, entity_id)
    matches = find_normalized_matches(
        db,
        entity.entity_type,
        entity.canonical_name,
        threshold=threshold,
        exclude_id=entity.id,
        name_embedding=ensure_embedding(entity.embedding),
        embedding_client=embedding_client,
    )
    nodes = {
        node.id: node
        for node in db.scalars(
            select(NormalizedEntity).where(NormalizedEntity.id.in_([match.entity_id for match in matches]))
        )
    }
    return [
        SimilarEntityRead(
            id=match.entity_id,
            entity_type=nodes[match.entity_id].entity_type,
            canonical_name=match.canonical_name,
            aliases=list(nodes[match.entity_id].aliases_json or []),
            confidence_score=nodes[match.entity_id].confidence_score,
            similarity_score=match.score,
            match_method=match.method,
        )
        for match in matches
    ]


def find_or_create_normalized_entity(
    db: Session,
    parsed_entity: ParsedResumeEntity,
    *,
    embedding_client: EmbeddingClient | None = None,
    thresholds: LinkThresholds | None = None,
    commit: bool = True,
) -> LinkOutcome:
    """Link a parsed entity to its canonical node, creating the node when nothing is close.

    Top score >= auto-merge with embedding evidence links without review, scores from the
    link floor up link with review, anything lower creates a new pending node.

    Only an auto-link adds the parsed name to the shared node's aliases. A link that
    needs review leaves the node untouched until a curator confirms it. A link that
    created its node carries no match method or score.
    """

    canonical_type = canonical_type_for(parsed_entity.entity_type, parsed_entity.field_name)
    if canonical_type is None:
        raise ValidationError(f"Field '{parsed_entity.qualified_field_name}' is not a name-like field")
    name = coerce_field_value(parsed_entity.raw_value)
    if not normalize_entity_text(name):
        raise ValidationError(f"Parsed entity {parsed_entity.id} has an empty name")

    name_embedding = embed_texts_with_fallback([name], client=embedding_client)[0]
    matches = find_normalized_matches(db, canonical_type, name, name_embedding=name_embedding)
    decision = decide_link(matches[0] if matches else None, thresholds)

    best = decision.match
    created = best is None
    if best is None:
        entity = NormalizedEntity(
            entity_type=canonical_type,
            canonical_name=name,
            aliases_json=[],
            embedding=name_embedding,
            confidence_score=parsed_entity.confidence_score,
            review_status="pending",
            metadata_json={"created_from_parsed_entity_id": parsed_entity.id},
        )
        db.add(entity)
        db.flush()
        match_method, match_score = None, None
    else:
        entity = get_normalized_entity(db, best.entity_id)
        if decision.action == "auto_link":
            entity.aliases_json = _merge_aliases(entity.canonical_name, entity.aliases_json or [], [name])
        match_method, match_score = best.method, best.score

    link = get_link_for_parsed_entity(db, parsed_entity.id)
    if link is None:
        link = ResumeEntityLink(parsed_entity_id=parsed_entity.id, normalized_entity_id=entity.id)
        db.add(link)
    link.normalized_entity_id = entity.id
    link.match_method = match_method
    link.match_score = match_score
    link.confidence_score = parsed_entity.confidence_score
    link.review_required = decision.review_required
    db.flush()
    if commit:
        db.commit()
        db.refresh(link)
        db.refresh(entity)
    logger.info(
        "normalization.linked parsed_entity_id=%s normalized_entity_id=%s action=%s method=%s score=%s",
        parsed_entity.id,
        entity.id,
        decision.action,
        match_method,
        match_score,
    )
    return LinkOutcome(entity=entity, link=link, decision=decision, created=created)


def link_parsed_entity_manually(
    db: Session,
    parsed_entity_id: int,
    normalized_entity_id: int,
    *,
    confidence_score: float = 1.0,
) -> ResumeEntityLink:
    """Curator link; replaces any automatic link for the parsed entity.

    Confirming a link is what lets the parsed name become an alias of the node.
    """

    parsed = db.scalar(select(ParsedResumeEntity).where(ParsedResumeEntity.id == parsed_entity_id))
    if parsed is None:
        raise NotFoundError(f"Parsed entity {parsed_entity_id} not found")
    entity = get_normalized_entity(db, normalized_entity_id)
    name = coerce_field_value(parsed.raw_value)
    if canonical_type_for(parsed.entity_type, parsed.field_name) == entity.entity_type:
        entity.aliases_json = _merge_aliases(entity.canonical_name, entity.aliases_json or [], [name])
    link = get_link_for_parsed_entity(db, parsed_entity_id)
    if link is None:
        link = ResumeEntityLink(parsed_entity_id=parsed_entity_id, normalized_entity_id=normalized_entity_id)
        db.add(link)
    link.normalized_entity_id = normalized_entity_id
    link.match_method = "manual"
    link.match_score = 1.0
    link.confidence_score = confidence_score
    link.review_required = False
    db.commit()
    db.refresh(link)
    return link


def normalize_resume_version(
    db: Session,
    resume_version_id: int,
    *,
    entity_type: str | None = None,
    embedding_client: EmbeddingClient | None = None,
    thresholds: LinkThresholds | None = None,
) -> NormalizationResult:
    """Link every name-like parsed field of a resume version to the canonical graph.

    Fields already linked keep their link; they count as matched.
    """

    total_started = perf_counter()
    get_resume_version(db, resume_version_id)
    summary = NormalizationSummary()
    links: list[ResumeEntityLink] = []
    for parsed in list_parsed_entities(db, resume_version_id):
        if entity_type is not None and parsed.entity_type != entity_type:
            continue
        if canonical_type_for(parsed.entity_type, parsed.field_name) is None:
            continue
        if not normalize_entity_text(coerce_field_value(parsed.raw_value)):
            continue
        summary.total += 1
        existing = get_link_for_parsed_entity(db, parsed.id)
        if existing is not None:
            link, created = existing, False
        else:
            outcome = find_or_create_normalized_entity(
                db,
                parsed,
                embedding_client=embedding_client,
                thresholds=thresholds,
            )
            link, created = outcome.link, outcome.created
        if created:
            summary.created += 1
        else:
            summary.matched += 1
        if link.review_required:
            summary.needs_review += 1
        links.append(link)

    logger.info(
        (
            "normalization.run_timing resume_version_id=%s total=%d matched=%d created=%d "
            "needs_review=%d total_ms=%.2f"
        ),
        resume_version_id,
        summary.total,
        summary.matched,
        summary.created,
        summary.needs_review,
        (perf_counter() - total_started) * 1000.0,
    )
    return NormalizationResult(
        resume_version_id=resume_version_id,
        summary=summary,
        links=[ResumeEntityLinkRead.model_validate(link) for link in links],
    )


def merge_normalized_entities(
    db: Session,
    source_id: int,
    target_id: int,
    actor_id: str,
    *,
    admin_checker: AdminChecker,
) -> EntityMergeResult:
    """Fold `source_id` into `target_id` in one transaction.

    Every link is re-pointed to the target, the target absorbs the source's name and
    aliases, an audit row is written and the source node is deleted.
    """

    admin_checker.require_admin(db, actor_id)
    if source_id == target_id:
        raise ValidationError("Cannot merge a normalized entity into itself.")
    source = get_normalized_entity(db, source_id)
    target = get_normalized_entity(db, target_id)
    if source.entity_type != target.entity_type:
        raise ValidationError(
            f"Cannot merge a {source.entity_type} node into a {target.entity_type} node"
        )

    started = perf_counter()
    try:
        absorbed = [source.canonical_name, *(source.aliases_json or [])]
        link_ids = list(
            db.scalars(select(ResumeEntityLink.id).where(ResumeEntityLink.normalized_entity_id == source.id))
        )
        if link_ids:
            db.execute(
                update(ResumeEntityLink)
                .where(ResumeEntityLink.id.in_(link_ids))
                .values(normalized_entity_id=target.id)
                .execution_options(synchronize_session="fetch")
            )
        target.aliases_json = _merge_aliases(target.canonical_name, target.aliases_json or [], absorbed)
        target.confidence_score = max(target.confidence_score, source.confidence_score)
        audit = NormalizedEntityMergeAudit(
            source_entity_id=source.id,
            target_entity_id=target.id,
            actor_user_id=actor_id,
            source_canonical_name=source.canonical_name,
            relinked_count=len(link_ids),
            details_json={
                "absorbed_aliases": absorbed,
                "source_review_status": source.review_status,
                "source_confidence_score": source.confidence_score,
            },
        )
        db.add(audit)
        db.delete(source)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "normalization.merge_failed source_entity_id=%s target_entity_id=%s actor=%s",
            source_id,
            target_id,
            actor_id,
        )
        raise
    db.refresh(target)
    db.refresh(audit)
    logger.info(
        "normalization.merged source_entity_id=%s target_entity_id=%s relinked=%d actor=%s total_ms=%.2f",
        source_id,
        target_id,
        audit.relinked_count,
        actor_id,
        (perf_counter() - started) * 1000.0,
    )
    return EntityMergeResult(
        target=NormalizedEntityRead.model_validate(target),
        source_entity_id=source_id,
        relinked_count=audit.relinked_count,
        audit_id=audit.id,
    )


def set_review_status(db: Session, entity_id: int, status: str) -> NormalizedEntity:
    if status not in REVIEW_STATUSES:
        raise ValidationError(f"Review status must be one of: {', '.join(REVIEW_STATUSES)}")
    entity = get_normalized_entity(db, entity_id)
    entity.review_status = status
    db.commit()
    db.refresh(entity)
    return entity


def delete_normalized_entity(
    db: Session,
    entity_id: int,
    actor_id: str,
    *,
    admin_checker: AdminChecker,
) -> bool:
    """Delete a node and the links that reference it."""

    admin_checker.require_admin(db, actor_id)
    entity = get_normalized_entity(db, entity_id)
    db.execute(delete(ResumeEntityLink).where(ResumeEntityLink.normalized_entity_id == entity.id))
    db.delete(entity)
    db.commit()
    logger.info("normalization.deleted normalized_entity_id=%s actor=%s", entity_id, actor_id)
    return True


def list_unresolved_entities(db: Session, *, entity_type: str | None = None) -> list[UnresolvedEntityRead]:
    """Nodes not yet approved, with how often and by whom they are referenced."""

    stmt = select(NormalizedEntity).where(NormalizedEntity.review_status != "approved")
    if entity_type is not None:
        stmt = stmt.where(NormalizedEntity.entity_type == entity_type)
    entities = list(db.scalars(stmt.order_by(NormalizedEntity.id.asc())).all())
    if not entities:
        return []

    usage_rows = db.execute(
        select(
            ResumeEntityLink.normalized_entity_id,
            ResumeVersion.user_id,
            func.count(ResumeEntityLink.id),
            func.count(ResumeEntityLink.match_score),
            func.sum(ResumeEntityLink.match_score),
        )
        .join(ParsedResumeEntity, ParsedResumeEntity.id == ResumeEntityLink.parsed_entity_id)
        .join(ResumeVersion, ResumeVersion.id == ParsedResumeEntity.resume_version_id)
        .where(ResumeEntityLink.normalized_entity_id.in_([entity.id for entity in entities]))
        .group_by(ResumeEntityLink.normalized_entity_id, ResumeVersion.user_id)
    ).all()
    counts: dict[int, int] = defaultdict(int)
    scored: dict[int, int] = defaultdict(int)
    score_sums: dict[int, float] = defaultdict(float)
    users: dict[int, set[str]] = defaultdict(set)
    for entity_id, user_id, count, scored_count, score_sum in usage_rows:
        counts[entity_id] += int(count)
        scored[entity_id] += int(scored_count)
        score_sums[entity_id] += float(score_sum or 0.0)
        users[entity_id].add(user_id)

    return [
        UnresolvedEntityRead(
            id=entity.id,
            entity_type=entity.entity_type,
            canonical_name=entity.canonical_name,
            aliases=list(entity.aliases_json or []),
            confidence_score=entity.confidence_score,
            review_status=entity.review_status,
            reference_count=counts[entity.id],
            referencing_users=sorted(users[entity.id]),
            avg_match_score=(round(score_sums[entity.id] / scored[entity.id], 4) if scored[entity.id] else None),
        )
        for entity in entities
    ]


def _candidate(entity: NormalizedEntity) -> CandidateNode:
    return CandidateNode(
        entity_id=entity.id,
        canonical_name=entity.canonical_name,
        aliases=list(entity.aliases_json or []),
        embedding=ensure_embedding(entity.embedding),
    )


def _merge_aliases(canonical_name: str, existing: list[str], additions: list[str]) -> list[str]:
    """Union aliases by normalized text, never repeating the canonical name."""

    seen = {normalize_entity_text(canonical_name)}
    merged: list[str] = []
    for alias in [*existing, *additions]:
        clean = alias.strip()
        key = normalize_entity_text(clean)
        if not key or key in seen:
            continue
        seen.add(key)
        merged.append(clean)
    return merged
