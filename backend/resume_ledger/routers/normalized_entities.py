"""Shared canonical entity graph routes."""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from resume_ledger.db.dependencies import get_db
from resume_ledger.dependencies import get_admin_checker, get_current_user_id
from resume_ledger.schemas.common import ApiResponse, DeleteResult
from resume_ledger.schemas.normalization import (
    EntityMergeRequest,
    EntityMergeResult,
    ManualLinkRequest,
    NormalizedEntityCreate,
    NormalizedEntityRead,
    ResumeEntityLinkRead,
    ReviewStatusUpdateRequest,
    SimilarEntityRead,
    UnresolvedEntityRead,
)
from resume_ledger.services.access import AdminChecker
from resume_ledger.services.normalization import (
    create_normalized_entity,
    delete_normalized_entity,
    find_similar_entities,
    get_normalized_entity,
    link_parsed_entity_manually,
    list_entity_links,
    list_normalized_entities,
    list_unresolved_entities,
    merge_normalized_entities,
    set_review_status,
)

router = APIRouter(prefix="/normalized-entities")


@router.get("", response_model=ApiResponse[list[NormalizedEntityRead]])
def list_entities(
    entity_type: str | None = Query(default=None),
    review_status: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> ApiResponse[list[NormalizedEntityRead]]:
    rows = list_normalized_entities(db, entity_type=entity_type, review_status=review_status)
    return ApiResponse(data=[NormalizedEntityRead.model_validate(row) for row in rows])


@router.post("", response_model=ApiResponse[NormalizedEntityRead], status_code=201)
def create(
    payload: NormalizedEntityCreate,
    user_id: str = Depends(get_current_user_id),
    checker: AdminChecker = Depends(get_admin_checker),
    db: Session = Depends(get_db),
) -> ApiResponse[NormalizedEntityRead]:
    checker.require_admin(db, user_id)
    entity = create_normalized_entity(
        db,
        payload.entity_type,
        payload.canonical_name,
        aliases=payload.aliases,
        metadata=payload.metadata,
    )
    return ApiResponse(data=NormalizedEntityRead.model_validate(entity))


@router.get("/unresolved", response_model=ApiResponse[list[UnresolvedEntityRead]])
def unresolved(
    entity_type: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> ApiResponse[list[UnresolvedEntityRead]]:
    """Nodes awaiting curation with reference counts."""

    return ApiResponse(data=list_unresolved_entities(db, entity_type=entity_type))


@router.post("/merge", response_model=ApiResponse[EntityMergeResult])
def merge(
    payload: EntityMergeRequest,
    user_id: str = Depends(get_current_user_id),
    checker: AdminChecker = Depends(get_admin_checker),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityMergeResult]:
    """Fold the source node into the target (admin only)."""

    result = merge_normalized_entities(
        db,
        payload.source_entity_id,
        payload.target_entity_id,
        user_id,
        admin_checker=checker,
    )
    return ApiResponse(data=result)


@router.get("/{entity_id}", response_model=ApiResponse[NormalizedEntityRead])
def detail(
    entity_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[NormalizedEntityRead]:
    return ApiResponse(data=NormalizedEntityRead.model_validate(get_normalized_entity(db, entity_id)))


@router.get("/{entity_id}/similar", response_model=ApiResponse[list[SimilarEntityRead]])
def similar(
    entity_id: int = Path(..., ge=1),
    threshold: float = Query(default=0.7, ge=0.0, le=1.0),
    db: Session = Depends(get_db),
) -> ApiResponse[list[SimilarEntityRead]]:
    return ApiResponse(data=find_similar_entities(db, entity_id, threshold=threshold))


@router.get("/{entity_id}/links", response_model=ApiResponse[list[ResumeEntityLinkRead]])
def links(
    entity_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ResumeEntityLinkRead]]:
    get_normalized_entity(db, entity_id)
    return ApiResponse(data=[ResumeEntityLinkRead.model_validate(row) for row in list_entity_links(db, entity_id)])


@router.post("/{entity_id}/links", response_model=ApiResponse[ResumeEntityLinkRead])
def link_manually(
    payload: ManualLinkRequest,
    entity_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    checker: AdminChecker = Depends(get_admin_checker),
    db: Session = Depends(get_db),
) -> ApiResponse[ResumeEntityLinkRead]:
    checker.require_admin(db, user_id)
    link = link_parsed_entity_manually(
        db,
        payload.parsed_entity_id,
        entity_id,
        confidence_score=payload.confidence_score,
    )
    return ApiResponse(data=ResumeEntityLinkRead.model_validate(link))


@router.patch("/{entity_id}/review-status", response_model=ApiResponse[NormalizedEntityRead])
def review_status(
    payload: ReviewStatusUpdateRequest,
    entity_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    checker: AdminChecker = Depends(get_admin_checker),
    db: Session = Depends(get_db),
) -> ApiResponse[NormalizedEntityRead]:
    checker.require_admin(db, user_id)
    entity = set_review_status(db, entity_id, payload.status)
    return ApiResponse(data=NormalizedEntityRead.model_validate(entity))


@router.delete("/{entity_id}", response_model=ApiResponse[DeleteResult])
def remove(
    entity_id: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    checker: AdminChecker = Depends(get_admin_checker),
    db: Session = Depends(get_db),
) -> ApiResponse[DeleteResult]:
    delete_normalized_entity(db, entity_id, user_id, admin_checker=checker)
    return ApiResponse(data=DeleteResult(id=str(entity_id), deleted=True))
