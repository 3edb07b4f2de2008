"""Versioned profile entity routes."""

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from resume_ledger.db.dependencies import get_db
from resume_ledger.dependencies import get_current_user_id
from resume_ledger.schemas.common import ApiResponse, DeleteResult
from resume_ledger.schemas.versioned_entity import EntityCreateRequest, EntityUpdateRequest, EntityVersionRead
from resume_ledger.services.versioned_entities import (
    create_entity,
    delete_entity,
    get_entity_history,
    get_entity_version,
    get_latest_entities,
    update_entity,
)

router = APIRouter(prefix="/entities")


@router.get("/{entity_type}", response_model=ApiResponse[list[EntityVersionRead]])
def list_latest(
    entity_type: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[EntityVersionRead]]:
    """Current version of every active logical entity of a type."""

    rows = get_latest_entities(db, entity_type, user_id)
    return ApiResponse(data=[EntityVersionRead.from_row(row) for row in rows])


@router.post("/{entity_type}", response_model=ApiResponse[EntityVersionRead], status_code=201)
def create(
    payload: EntityCreateRequest,
    entity_type: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityVersionRead]:
    row = create_entity(
        db,
        entity_type,
        user_id,
        payload.data,
        source=payload.source,
        source_confidence=payload.source_confidence,
    )
    return ApiResponse(data=EntityVersionRead.from_row(row))


@router.patch("/{entity_type}/{logical_entity_id}", response_model=ApiResponse[EntityVersionRead])
def update(
    payload: EntityUpdateRequest,
    entity_type: str = Path(..., min_length=1),
    logical_entity_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityVersionRead]:
    """Write the next version with the given fields merged over the current one."""

    row = update_entity(
        db,
        entity_type,
        logical_entity_id,
        payload.data,
        source=payload.source,
        source_confidence=payload.source_confidence,
        user_id=user_id,
    )
    return ApiResponse(data=EntityVersionRead.from_row(row))


@router.delete("/{entity_type}/{logical_entity_id}", response_model=ApiResponse[DeleteResult])
def remove(
    entity_type: str = Path(..., min_length=1),
    logical_entity_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[DeleteResult]:
    """Soft-delete by writing an inactive version."""

    delete_entity(db, entity_type, logical_entity_id, user_id=user_id)
    return ApiResponse(data=DeleteResult(id=logical_entity_id, deleted=True))


@router.get("/{entity_type}/{logical_entity_id}/history", response_model=ApiResponse[list[EntityVersionRead]])
def history(
    entity_type: str = Path(..., min_length=1),
    logical_entity_id: str = Path(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[EntityVersionRead]]:
    rows = get_entity_history(db, entity_type, logical_entity_id, user_id=user_id)
    return ApiResponse(data=[EntityVersionRead.from_row(row) for row in rows])


@router.get(
    "/{entity_type}/{logical_entity_id}/versions/{version}",
    response_model=ApiResponse[EntityVersionRead],
)
def version_detail(
    entity_type: str = Path(..., min_length=1),
    logical_entity_id: str = Path(..., min_length=1),
    version: int = Path(..., ge=1),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[EntityVersionRead]:
    row = get_entity_version(db, entity_type, logical_entity_id, version)
    if row is None or row.user_id != user_id:
        raise HTTPException(status_code=404, detail="Entity version not found")
    return ApiResponse(data=EntityVersionRead.from_row(row))
