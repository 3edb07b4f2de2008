"""Confirmed profile routes."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from resume_ledger.db.dependencies import get_db
from resume_ledger.dependencies import get_current_user_id
from resume_ledger.schemas.common import ApiResponse
from resume_ledger.schemas.confirmed_profile import ConfirmedProfileRead
from resume_ledger.services.confirmed_profile import list_confirmed_profile

router = APIRouter()


@router.get("/confirmed-profile", response_model=ApiResponse[list[ConfirmedProfileRead]])
def confirmed_profile(
    entity_type: str | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ConfirmedProfileRead]]:
    """The acting user's confirmed values."""

    rows = list_confirmed_profile(db, user_id, entity_type=entity_type)
    return ApiResponse(data=[ConfirmedProfileRead.model_validate(row) for row in rows])
