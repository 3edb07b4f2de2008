"""Confirmed profile schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ConfirmedProfileRead(BaseModel):
    """Serialized confirmed profile value."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    entity_type: str
    entity_id: str
    field_name: str
    confirmed_value: str
    confidence_score: float
    source: str
    last_confirmed_at: datetime
    created_at: datetime
    updated_at: datetime
