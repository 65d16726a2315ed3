from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AvailableSlotsResponse(BaseModel):
    consultant_id: int
    date: date
    slots: List[str]


class SlotValidationRequest(BaseModel):
    start_at: datetime
    duration_minutes: int = Field(..., ge=5, le=480)
    buffer_after_minutes: int = Field(0, ge=0)
    exclude_booking_id: Optional[int] = None


class SlotValidationResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None
