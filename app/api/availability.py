from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.clock import Clock, get_clock, to_local_naive
from app.models import BookableType
from app.schemas.availability import AvailableSlotsResponse, SlotValidationRequest, SlotValidationResponse
from app.services.availability import AvailabilityEngine
from database import get_db

router = APIRouter()


@router.get("/consultants/{consultant_id}/available-slots", response_model=AvailableSlotsResponse)
def get_available_slots(
    consultant_id: int,
    date: date = Query(..., description="Target date (YYYY-MM-DD)"),
    bookable_type: Optional[BookableType] = Query(None),
    bookable_id: Optional[int] = Query(None),
    duration_minutes: Optional[int] = Query(None, ge=5, le=480, description="Direct bookings only"),
    granularity: Optional[int] = Query(None, ge=5, le=240, description="Step between candidate starts"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AvailableSlotsResponse:
    slots = AvailabilityEngine(db, clock).available_slots(
        consultant_id,
        date,
        bookable_type=bookable_type.value if bookable_type else None,
        bookable_id=bookable_id,
        granularity_minutes=granularity,
        duration_minutes=duration_minutes,
    )
    return AvailableSlotsResponse(consultant_id=consultant_id, date=date, slots=slots)


@router.post("/consultants/{consultant_id}/validate-slot", response_model=SlotValidationResponse)
def validate_slot(
    consultant_id: int,
    payload: SlotValidationRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> SlotValidationResponse:
    result = AvailabilityEngine(db, clock).validate_slot(
        consultant_id,
        to_local_naive(payload.start_at),
        payload.duration_minutes,
        payload.buffer_after_minutes,
        exclude_booking_id=payload.exclude_booking_id,
    )
    return SlotValidationResponse(valid=result.valid, reason=result.reason, message=result.message)
