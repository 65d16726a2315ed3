from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import current_consultant, current_user
from app.core.clock import Clock, get_clock, to_local_naive
from app.models import BookingStatus, Consultant, User
from app.schemas.booking import BookingListResponse, BookingRead, CancelBookingRequest, PendingBookingCreate
from app.services.bookings import BookingService, PendingBookingRequest
from database import get_db

router = APIRouter()


@router.post("/bookings", response_model=BookingRead, status_code=201)
def create_booking(
    payload: PendingBookingCreate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingRead:
    """Place a 15-minute hold on a slot. The client confirms it before the hold lapses."""
    request = PendingBookingRequest(
        client_id=user.id,
        consultant_id=payload.consultant_id,
        bookable_type=payload.bookable_type.value,
        bookable_id=payload.bookable_id,
        start_at=to_local_naive(payload.start_at),
        duration_minutes=payload.duration_minutes,
        consultation_method=payload.consultation_method.value if payload.consultation_method else None,
        notes=payload.notes,
    )
    booking = BookingService(db, clock).create_pending(request)
    return BookingRead.model_validate(booking)


@router.get("/bookings/mine", response_model=BookingListResponse)
def list_my_bookings(
    status: Optional[BookingStatus] = Query(None, description="Filter by status"),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingListResponse:
    bookings = BookingService(db, clock).list_for_client(user.id, status.value if status else None)
    return BookingListResponse(bookings=[BookingRead.model_validate(b) for b in bookings])


@router.get("/consultant/bookings", response_model=BookingListResponse)
def list_consultant_bookings(
    status: Optional[BookingStatus] = Query(None, description="Filter by status"),
    consultant: Consultant = Depends(current_consultant),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingListResponse:
    bookings = BookingService(db, clock).list_for_consultant(consultant.id, status.value if status else None)
    return BookingListResponse(bookings=[BookingRead.model_validate(b) for b in bookings])


@router.get("/bookings/{booking_id}", response_model=BookingRead)
def get_booking(
    booking_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingRead:
    booking = BookingService(db, clock).get(booking_id)
    consultant_user_id = booking.consultant.user_id if booking.consultant else None
    if not user.is_admin and user.id not in (booking.client_id, consultant_user_id):
        raise HTTPException(status_code=403, detail="You cannot view this booking")
    return BookingRead.model_validate(booking)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingRead)
def confirm_booking(
    booking_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingRead:
    booking = BookingService(db, clock).confirm(booking_id, user.id)
    return BookingRead.model_validate(booking)


@router.post("/bookings/{booking_id}/accept", response_model=BookingRead)
def accept_booking(
    booking_id: int,
    consultant: Consultant = Depends(current_consultant),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingRead:
    booking = BookingService(db, clock).accept_by_consultant(booking_id, consultant.id)
    return BookingRead.model_validate(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingRead)
def cancel_booking(
    booking_id: int,
    payload: Optional[CancelBookingRequest] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingRead:
    reason = payload.reason if payload else None
    booking = BookingService(db, clock).cancel(booking_id, user, reason)
    return BookingRead.model_validate(booking)
