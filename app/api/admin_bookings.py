from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.core.clock import Clock, get_clock, to_local_naive
from app.models import Booking, BookingStatus, User
from app.schemas.booking_admin import (
    AdminBookingCreate,
    BookingDetail,
    BookingListItem,
    BookingListResponse,
    BookingUpdateRequest,
    ExpireSweepResponse,
)
from app.services.bookings import BookingService
from database import get_db

router = APIRouter()


def _to_item(booking: Booking) -> BookingListItem:
    client = booking.client
    consultant_user = booking.consultant.user if booking.consultant else None
    return BookingListItem.model_validate(booking).model_copy(
        update={
            "client_name": client.full_name if client else None,
            "client_email": client.email if client else None,
            "consultant_name": consultant_user.full_name if consultant_user else None,
        }
    )


def _to_detail(booking: Booking) -> BookingDetail:
    item = _to_item(booking)
    return BookingDetail(
        **item.model_dump(),
        conversation_id=booking.conversation.id if booking.conversation else None,
    )


@router.get("/admin/bookings", response_model=BookingListResponse)
def list_bookings(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: Optional[BookingStatus] = Query(None, description="Filter by status"),
    consultant_id: Optional[int] = Query(None, description="Filter by consultant"),
    client_id: Optional[int] = Query(None, description="Filter by client"),
    search: Optional[str] = Query(None, description="Client or consultant name/email"),
    date_from: Optional[date] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[date] = Query(None, description="End date (YYYY-MM-DD, inclusive)"),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingListResponse:
    result = BookingService(db, clock).paginate(
        page=page,
        per_page=per_page,
        status=status.value if status else None,
        consultant_id=consultant_id,
        client_id=client_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    return BookingListResponse(
        bookings=[_to_item(booking) for booking in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        last_page=result.last_page,
    )


@router.post("/admin/bookings", response_model=BookingDetail, status_code=201)
def create_booking(
    payload: AdminBookingCreate,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingDetail:
    service = BookingService(db, clock)
    booking = service.create(
        client_id=payload.client_id,
        consultant_id=payload.consultant_id,
        bookable_type=payload.bookable_type.value,
        bookable_id=payload.bookable_id,
        start_at=to_local_naive(payload.start_at),
        duration_minutes=payload.duration_minutes,
        end_at=to_local_naive(payload.end_at) if payload.end_at else None,
        buffer_after_minutes=payload.buffer_after_minutes,
        price=payload.price,
        consultation_method=payload.consultation_method.value if payload.consultation_method else None,
        status=payload.status.value if payload.status else None,
        notes=payload.notes,
    )
    return _to_detail(service.get(booking.id))


@router.post("/admin/bookings/expire-pending", response_model=ExpireSweepResponse)
def expire_pending_bookings(
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ExpireSweepResponse:
    return ExpireSweepResponse(expired=BookingService(db, clock).expire_old_pending())


@router.get("/admin/bookings/{booking_id}", response_model=BookingDetail)
def get_booking_detail(
    booking_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingDetail:
    return _to_detail(BookingService(db, clock).get(booking_id))


@router.patch("/admin/bookings/{booking_id}", response_model=BookingDetail)
def update_booking(
    booking_id: int,
    payload: BookingUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> BookingDetail:
    service = BookingService(db, clock)
    service.update(
        booking_id,
        start_at=to_local_naive(payload.start_at) if payload.start_at else None,
        duration_minutes=payload.duration_minutes,
        end_at=to_local_naive(payload.end_at) if payload.end_at else None,
        buffer_after_minutes=payload.buffer_after_minutes,
        status=payload.status.value if payload.status else None,
        notes=payload.notes,
        actor_id=admin.id,
    )
    return _to_detail(service.get(booking_id))


@router.delete("/admin/bookings/{booking_id}", status_code=204)
def delete_booking(
    booking_id: int,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Response:
    BookingService(db, clock).delete(booking_id)
    return Response(status_code=204)
