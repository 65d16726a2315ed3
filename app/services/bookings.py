"""
Booking workflows: create-pending, confirm, accept, cancel, expire, admin create/update.

Every write path that can make a booking blocking runs the same protocol in one
transaction: lock the consultant row, validate, lock overlapping booking rows,
then write. Lock order is always consultant before bookings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.core import errors
from app.core.clock import Clock
from app.core.config import settings
from app.core.errors import BookingValidationError, ForbiddenError, NotFoundError
from app.core.locking import lock_row
from app.models import (
    BookableType,
    Booking,
    BookingStatus,
    CancellerType,
    Consultant,
    User,
)
from app.repositories import BookingRepository
from app.services import bookables, booking_rules
from app.services.availability import AvailabilityEngine

logger = logging.getLogger(__name__)

ADMIN_STATUSES = {
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.COMPLETED.value,
    BookingStatus.CANCELLED.value,
}
BLOCKING_STATUSES = {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value}


@dataclass
class PendingBookingRequest:
    client_id: int
    consultant_id: int
    bookable_type: str
    bookable_id: int
    start_at: datetime
    duration_minutes: Optional[int] = None
    consultation_method: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class Page:
    items: list
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, -(-self.total // self.per_page))


def validate_granularity(start_at: datetime, duration_minutes: Optional[int]) -> None:
    step = settings.booking_granularity_minutes
    if start_at.minute % step != 0 or start_at.second or start_at.microsecond:
        raise BookingValidationError(
            errors.INVALID_GRANULARITY, f"Start time must be a multiple of {step} minutes", field="start_at"
        )
    if duration_minutes is not None and (duration_minutes <= 0 or not booking_rules.is_on_granularity(duration_minutes)):
        raise BookingValidationError(
            errors.INVALID_GRANULARITY, f"Duration must be a multiple of {step} minutes", field="duration_minutes"
        )


class BookingService:
    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.repo = BookingRepository(db)
        self.availability = AvailabilityEngine(db, clock)

    # ------------------------------------------------------------------
    # Client flows
    # ------------------------------------------------------------------

    def create_pending(self, request: PendingBookingRequest) -> Booking:
        validate_granularity(request.start_at, request.duration_minutes)
        bookable_type = bookables.normalize_bookable_type(request.bookable_type)
        try:
            consultant = self._lock_consultant(request.consultant_id)
            bookable = bookables.resolve_bookable(self.db, bookable_type, request.bookable_id, consultant.id)
            terms = bookables.resolve_terms(
                bookable_type, bookable, consultant, request.duration_minutes, request.consultation_method
            )
            start_at = request.start_at
            occupied_end = start_at + timedelta(minutes=terms.duration_minutes + terms.buffer_after_minutes)

            if self.availability.is_holiday(consultant.id, start_at):
                raise BookingValidationError(errors.HOLIDAY_CONFLICT, "The consultant is on holiday on this date", "start_at")
            if not self.availability.fits_in_working_hours(consultant.id, start_at, occupied_end):
                raise BookingValidationError(
                    errors.OUTSIDE_WORKING_HOURS, "The selected time is outside the consultant's working hours", "start_at"
                )
            now = self.clock.now()
            self._assert_no_conflict(consultant.id, start_at, occupied_end, now)

            booking = self.repo.create_pending(
                now,
                client_id=request.client_id,
                consultant_id=consultant.id,
                bookable_type=bookable_type,
                bookable_id=bookable.id,
                price=terms.price,
                start_at=start_at,
                duration_minutes=terms.duration_minutes,
                buffer_after_minutes=terms.buffer_after_minutes,
                consultation_method=terms.consultation_method,
                notes=request.notes,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "pending booking created id=%s consultant_id=%s start_at=%s expires_at=%s",
            booking.id,
            booking.consultant_id,
            booking.start_at,
            booking.expires_at,
        )
        return booking

    def confirm(self, booking_id: int, client_id: int) -> Booking:
        return self._confirm(booking_id, lambda booking: booking.client_id == client_id)

    def accept_by_consultant(self, booking_id: int, consultant_id: int) -> Booking:
        return self._confirm(booking_id, lambda booking: booking.consultant_id == consultant_id)

    def _confirm(self, booking_id: int, is_owner) -> Booking:
        booking = self.get(booking_id)
        if not is_owner(booking):
            raise ForbiddenError("You are not allowed to confirm this booking", reason=errors.NOT_OWNER)
        try:
            self._lock_consultant(booking.consultant_id)
            booking = lock_row(self.db, Booking, booking_id)
            now = self.clock.now()
            if booking.status != BookingStatus.PENDING.value:
                raise BookingValidationError(errors.INVALID_STATUS, "Only pending bookings can be confirmed", "booking")
            if not booking.can_be_confirmed(now):
                raise BookingValidationError(errors.BOOKING_EXPIRED, "The booking hold has expired", "booking")
            # Working hours and holidays are not re-validated here, only conflicts.
            self._assert_no_conflict(
                booking.consultant_id, booking.start_at, booking.occupied_end_at, now, exclude_booking_id=booking.id
            )
            self.repo.confirm(booking)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("booking confirmed id=%s consultant_id=%s", booking.id, booking.consultant_id)
        return booking

    def cancel(self, booking_id: int, actor: User, reason: Optional[str] = None) -> Booking:
        """Cancel from pending/confirmed; records who did it."""
        booking = self.get(booking_id)
        if actor.is_admin:
            cancelled_by_type = CancellerType.ADMIN.value
        elif actor.id == booking.client_id or (booking.consultant and booking.consultant.user_id == actor.id):
            cancelled_by_type = CancellerType.USER.value
        else:
            raise ForbiddenError("You are not allowed to cancel this booking", reason=errors.NOT_OWNER)
        try:
            self._lock_consultant(booking.consultant_id)
            booking = lock_row(self.db, Booking, booking_id)
            if not booking.can_be_cancelled():
                raise BookingValidationError(errors.INVALID_STATUS, "This booking cannot be cancelled", "booking")
            self.repo.cancel(booking, cancelled_by_type, actor.id, self.clock.now(), reason)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("booking cancelled id=%s by=%s:%s", booking.id, cancelled_by_type, actor.id)
        return booking

    def expire_old_pending(self) -> int:
        try:
            count = self.repo.expire_pending(self.clock.now())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if count:
            logger.info("expired %s pending bookings", count)
        return count

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, booking_id: int) -> Booking:
        booking = self.repo.get_with_relations(booking_id)
        if not booking:
            raise NotFoundError("Booking", booking_id)
        return booking

    def find(self, booking_id: int) -> Optional[Booking]:
        return self.repo.get_with_relations(booking_id)

    def paginate(self, page: int = 1, per_page: int = 10, **filters) -> Page:
        query = self.repo.filtered(**filters)
        total = query.order_by(None).count()
        items = query.offset((page - 1) * per_page).limit(per_page).all()
        return Page(items=items, total=total, page=page, per_page=per_page)

    def list_for_client(self, client_id: int, status: Optional[str] = None) -> list[Booking]:
        query = self.repo.for_client(client_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.start_at.desc()).all()

    def list_for_consultant(self, consultant_id: int, status: Optional[str] = None) -> list[Booking]:
        query = self.repo.for_consultant(consultant_id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.start_at.desc()).all()

    # ------------------------------------------------------------------
    # Admin flows
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        client_id: int,
        consultant_id: int,
        bookable_type: str,
        bookable_id: Optional[int],
        start_at: datetime,
        duration_minutes: Optional[int] = None,
        end_at: Optional[datetime] = None,
        buffer_after_minutes: Optional[int] = None,
        price: Optional[Decimal] = None,
        consultation_method: Optional[str] = None,
        status: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        duration = self._explicit_duration(start_at, duration_minutes, end_at)
        validate_granularity(start_at, duration)
        bookable_type = bookables.normalize_bookable_type(bookable_type)
        if bookable_type == BookableType.CONSULTANT.value:
            bookable_id = consultant_id
        status = status or BookingStatus.CONFIRMED.value
        if status not in BLOCKING_STATUSES:
            raise BookingValidationError(errors.INVALID_STATUS, "New bookings must be pending or confirmed", "status")
        buffer = buffer_after_minutes or 0
        try:
            consultant = self._lock_consultant(consultant_id)
            bookable = bookables.resolve_bookable(self.db, bookable_type, bookable_id, consultant.id)
            if price is None:
                price = bookables.calculate_price(bookable_type, bookable, consultant, duration)
            if consultation_method is None and bookable_type == BookableType.CONSULTANT_SERVICE.value:
                consultation_method = bookable.consultation_method
            now = self.clock.now()
            occupied_end = start_at + timedelta(minutes=duration + buffer)
            self._assert_no_conflict(consultant.id, start_at, occupied_end, now)
            booking = self.repo.create(
                client_id=client_id,
                consultant_id=consultant.id,
                bookable_type=bookable_type,
                bookable_id=bookable.id,
                start_at=start_at,
                duration_minutes=duration,
                buffer_after_minutes=buffer,
                price=booking_rules.round_money(price),
                consultation_method=consultation_method.value if hasattr(consultation_method, "value") else consultation_method,
                status=status,
                expires_at=booking_rules.hold_expiry(now) if status == BookingStatus.PENDING.value else None,
                notes=notes,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("admin booking created id=%s consultant_id=%s status=%s", booking.id, consultant_id, status)
        return booking

    def update(
        self,
        booking_id: int,
        *,
        start_at: Optional[datetime] = None,
        duration_minutes: Optional[int] = None,
        end_at: Optional[datetime] = None,
        buffer_after_minutes: Optional[int] = None,
        status: Optional[str] = None,
        notes: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Booking:
        booking = self.get(booking_id)
        new_start = start_at or booking.start_at
        if duration_minutes is None and end_at is None:
            duration = booking.duration_minutes
        else:
            duration = self._explicit_duration(new_start, duration_minutes, end_at)
        buffer = booking.buffer_after_minutes if buffer_after_minutes is None else buffer_after_minutes
        validate_granularity(new_start, duration)
        if status is not None and status not in ADMIN_STATUSES:
            raise BookingValidationError(errors.INVALID_STATUS, "Invalid booking status", "status")

        times_changed = (
            new_start != booking.start_at or duration != booking.duration_minutes or buffer != booking.buffer_after_minutes
        )
        try:
            consultant = self._lock_consultant(booking.consultant_id)
            booking = lock_row(self.db, Booking, booking_id)
            now = self.clock.now()
            target_status = status or booking.status
            becomes_blocking = target_status in BLOCKING_STATUSES and not booking.is_blocking(now)
            if target_status in BLOCKING_STATUSES and (times_changed or becomes_blocking):
                occupied_end = new_start + timedelta(minutes=duration + buffer)
                self._assert_no_conflict(consultant.id, new_start, occupied_end, now, exclude_booking_id=booking.id)

            booking.set_times(new_start, duration, buffer)
            bookable = bookables.BOOKABLE_LOADERS[booking.bookable_type](self.db, booking.bookable_id)
            if bookable is not None:
                booking.price = bookables.calculate_price(booking.bookable_type, bookable, consultant, duration)
            if notes is not None:
                booking.notes = notes
            if status and status != booking.status:
                self._apply_admin_status(booking, status, now, actor_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("admin booking updated id=%s status=%s", booking.id, booking.status)
        return booking

    def delete(self, booking_id: int) -> None:
        booking = self.get(booking_id)
        try:
            self.repo.soft_delete(booking, self.clock.now())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("booking deleted id=%s", booking_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_consultant(self, consultant_id: int) -> Consultant:
        consultant = lock_row(self.db, Consultant, consultant_id)
        if consultant is None or consultant.deleted_at is not None:
            raise NotFoundError("Consultant", consultant_id)
        return consultant

    def _assert_no_conflict(
        self,
        consultant_id: int,
        start_at: datetime,
        occupied_end: datetime,
        now: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        conflicts = self.repo.find_blocking_overlaps_with_lock(
            consultant_id, start_at, occupied_end, now, exclude_booking_id
        )
        if conflicts:
            conflict = conflicts[0]
            logger.warning(
                "slot unavailable consultant_id=%s start_at=%s conflicting_booking_id=%s",
                consultant_id,
                start_at,
                conflict.id,
            )
            raise BookingValidationError(
                errors.SLOT_UNAVAILABLE,
                "The selected slot is not available - another booking exists at this time",
                field="start_at",
            )

    @staticmethod
    def _explicit_duration(start_at: datetime, duration_minutes: Optional[int], end_at: Optional[datetime]) -> int:
        if duration_minutes is not None:
            return duration_minutes
        if end_at is not None:
            minutes = int((end_at - start_at).total_seconds() // 60)
            if minutes <= 0:
                raise BookingValidationError(errors.DURATION_REQUIRED, "End time must be after start time", "end_at")
            return minutes
        raise BookingValidationError(errors.DURATION_REQUIRED, "Duration is required", "duration_minutes")

    def _apply_admin_status(self, booking: Booking, status: str, now: datetime, actor_id: Optional[int]) -> None:
        if status == BookingStatus.CANCELLED.value:
            self.repo.cancel(booking, CancellerType.ADMIN.value, actor_id, now)
            return
        booking.status = status
        booking.expires_at = booking_rules.hold_expiry(now) if status == BookingStatus.PENDING.value else None
