"""
Slot validation and free-slot listing for a consultant.

Read-only: combines working hours, holidays and blocking bookings. Times are
naive local datetimes in the application timezone.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.core import errors
from app.core.clock import Clock
from app.core.config import settings
from app.core.errors import NotFoundError
from app.models import Consultant, ConsultantWorkingHour
from app.repositories import BookingRepository, HolidayRepository, WorkingHourRepository
from app.services import bookables, booking_rules

HOLIDAY_MESSAGE = "The consultant is on holiday on this date"
OUTSIDE_HOURS_MESSAGE = "The selected time is outside the consultant's working hours"
UNAVAILABLE_MESSAGE = "The selected slot is not available"


@dataclass(frozen=True)
class SlotValidation:
    valid: bool
    reason: Optional[str] = None
    message: Optional[str] = None


VALID_SLOT = SlotValidation(valid=True)


class AvailabilityEngine:
    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.bookings = BookingRepository(db)
        self.holidays = HolidayRepository(db)
        self.working_hours = WorkingHourRepository(db)

    def is_holiday(self, consultant_id: int, target: date | datetime) -> bool:
        if isinstance(target, datetime):
            target = target.date()
        return self.holidays.exists_on(consultant_id, target)

    def working_hours_for_day(self, consultant_id: int, day_of_week: int) -> list[ConsultantWorkingHour]:
        return self.working_hours.for_consultant_day(consultant_id, day_of_week, only_active=True)

    def fits_in_working_hours(self, consultant_id: int, start_at: datetime, end_at: datetime) -> bool:
        """[start_at, end_at] must sit inside one active interval of start_at's weekday."""
        intervals = self.working_hours_for_day(consultant_id, booking_rules.day_of_week(start_at.date()))
        if not intervals:
            return False
        day = start_at.date()
        for interval in intervals:
            if start_at >= booking_rules.at_time(day, interval.start_time) and end_at <= booking_rules.at_time(
                day, interval.end_time
            ):
                return True
        return False

    def validate_slot(
        self,
        consultant_id: int,
        start_at: datetime,
        duration_minutes: int,
        buffer_after_minutes: int,
        exclude_booking_id: Optional[int] = None,
    ) -> SlotValidation:
        occupied_end = start_at + timedelta(minutes=duration_minutes + buffer_after_minutes)

        if self.is_holiday(consultant_id, start_at):
            return SlotValidation(False, errors.HOLIDAY_CONFLICT, HOLIDAY_MESSAGE)
        if not self.fits_in_working_hours(consultant_id, start_at, occupied_end):
            return SlotValidation(False, errors.OUTSIDE_WORKING_HOURS, OUTSIDE_HOURS_MESSAGE)
        overlaps = self.bookings.find_blocking_overlaps(
            consultant_id, start_at, occupied_end, self.clock.now(), exclude_booking_id
        )
        if overlaps:
            return SlotValidation(False, errors.SLOT_UNAVAILABLE, UNAVAILABLE_MESSAGE)
        return VALID_SLOT

    def available_slots(
        self,
        consultant_id: int,
        target: date,
        bookable_type: Optional[str] = None,
        bookable_id: Optional[int] = None,
        granularity_minutes: Optional[int] = None,
        duration_minutes: Optional[int] = None,
    ) -> list[str]:
        """HH:MM starts that are free on ``target``, interval by interval, chronological within each."""
        consultant = self.db.get(Consultant, consultant_id)
        if consultant is None or consultant.deleted_at is not None:
            raise NotFoundError("Consultant", consultant_id)
        if self.is_holiday(consultant_id, target):
            return []
        intervals = self.working_hours_for_day(consultant_id, booking_rules.day_of_week(target))
        if not intervals:
            return []

        step = granularity_minutes or settings.availability_slot_step_minutes
        duration, buffer = bookables.listing_duration_and_buffer(
            self.db, consultant, bookable_type, bookable_id, duration_minutes
        )
        span = timedelta(minutes=duration + buffer)
        now = self.clock.now()
        blocking = [
            (booking.start_at, booking.occupied_end_at)
            for booking in self.bookings.blocking_for_date(consultant_id, target, now)
        ]

        slots: list[str] = []
        for interval in intervals:
            candidate = booking_rules.at_time(target, interval.start_time)
            work_end = booking_rules.at_time(target, interval.end_time)
            while candidate + span <= work_end:
                if candidate >= now and not any(
                    booking_rules.intervals_overlap(candidate, candidate + span, start, end) for start, end in blocking
                ):
                    slots.append(booking_rules.format_hhmm(candidate))
                candidate += timedelta(minutes=step)
        return slots
