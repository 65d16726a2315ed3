"""Consultant working hours and holidays."""
from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from app.core import errors
from app.core.clock import Clock
from app.core.errors import BookingValidationError, NotFoundError
from app.models import ConsultantHoliday, ConsultantWorkingHour
from app.repositories import HolidayRepository, WorkingHourRepository
from app.services import booking_rules

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _normalize_time(value: object, field: str) -> str:
    if not value:
        raise BookingValidationError(errors.INVALID_SCHEDULE, "Start time and end time are required", field=field)
    try:
        return booking_rules.normalize_hhmm(str(value))
    except ValueError:
        raise BookingValidationError(errors.INVALID_SCHEDULE, "Times must use HH:MM", field=field)


class WorkingHourService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = WorkingHourRepository(db)

    def all_for_consultant(self, consultant_id: int) -> list[ConsultantWorkingHour]:
        return self.repo.all_for_consultant(consultant_id)

    def active_for_consultant(self, consultant_id: int) -> list[ConsultantWorkingHour]:
        return self.repo.all_for_consultant(consultant_id, only_active=True)

    def grouped_by_day(self, consultant_id: int, only_active: bool = True) -> dict[int, list[ConsultantWorkingHour]]:
        return self.repo.grouped_by_day(consultant_id, only_active=only_active)

    def get(self, working_hour_id: int, consultant_id: Optional[int] = None) -> ConsultantWorkingHour:
        row = self.repo.get(working_hour_id)
        if not row or (consultant_id is not None and row.consultant_id != consultant_id):
            raise NotFoundError("Working hour", working_hour_id)
        return row

    def create(
        self,
        consultant_id: int,
        day_of_week: int,
        start_time: str,
        end_time: str,
        is_active: bool = True,
    ) -> ConsultantWorkingHour:
        start, end = self._validated_interval(day_of_week, start_time, end_time)
        self._assert_no_overlap(consultant_id, day_of_week, start, end, None)
        row = self.repo.create(
            consultant_id=consultant_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            is_active=is_active,
        )
        self.db.commit()
        return row

    def update(self, working_hour_id: int, consultant_id: Optional[int] = None, **changes) -> ConsultantWorkingHour:
        row = self.get(working_hour_id, consultant_id)
        day = changes.get("day_of_week")
        day = row.day_of_week if day is None else day
        start, end = self._validated_interval(
            day,
            changes.get("start_time") or row.start_time,
            changes.get("end_time") or row.end_time,
        )
        self._assert_no_overlap(row.consultant_id, day, start, end, row.id)
        row.day_of_week = day
        row.start_time = start
        row.end_time = end
        if changes.get("is_active") is not None:
            row.is_active = bool(changes["is_active"])
        self.db.commit()
        return row

    def delete(self, working_hour_id: int, consultant_id: Optional[int] = None) -> None:
        row = self.get(working_hour_id, consultant_id)
        self.repo.delete(row)
        self.db.commit()

    def activate(self, working_hour_id: int, consultant_id: Optional[int] = None) -> ConsultantWorkingHour:
        row = self.get(working_hour_id, consultant_id)
        # Re-checked against every interval of the day, not only the active ones.
        self._assert_no_overlap(row.consultant_id, row.day_of_week, row.start_time, row.end_time, row.id)
        row.is_active = True
        self.db.commit()
        return row

    def deactivate(self, working_hour_id: int, consultant_id: Optional[int] = None) -> ConsultantWorkingHour:
        row = self.get(working_hour_id, consultant_id)
        row.is_active = False
        self.db.commit()
        return row

    def replace_weekly_schedule(
        self, consultant_id: int, week: Mapping[int, Iterable[Mapping]]
    ) -> list[ConsultantWorkingHour]:
        """Swap the consultant's whole week in one transaction.

        ``week`` maps day_of_week to a list of {start_time, end_time, is_active}.
        Nothing is written unless every day validates.
        """
        normalized: dict[int, list[dict]] = {}
        for day, intervals in week.items():
            day = int(day)
            rows = []
            for raw in intervals or []:
                start, end = self._validated_interval(day, raw.get("start_time"), raw.get("end_time"), "weekly_schedule")
                rows.append({"start_time": start, "end_time": end, "is_active": bool(raw.get("is_active", True))})
            rows.sort(key=lambda item: item["start_time"])
            for current, following in zip(rows, rows[1:]):
                if current["end_time"] > following["start_time"]:
                    raise BookingValidationError(
                        errors.SCHEDULE_OVERLAP,
                        "Working intervals overlap within the same day",
                        field="weekly_schedule",
                    )
            normalized[day] = rows

        try:
            self.repo.delete_for_consultant(consultant_id)
            created = [
                self.repo.create(consultant_id=consultant_id, day_of_week=day, **row)
                for day in sorted(normalized)
                for row in normalized[day]
            ]
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("replaced weekly schedule consultant_id=%s intervals=%s", consultant_id, len(created))
        return created

    def _validated_interval(self, day_of_week: int, start_time, end_time, field: str = "end_time") -> tuple[str, str]:
        if day_of_week is None or not 0 <= int(day_of_week) <= 6:
            raise BookingValidationError(errors.INVALID_SCHEDULE, "day_of_week must be 0-6", field="day_of_week")
        start = _normalize_time(start_time, field)
        end = _normalize_time(end_time, field)
        if start >= end:
            raise BookingValidationError(errors.INVALID_SCHEDULE, "End time must be after start time", field=field)
        return start, end

    def _assert_no_overlap(
        self, consultant_id: int, day_of_week: int, start: str, end: str, ignore_id: Optional[int]
    ) -> None:
        if self.repo.has_overlap(consultant_id, day_of_week, start, end, ignore_id):
            raise BookingValidationError(
                errors.SCHEDULE_OVERLAP,
                "This interval overlaps another working interval on the same day",
                field="end_time",
            )


class HolidayService:
    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.repo = HolidayRepository(db)

    def all_for_consultant(self, consultant_id: int) -> list[ConsultantHoliday]:
        return self.repo.all_for_consultant(consultant_id)

    def get(self, holiday_id: int, consultant_id: Optional[int] = None) -> ConsultantHoliday:
        row = self.repo.get(holiday_id)
        if not row or (consultant_id is not None and row.consultant_id != consultant_id):
            raise NotFoundError("Holiday", holiday_id)
        return row

    def create(self, consultant_id: int, holiday_date, name: Optional[str] = None) -> ConsultantHoliday:
        target = self._validated_date(holiday_date)
        if self.repo.exists_on(consultant_id, target):
            raise BookingValidationError(errors.DUPLICATE_HOLIDAY, "This holiday date already exists", "holiday_date")
        row = self.repo.create(consultant_id=consultant_id, holiday_date=target, name=name)
        self.db.commit()
        return row

    def update(self, holiday_id: int, consultant_id: Optional[int] = None, **changes) -> ConsultantHoliday:
        row = self.get(holiday_id, consultant_id)
        if changes.get("holiday_date") is not None:
            target = self._validated_date(changes["holiday_date"])
            if self.repo.exists_on(row.consultant_id, target, ignore_id=row.id):
                raise BookingValidationError(
                    errors.DUPLICATE_HOLIDAY, "This holiday date already exists", "holiday_date"
                )
            row.holiday_date = target
        if "name" in changes:
            row.name = changes["name"]
        self.db.commit()
        return row

    def delete(self, holiday_id: int, consultant_id: Optional[int] = None) -> None:
        row = self.get(holiday_id, consultant_id)
        self.repo.delete(row)
        self.db.commit()

    def replace_holidays(self, consultant_id: int, holidays: Iterable[Mapping]) -> list[ConsultantHoliday]:
        rows = []
        for raw in holidays:
            if not raw.get("holiday_date"):
                continue
            name = raw.get("name")
            rows.append({"holiday_date": self._validated_date(raw["holiday_date"]), "name": str(name) if name else None})
        rows.sort(key=lambda item: item["holiday_date"])
        seen: set[date] = set()
        for row in rows:
            if row["holiday_date"] in seen:
                raise BookingValidationError(errors.DUPLICATE_HOLIDAY, "Holiday dates must not repeat", "holiday_date")
            seen.add(row["holiday_date"])

        try:
            self.repo.delete_for_consultant(consultant_id)
            created = [self.repo.create(consultant_id=consultant_id, **row) for row in rows]
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("replaced holidays consultant_id=%s count=%s", consultant_id, len(created))
        return created

    def _validated_date(self, value) -> date:
        if isinstance(value, datetime):
            value = value.date()
        if not isinstance(value, date):
            text = str(value or "").strip()
            if not DATE_PATTERN.match(text):
                raise BookingValidationError(errors.INVALID_SCHEDULE, "Date must use YYYY-MM-DD", "holiday_date")
            try:
                value = datetime.strptime(text, "%Y-%m-%d").date()
            except ValueError:
                raise BookingValidationError(errors.INVALID_SCHEDULE, "Date must use YYYY-MM-DD", "holiday_date")
        if value < self.clock.today():
            raise BookingValidationError(errors.HOLIDAY_IN_PAST, "Holiday must be today or later", "holiday_date")
        return value
