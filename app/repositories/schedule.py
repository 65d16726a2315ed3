"""Working-hour and holiday stores for consultants."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.models import ConsultantHoliday, ConsultantWorkingHour


class WorkingHourRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, working_hour_id: int) -> Optional[ConsultantWorkingHour]:
        return self.db.get(ConsultantWorkingHour, working_hour_id)

    def all_for_consultant(self, consultant_id: int, only_active: bool = False) -> list[ConsultantWorkingHour]:
        query = self.db.query(ConsultantWorkingHour).filter(ConsultantWorkingHour.consultant_id == consultant_id)
        if only_active:
            query = query.filter(ConsultantWorkingHour.is_active.is_(True))
        return query.order_by(ConsultantWorkingHour.day_of_week.asc(), ConsultantWorkingHour.start_time.asc()).all()

    def for_consultant_day(
        self, consultant_id: int, day_of_week: int, only_active: bool = True
    ) -> list[ConsultantWorkingHour]:
        query = self.db.query(ConsultantWorkingHour).filter(
            ConsultantWorkingHour.consultant_id == consultant_id,
            ConsultantWorkingHour.day_of_week == day_of_week,
        )
        if only_active:
            query = query.filter(ConsultantWorkingHour.is_active.is_(True))
        return query.order_by(ConsultantWorkingHour.start_time.asc()).all()

    def grouped_by_day(self, consultant_id: int, only_active: bool = True) -> dict[int, list[ConsultantWorkingHour]]:
        grouped: dict[int, list[ConsultantWorkingHour]] = defaultdict(list)
        for row in self.all_for_consultant(consultant_id, only_active=only_active):
            grouped[row.day_of_week].append(row)
        return dict(grouped)

    def has_overlap(
        self,
        consultant_id: int,
        day_of_week: int,
        start_time: str,
        end_time: str,
        ignore_id: Optional[int] = None,
    ) -> bool:
        # Checked against every interval of the day, active or not. HH:MM strings compare lexically.
        query = self.db.query(ConsultantWorkingHour.id).filter(
            ConsultantWorkingHour.consultant_id == consultant_id,
            ConsultantWorkingHour.day_of_week == day_of_week,
            ConsultantWorkingHour.start_time < end_time,
            ConsultantWorkingHour.end_time > start_time,
        )
        if ignore_id:
            query = query.filter(ConsultantWorkingHour.id != ignore_id)
        return query.first() is not None

    def create(self, **data) -> ConsultantWorkingHour:
        row = ConsultantWorkingHour(**data)
        self.db.add(row)
        self.db.flush()
        return row

    def delete(self, row: ConsultantWorkingHour) -> None:
        self.db.delete(row)
        self.db.flush()

    def delete_for_consultant(self, consultant_id: int) -> int:
        return (
            self.db.query(ConsultantWorkingHour)
            .filter(ConsultantWorkingHour.consultant_id == consultant_id)
            .delete(synchronize_session=False)
        )


class HolidayRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, holiday_id: int) -> Optional[ConsultantHoliday]:
        return self.db.get(ConsultantHoliday, holiday_id)

    def all_for_consultant(self, consultant_id: int) -> list[ConsultantHoliday]:
        return (
            self.db.query(ConsultantHoliday)
            .filter(ConsultantHoliday.consultant_id == consultant_id)
            .order_by(ConsultantHoliday.holiday_date.asc())
            .all()
        )

    def exists_on(self, consultant_id: int, target: date, ignore_id: Optional[int] = None) -> bool:
        query = self.db.query(ConsultantHoliday.id).filter(
            ConsultantHoliday.consultant_id == consultant_id,
            ConsultantHoliday.holiday_date == target,
        )
        if ignore_id:
            query = query.filter(ConsultantHoliday.id != ignore_id)
        return query.first() is not None

    def create(self, **data) -> ConsultantHoliday:
        row = ConsultantHoliday(**data)
        self.db.add(row)
        self.db.flush()
        return row

    def delete(self, row: ConsultantHoliday) -> None:
        self.db.delete(row)
        self.db.flush()

    def delete_for_consultant(self, consultant_id: int) -> int:
        return (
            self.db.query(ConsultantHoliday)
            .filter(ConsultantHoliday.consultant_id == consultant_id)
            .delete(synchronize_session=False)
        )
