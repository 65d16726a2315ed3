from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.api.deps import current_user, ensure_can_manage
from app.core.clock import Clock, get_clock
from app.models import User
from app.schemas.schedule import (
    HolidayCreate,
    HolidayRead,
    HolidaysReplace,
    HolidayUpdate,
    WeeklyScheduleReplace,
    WeeklyScheduleResponse,
    WorkingHourCreate,
    WorkingHourRead,
    WorkingHourUpdate,
)
from app.services.schedule import HolidayService, WorkingHourService
from database import get_db

router = APIRouter()


def _weekly(consultant_id: int, service: WorkingHourService) -> WeeklyScheduleResponse:
    grouped = service.grouped_by_day(consultant_id, only_active=False)
    return WeeklyScheduleResponse(
        consultant_id=consultant_id,
        days={day: [WorkingHourRead.model_validate(row) for row in rows] for day, rows in grouped.items()},
    )


# --- working hours ---------------------------------------------------------


@router.get("/consultants/{consultant_id}/working-hours", response_model=WeeklyScheduleResponse)
def get_working_hours(consultant_id: int, db: Session = Depends(get_db)) -> WeeklyScheduleResponse:
    return _weekly(consultant_id, WorkingHourService(db))


@router.put("/consultants/{consultant_id}/working-hours", response_model=WeeklyScheduleResponse)
def replace_working_hours(
    consultant_id: int,
    payload: WeeklyScheduleReplace,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> WeeklyScheduleResponse:
    """Replace the whole week at once; days not in the payload end up empty."""
    ensure_can_manage(consultant_id, user, db)
    service = WorkingHourService(db)
    week = {day: [item.model_dump() for item in items] for day, items in payload.weekly_schedule.items()}
    service.replace_weekly_schedule(consultant_id, week)
    return _weekly(consultant_id, service)


@router.post("/consultants/{consultant_id}/working-hours", response_model=WorkingHourRead, status_code=201)
def create_working_hour(
    consultant_id: int,
    payload: WorkingHourCreate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> WorkingHourRead:
    ensure_can_manage(consultant_id, user, db)
    row = WorkingHourService(db).create(
        consultant_id, payload.day_of_week, payload.start_time, payload.end_time, payload.is_active
    )
    return WorkingHourRead.model_validate(row)


@router.patch("/consultants/{consultant_id}/working-hours/{working_hour_id}", response_model=WorkingHourRead)
def update_working_hour(
    consultant_id: int,
    working_hour_id: int,
    payload: WorkingHourUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> WorkingHourRead:
    ensure_can_manage(consultant_id, user, db)
    changes = payload.model_dump(exclude_unset=True)
    row = WorkingHourService(db).update(working_hour_id, consultant_id, **changes)
    return WorkingHourRead.model_validate(row)


@router.post("/consultants/{consultant_id}/working-hours/{working_hour_id}/activate", response_model=WorkingHourRead)
def activate_working_hour(
    consultant_id: int,
    working_hour_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> WorkingHourRead:
    ensure_can_manage(consultant_id, user, db)
    return WorkingHourRead.model_validate(WorkingHourService(db).activate(working_hour_id, consultant_id))


@router.post(
    "/consultants/{consultant_id}/working-hours/{working_hour_id}/deactivate", response_model=WorkingHourRead
)
def deactivate_working_hour(
    consultant_id: int,
    working_hour_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> WorkingHourRead:
    ensure_can_manage(consultant_id, user, db)
    return WorkingHourRead.model_validate(WorkingHourService(db).deactivate(working_hour_id, consultant_id))


@router.delete("/consultants/{consultant_id}/working-hours/{working_hour_id}", status_code=204)
def delete_working_hour(
    consultant_id: int,
    working_hour_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
) -> Response:
    ensure_can_manage(consultant_id, user, db)
    WorkingHourService(db).delete(working_hour_id, consultant_id)
    return Response(status_code=204)


# --- holidays --------------------------------------------------------------


@router.get("/consultants/{consultant_id}/holidays", response_model=List[HolidayRead])
def list_holidays(
    consultant_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> List[HolidayRead]:
    rows = HolidayService(db, clock).all_for_consultant(consultant_id)
    return [HolidayRead.model_validate(row) for row in rows]


@router.put("/consultants/{consultant_id}/holidays", response_model=List[HolidayRead])
def replace_holidays(
    consultant_id: int,
    payload: HolidaysReplace,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> List[HolidayRead]:
    ensure_can_manage(consultant_id, user, db)
    rows = HolidayService(db, clock).replace_holidays(consultant_id, [item.model_dump() for item in payload.holidays])
    return [HolidayRead.model_validate(row) for row in rows]


@router.post("/consultants/{consultant_id}/holidays", response_model=HolidayRead, status_code=201)
def create_holiday(
    consultant_id: int,
    payload: HolidayCreate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> HolidayRead:
    ensure_can_manage(consultant_id, user, db)
    row = HolidayService(db, clock).create(consultant_id, payload.holiday_date, payload.name)
    return HolidayRead.model_validate(row)


@router.patch("/consultants/{consultant_id}/holidays/{holiday_id}", response_model=HolidayRead)
def update_holiday(
    consultant_id: int,
    holiday_id: int,
    payload: HolidayUpdate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> HolidayRead:
    ensure_can_manage(consultant_id, user, db)
    row = HolidayService(db, clock).update(holiday_id, consultant_id, **payload.model_dump(exclude_unset=True))
    return HolidayRead.model_validate(row)


@router.delete("/consultants/{consultant_id}/holidays/{holiday_id}", status_code=204)
def delete_holiday(
    consultant_id: int,
    holiday_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> Response:
    ensure_can_manage(consultant_id, user, db)
    HolidayService(db, clock).delete(holiday_id, consultant_id)
    return Response(status_code=204)
