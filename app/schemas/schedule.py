from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkingHourBase(BaseModel):
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    is_active: bool = True


class WorkingHourCreate(WorkingHourBase):
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday ... 6=Saturday")


class WorkingHourUpdate(BaseModel):
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    is_active: Optional[bool] = None


class WorkingHourRead(BaseModel):
    id: int
    consultant_id: int
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class WeeklyScheduleReplace(BaseModel):
    weekly_schedule: Dict[int, List[WorkingHourBase]] = Field(
        ..., description="day_of_week -> intervals; days left out end up with no hours"
    )


class WeeklyScheduleResponse(BaseModel):
    consultant_id: int
    days: Dict[int, List[WorkingHourRead]]


class HolidayCreate(BaseModel):
    holiday_date: str = Field(..., description="YYYY-MM-DD, today or later")
    name: Optional[str] = Field(None, max_length=150)


class HolidayUpdate(BaseModel):
    holiday_date: Optional[str] = None
    name: Optional[str] = Field(None, max_length=150)


class HolidayRead(BaseModel):
    id: int
    consultant_id: int
    holiday_date: date
    name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class HolidaysReplace(BaseModel):
    holidays: List[HolidayCreate]
