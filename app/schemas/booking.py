from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.enums import BookableType, BookingStatus, ConsultationMethod


class PersonRead(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None

    model_config = ConfigDict(from_attributes=True)


class PendingBookingCreate(BaseModel):
    consultant_id: int
    bookable_type: BookableType
    bookable_id: int
    start_at: datetime = Field(..., description="Local time in APP_TIMEZONE, on a 5-minute boundary")
    duration_minutes: Optional[int] = Field(None, ge=5, le=480, description="Required for direct consultant bookings")
    consultation_method: Optional[ConsultationMethod] = None
    notes: Optional[str] = Field(None, max_length=1000)


class CancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingRead(BaseModel):
    id: int
    client_id: int
    consultant_id: int
    bookable_type: BookableType
    bookable_id: int
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    buffer_after_minutes: int
    occupied_end_at: datetime
    status: BookingStatus
    expires_at: Optional[datetime] = None
    price: Optional[Decimal] = None
    consultation_method: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    cancelled_by_type: Optional[str] = None
    cancelled_by_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    bookings: List[BookingRead]
