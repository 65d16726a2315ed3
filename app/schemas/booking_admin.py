from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.enums import BookableType, BookingStatus, ConsultationMethod
from app.schemas.booking import BookingRead


class BookingListItem(BookingRead):
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    consultant_name: Optional[str] = None


class BookingListResponse(BaseModel):
    bookings: list[BookingListItem]
    total: int
    page: int
    per_page: int
    last_page: int


class BookingDetail(BookingListItem):
    conversation_id: Optional[int] = None


class AdminBookingCreate(BaseModel):
    client_id: int
    consultant_id: int
    bookable_type: BookableType
    bookable_id: Optional[int] = Field(None, description="Ignored for direct consultant bookings")
    start_at: datetime
    duration_minutes: Optional[int] = Field(None, ge=5, le=480)
    end_at: Optional[datetime] = Field(None, description="Used when duration_minutes is omitted")
    buffer_after_minutes: Optional[int] = Field(None, ge=0, le=60)
    price: Optional[Decimal] = Field(None, ge=0)
    consultation_method: Optional[ConsultationMethod] = None
    status: Optional[BookingStatus] = Field(None, description="pending/confirmed, defaults to confirmed")
    notes: Optional[str] = Field(None, max_length=1000)


class BookingUpdateRequest(BaseModel):
    start_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=5, le=480)
    end_at: Optional[datetime] = None
    buffer_after_minutes: Optional[int] = Field(None, ge=0, le=60)
    status: Optional[BookingStatus] = Field(None, description="pending/confirmed/completed/cancelled")
    notes: Optional[str] = Field(None, max_length=1000)


class ExpireSweepResponse(BaseModel):
    expired: int
