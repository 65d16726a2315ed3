from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from database import Base
from app.models.base import SoftDeleteMixin, TimestampMixin
from app.models.enums import BookableType, BookingStatus, CANCELLABLE_STATUSES


class Booking(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_consultant_start", "consultant_id", "start_at"),
        Index("ix_bookings_consultant_occupied_end", "consultant_id", "occupied_end_at"),
        Index("ix_bookings_consultant_status", "consultant_id", "status"),
        Index("ix_bookings_status_expires", "status", "expires_at"),
        Index("ix_bookings_client_status", "client_id", "status"),
        Index("ix_bookings_bookable", "bookable_type", "bookable_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    consultant_id = Column(Integer, ForeignKey("consultants.id"), nullable=False)

    # Tagged union: (consultant, consultants.id) | (consultant_service, consultant_services.id)
    bookable_type = Column(String(32), nullable=False)
    bookable_id = Column(Integer, nullable=False)

    # Local wall-clock times in the application timezone.
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    # Snapshot taken at creation; later buffer changes on the consultant/service never touch it.
    buffer_after_minutes = Column(Integer, nullable=False, default=0)
    # end_at + buffer_after_minutes, persisted so overlap queries stay dialect-neutral.
    occupied_end_at = Column(DateTime, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    expires_at = Column(DateTime, nullable=True)

    price = Column(Numeric(10, 2), nullable=True)
    consultation_method = Column(String(20), nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    cancelled_by_type = Column(String(20), nullable=True)
    cancelled_by_id = Column(Integer, nullable=True)

    notes = Column(Text, nullable=True)

    client = relationship("User", back_populates="bookings", foreign_keys=[client_id])
    consultant = relationship("Consultant", back_populates="bookings")
    conversation = relationship("Conversation", back_populates="booking", uselist=False)
    review = relationship("Review", back_populates="booking", uselist=False)

    @property
    def occupied_end(self) -> datetime:
        return self.end_at + timedelta(minutes=self.buffer_after_minutes or 0)

    @property
    def session_end(self) -> datetime:
        return self.start_at + timedelta(minutes=self.duration_minutes)

    @property
    def is_service_booking(self) -> bool:
        return self.bookable_type == BookableType.CONSULTANT_SERVICE.value

    def set_times(self, start_at: datetime, duration_minutes: int, buffer_after_minutes: int) -> None:
        self.start_at = start_at
        self.duration_minutes = duration_minutes
        self.buffer_after_minutes = buffer_after_minutes
        self.end_at = start_at + timedelta(minutes=duration_minutes)
        self.occupied_end_at = self.end_at + timedelta(minutes=buffer_after_minutes)

    def is_blocking(self, now: datetime) -> bool:
        if self.status == BookingStatus.CONFIRMED.value:
            return True
        return self.status == BookingStatus.PENDING.value and self.expires_at is not None and self.expires_at > now

    def can_be_cancelled(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def can_be_confirmed(self, now: datetime) -> bool:
        return self.status == BookingStatus.PENDING.value and self.expires_at is not None and self.expires_at > now


__all__ = ["Booking"]
