from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from database import Base
from app.models.base import SoftDeleteMixin, TimestampMixin


class Consultant(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "consultants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    title = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    # Minutes kept free after every session.
    buffer = Column(Integer, nullable=True, default=0)
    price_per_hour = Column(Numeric(10, 2), nullable=True)
    # Denormalized caches maintained by the ratings aggregator only.
    rating_avg = Column(Float, nullable=False, default=0.0)
    ratings_count = Column(Integer, nullable=False, default=0)

    user = relationship("User", back_populates="consultant")
    services = relationship("ConsultantService", back_populates="consultant", cascade="all, delete-orphan")
    working_hours = relationship("ConsultantWorkingHour", back_populates="consultant", cascade="all, delete-orphan")
    holidays = relationship("ConsultantHoliday", back_populates="consultant", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="consultant")


class ConsultantService(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "consultant_services"

    id = Column(Integer, primary_key=True, autoincrement=True)
    consultant_id = Column(Integer, ForeignKey("consultants.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    buffer = Column(Integer, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    consultation_method = Column(String(20), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    rating_avg = Column(Float, nullable=False, default=0.0)
    ratings_count = Column(Integer, nullable=False, default=0)

    consultant = relationship("Consultant", back_populates="services")


class ConsultantWorkingHour(TimestampMixin, Base):
    __tablename__ = "consultant_working_hours"
    __table_args__ = (
        UniqueConstraint("consultant_id", "day_of_week", "start_time", "end_time", name="uq_consultant_day_start_end"),
        Index("ix_working_hours_consultant_day", "consultant_id", "day_of_week"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    consultant_id = Column(Integer, ForeignKey("consultants.id"), nullable=False)
    # 0 = Sunday ... 6 = Saturday
    day_of_week = Column(Integer, nullable=False)
    # HH:MM, minute precision
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    consultant = relationship("Consultant", back_populates="working_hours")


class ConsultantHoliday(TimestampMixin, Base):
    __tablename__ = "consultant_holidays"
    __table_args__ = (UniqueConstraint("consultant_id", "holiday_date", name="uq_consultant_holiday_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    consultant_id = Column(Integer, ForeignKey("consultants.id"), nullable=False, index=True)
    holiday_date = Column(Date, nullable=False)
    name = Column(String(150), nullable=True)

    consultant = relationship("Consultant", back_populates="holidays")


__all__ = ["Consultant", "ConsultantService", "ConsultantWorkingHour", "ConsultantHoliday"]
