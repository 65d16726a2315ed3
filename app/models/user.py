from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from database import Base
from app.models.base import utcnow
from app.models.enums import UserType


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, unique=True)
    user_type = Column(String(20), nullable=False, default=UserType.CLIENT.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    consultant = relationship("Consultant", back_populates="user", uselist=False)
    bookings = relationship("Booking", back_populates="client", foreign_keys="Booking.client_id")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in [self.first_name, self.last_name] if part)

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN.value


__all__ = ["User"]
