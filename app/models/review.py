from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship

from database import Base
from app.models.base import SoftDeleteMixin, TimestampMixin


class Review(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "reviews"
    __table_args__ = (
        Index("ix_reviews_consultant_created", "consultant_id", "created_at"),
        Index("ix_reviews_client_created", "client_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Unique across soft-deleted rows too: a booking is reviewed at most once, ever.
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    consultant_id = Column(Integer, ForeignKey("consultants.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    consultant_service_id = Column(Integer, ForeignKey("consultant_services.id"), nullable=True, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    booking = relationship("Booking", back_populates="review")
    consultant = relationship("Consultant")
    client = relationship("User")
    consultant_service = relationship("ConsultantService")


__all__ = ["Review"]
