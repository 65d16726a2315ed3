from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from app.models import Booking, Review


class ReviewRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, review_id: int, with_deleted: bool = False) -> Optional[Review]:
        query = self.db.query(Review).filter(Review.id == review_id)
        if not with_deleted:
            query = query.filter(Review.deleted_at.is_(None))
        return query.first()

    def booking_has_review(self, booking_id: int) -> bool:
        # Soft-deleted reviews still count.
        return self.db.query(Review.id).filter(Review.booking_id == booking_id).first() is not None

    def query(self) -> Query:
        return (
            self.db.query(Review)
            .options(joinedload(Review.client), joinedload(Review.consultant_service))
            .filter(Review.deleted_at.is_(None))
        )

    def for_consultant(self, consultant_id: int) -> Query:
        return self.query().filter(Review.consultant_id == consultant_id).order_by(Review.created_at.desc())

    def for_client(self, client_id: int) -> Query:
        return self.query().filter(Review.client_id == client_id).order_by(Review.created_at.desc())

    def for_service(self, service_id: int) -> Query:
        return self.query().filter(Review.consultant_service_id == service_id).order_by(Review.created_at.desc())

    def ordered_by_rating(self) -> Query:
        return self.query().order_by(Review.rating.desc(), Review.created_at.desc())

    def create(self, **data) -> Review:
        review = Review(**data)
        self.db.add(review)
        self.db.flush()
        return review

    def aggregate(self, *, consultant_id: Optional[int] = None, service_id: Optional[int] = None) -> tuple[float, int]:
        """AVG/COUNT over non-deleted reviews in one query; (0.0, 0) when there are none."""
        query = self.db.query(func.avg(Review.rating), func.count(Review.id)).filter(Review.deleted_at.is_(None))
        if consultant_id is not None:
            query = query.filter(Review.consultant_id == consultant_id)
        if service_id is not None:
            query = query.filter(Review.consultant_service_id == service_id)
        avg, count = query.one()
        return float(avg or 0), int(count or 0)

    def missing_service_ids(self) -> Query:
        """Reviews of service bookings that were stored without consultant_service_id."""
        return (
            self.db.query(Review, Booking)
            .join(Booking, Review.booking_id == Booking.id)
            .filter(
                Review.consultant_service_id.is_(None),
                Booking.bookable_type == "consultant_service",
            )
            .order_by(Review.id.asc())
        )
