from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.core import errors
from app.core.clock import Clock
from app.core.errors import BookingValidationError, ForbiddenError, NotFoundError
from app.models import BookableType, Booking, BookingStatus, Review, User
from app.repositories import ReviewRepository
from app.services.ratings import RatingsAggregator

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _check_rating(rating: int) -> None:
    if rating is None or not MIN_RATING <= int(rating) <= MAX_RATING:
        raise BookingValidationError(errors.RATING_OUT_OF_RANGE, "Rating must be between 1 and 5", "rating")


def service_id_for_booking(booking: Booking) -> Optional[int]:
    if booking.bookable_type == BookableType.CONSULTANT_SERVICE.value:
        return booking.bookable_id
    return None


class ReviewService:
    """Review lifecycle; every change refreshes the affected rating caches in the same transaction."""

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.repo = ReviewRepository(db)
        self.ratings = RatingsAggregator(db)

    def create_review(
        self,
        booking_id: int,
        client_id: int,
        rating: int,
        comment: Optional[str] = None,
        consultant_service_id: Optional[int] = None,
    ) -> Review:
        booking = self.db.query(Booking).filter(Booking.id == booking_id, Booking.deleted_at.is_(None)).first()
        if not booking:
            raise NotFoundError("Booking", booking_id)
        if booking.client_id != client_id:
            raise ForbiddenError("You cannot review a booking that is not yours", reason=errors.NOT_OWNER)
        if booking.status != BookingStatus.COMPLETED.value:
            raise BookingValidationError(
                errors.BOOKING_NOT_COMPLETED, "Only completed bookings can be reviewed", "booking_id"
            )
        if self.repo.booking_has_review(booking.id):
            raise BookingValidationError(errors.DUPLICATE_REVIEW, "This booking has already been reviewed", "booking_id")
        _check_rating(rating)

        try:
            review = self.repo.create(
                booking_id=booking.id,
                consultant_id=booking.consultant_id,
                client_id=booking.client_id,
                consultant_service_id=consultant_service_id or service_id_for_booking(booking),
                rating=int(rating),
                comment=comment,
            )
            self._refresh(review.consultant_id, review.consultant_service_id)
            self.db.commit()
        except IntegrityError:
            # A concurrent request reviewed the booking first; the unique booking_id decides.
            self.db.rollback()
            if not self.repo.booking_has_review(booking.id):
                raise
            raise BookingValidationError(errors.DUPLICATE_REVIEW, "This booking has already been reviewed", "booking_id")
        except Exception:
            self.db.rollback()
            raise
        logger.info("review created id=%s booking_id=%s rating=%s", review.id, booking.id, review.rating)
        return review

    def update_review(
        self,
        review_id: int,
        actor: User,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
        consultant_id: Optional[int] = None,
        consultant_service_id: Optional[int] = None,
    ) -> Review:
        review = self._owned(review_id, actor)
        if rating is not None:
            _check_rating(rating)
        previous_consultant_id = review.consultant_id
        previous_service_id = review.consultant_service_id
        try:
            if rating is not None:
                review.rating = int(rating)
            if comment is not None:
                review.comment = comment
            # Re-pointing a review is an admin correction.
            if actor.is_admin and consultant_id is not None:
                review.consultant_id = consultant_id
            if actor.is_admin and consultant_service_id is not None:
                review.consultant_service_id = consultant_service_id
            self.db.flush()

            self._refresh(review.consultant_id, review.consultant_service_id)
            if previous_consultant_id != review.consultant_id:
                self.ratings.update_consultant_ratings(previous_consultant_id, commit=False)
            if previous_service_id and previous_service_id != review.consultant_service_id:
                self.ratings.update_service_ratings(previous_service_id, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("review updated id=%s rating=%s", review.id, review.rating)
        return review

    def delete_review(self, review_id: int, actor: User) -> None:
        review = self._owned(review_id, actor)
        try:
            review.deleted_at = self.clock.now()
            self.db.flush()
            self._refresh(review.consultant_id, review.consultant_service_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("review deleted id=%s", review_id)

    def restore_review(self, review_id: int, actor: User) -> Review:
        review = self.repo.get(review_id, with_deleted=True)
        if not review:
            raise NotFoundError("Review", review_id)
        if not actor.is_admin and review.client_id != actor.id:
            raise ForbiddenError("You cannot restore this review", reason=errors.NOT_OWNER)
        if review.deleted_at is None:
            return review
        try:
            review.deleted_at = None
            self.db.flush()
            self._refresh(review.consultant_id, review.consultant_service_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("review restored id=%s", review_id)
        return review

    def find(self, review_id: int) -> Optional[Review]:
        return self.repo.get(review_id)

    def consultant_reviews(self, consultant_id: int) -> Query:
        return self.repo.for_consultant(consultant_id)

    def client_reviews(self, client_id: int) -> Query:
        return self.repo.for_client(client_id)

    def service_reviews(self, service_id: int) -> Query:
        return self.repo.for_service(service_id)

    def all_by_rating(self) -> Query:
        return self.repo.ordered_by_rating()

    def _owned(self, review_id: int, actor: User) -> Review:
        review = self.repo.get(review_id)
        if not review:
            raise NotFoundError("Review", review_id)
        if not actor.is_admin and review.client_id != actor.id:
            raise ForbiddenError("You cannot change a review that is not yours", reason=errors.NOT_OWNER)
        return review

    def _refresh(self, consultant_id: int, service_id: Optional[int]) -> None:
        self.ratings.update_consultant_ratings(consultant_id, commit=False)
        if service_id:
            self.ratings.update_service_ratings(service_id, commit=False)
