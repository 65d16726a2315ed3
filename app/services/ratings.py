"""
Denormalized rating caches on consultants and services.

rating_avg / ratings_count are only ever written here, from a single AVG/COUNT
over non-deleted reviews.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models import Consultant, ConsultantService
from app.repositories import ReviewRepository

logger = logging.getLogger(__name__)


def round_rating(value: float) -> float:
    """Two decimals, halves away from zero: 4.125 -> 4.13."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class RatingsAggregator:
    def __init__(self, db: Session):
        self.db = db
        self.reviews = ReviewRepository(db)

    def update_consultant_ratings(self, consultant_id: int, commit: bool = True) -> tuple[float, int]:
        return self._recompute(Consultant, consultant_id, "consultant_id", commit)

    def update_service_ratings(self, service_id: int, commit: bool = True) -> tuple[float, int]:
        return self._recompute(ConsultantService, service_id, "service_id", commit)

    def _recompute(self, model, entity_id: int, label: str, commit: bool) -> tuple[float, int]:
        """With commit=False the caller owns the transaction; failures still roll it back."""
        try:
            avg, count = self.reviews.aggregate(**{label: entity_id})
            avg = round_rating(avg)
            self.db.execute(
                update(model)
                .where(model.id == entity_id)
                .values(rating_avg=avg, ratings_count=count)
                .execution_options(synchronize_session="fetch")
            )
            if commit:
                self.db.commit()
        except Exception:
            logger.exception("failed to update ratings %s=%s", label, entity_id)
            self.db.rollback()
            raise
        logger.info("ratings recomputed %s=%s avg=%s count=%s", label, entity_id, avg, count)
        return avg, count
