"""
Fill consultant_service_id on reviews of service bookings that were stored without it,
then refresh the ratings of every service touched.

Usage:
    python scripts/backfill_review_service_ids.py [--chunk 100] [--dry-run]
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import database  # noqa: E402
from app.repositories import ReviewRepository  # noqa: E402
from app.services.ratings import RatingsAggregator  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("backfill_review_service_ids")


def main() -> int:
    parser = argparse.ArgumentParser(description="Backfill consultant_service_id on reviews")
    parser.add_argument("--chunk", type=int, default=100, help="Reviews updated per commit")
    parser.add_argument("--dry-run", action="store_true", help="Report what would change without writing")
    args = parser.parse_args()
    load_dotenv()

    db = database.SessionLocal()
    touched: set[int] = set()
    updated = 0
    try:
        repo = ReviewRepository(db)
        while True:
            query = repo.missing_service_ids()
            rows = query.all() if args.dry_run else query.limit(args.chunk).all()
            if not rows:
                break
            for review, booking in rows:
                logger.info("review id=%s -> service id=%s", review.id, booking.bookable_id)
                touched.add(booking.bookable_id)
                updated += 1
                if not args.dry_run:
                    review.consultant_service_id = booking.bookable_id
            if args.dry_run:
                break
            db.commit()

        if not args.dry_run:
            aggregator = RatingsAggregator(db)
            for service_id in sorted(touched):
                try:
                    aggregator.update_service_ratings(service_id)
                except Exception:
                    logger.warning("rating refresh failed for service id=%s", service_id)
    finally:
        db.close()
    logger.info("Reviews %s: %s, services affected: %s", "to update" if args.dry_run else "updated", updated, len(touched))
    return 0


if __name__ == "__main__":
    sys.exit(main())
