"""
Rebuild the cached rating_avg / ratings_count columns from the reviews table.

Usage:
    python scripts/recalculate_ratings.py [--chunk 100] [--consultants-only | --services-only]
"""
from __future__ import annotations

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import database  # noqa: E402
from app.models import Consultant, ConsultantService  # noqa: E402
from app.services.ratings import RatingsAggregator  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("recalculate_ratings")


def _ids(db, model, chunk: int):
    """Yield ids of live rows in chunks; soft-deleted rows keep their frozen caches."""
    last_id = 0
    while True:
        rows = (
            db.query(model.id)
            .filter(model.id > last_id, model.deleted_at.is_(None))
            .order_by(model.id.asc())
            .limit(chunk)
            .all()
        )
        if not rows:
            return
        for (row_id,) in rows:
            yield row_id
        last_id = rows[-1][0]


def recalculate(db, model, update, label: str, chunk: int) -> tuple[int, int]:
    done = failed = 0
    for entity_id in _ids(db, model, chunk):
        try:
            update(entity_id)
            done += 1
        except Exception:
            # Already logged and rolled back by the aggregator; keep going.
            failed += 1
            logger.warning("skipped %s id=%s", label, entity_id)
    return done, failed


def main() -> int:
    parser = argparse.ArgumentParser(description="Recalculate consultant and service ratings")
    parser.add_argument("--chunk", type=int, default=100, help="Rows fetched per batch")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--consultants-only", action="store_true")
    group.add_argument("--services-only", action="store_true")
    args = parser.parse_args()
    load_dotenv()

    db = database.SessionLocal()
    failed_total = 0
    try:
        aggregator = RatingsAggregator(db)
        if not args.services_only:
            done, failed = recalculate(db, Consultant, aggregator.update_consultant_ratings, "consultant", args.chunk)
            failed_total += failed
            logger.info("Consultants recalculated: %s (failed: %s)", done, failed)
        if not args.consultants_only:
            done, failed = recalculate(
                db, ConsultantService, aggregator.update_service_ratings, "service", args.chunk
            )
            failed_total += failed
            logger.info("Services recalculated: %s (failed: %s)", done, failed)
    finally:
        db.close()
    return 1 if failed_total else 0


if __name__ == "__main__":
    sys.exit(main())
