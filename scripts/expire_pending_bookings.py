"""
Expire pending bookings whose hold has lapsed. Cron-friendly one-shot variant of the in-process sweep.

Usage:
    python scripts/expire_pending_bookings.py
"""
import argparse
import logging
import os
import sys

from dotenv import load_dotenv

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import database  # noqa: E402
from app.core.clock import SystemClock  # noqa: E402
from app.services.bookings import BookingService  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("expire_pending_bookings")


def main() -> int:
    argparse.ArgumentParser(description=__doc__).parse_args()
    load_dotenv()

    db = database.SessionLocal()
    try:
        expired = BookingService(db, SystemClock()).expire_old_pending()
    finally:
        db.close()
    logger.info("Expired %s pending bookings", expired)
    return 0


if __name__ == "__main__":
    sys.exit(main())
