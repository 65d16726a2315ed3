"""
Recurring sweep: move pending bookings whose hold has lapsed to expired.

Registered on the BackgroundScheduler in main.py when ENABLE_SCHEDULER is set.
"""
import logging

import database
from app.core.clock import SystemClock
from app.services.bookings import BookingService

logger = logging.getLogger(__name__)

EXPIRE_PENDING_JOB_ID = "expire_pending_bookings"


def run_expire_pending_job() -> int:
    db = database.SessionLocal()
    try:
        return BookingService(db, SystemClock()).expire_old_pending()
    except Exception:
        logger.exception("expire pending bookings job failed")
        return 0
    finally:
        db.close()
