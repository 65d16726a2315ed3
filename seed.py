import logging
import os
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import Base, SessionLocal, engine
from app.models import (
    ConsultationMethod,
    Consultant,
    ConsultantService,
    ConsultantWorkingHour,
    User,
    UserType,
)

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = "admin@example.com"
DEMO_CLIENT_EMAIL = "client@example.com"
DEMO_CONSULTANT_EMAIL = "consultant@example.com"

# Sunday through Thursday, 09:00-17:00.
DEMO_WORKING_DAYS = (0, 1, 2, 3, 4)


def get_or_create_user(session: Session, email: str, first_name: str, user_type: UserType) -> User:
    user = session.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email, first_name=first_name, last_name="Demo", user_type=user_type.value)
        session.add(user)
        session.flush()
    return user


def seed_demo_data() -> None:
    """
    Seed one admin, one client and one consultant with a service and weekly hours.
    Safe to run repeatedly.
    """
    if not os.getenv("SEED_DEMO_DATA"):
        logger.info("SEED_DEMO_DATA is not set; skipping demo seed")
        return

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as exc:
        logger.warning("Skipping demo seed; failed to create tables: %s", exc)
        return

    try:
        with SessionLocal() as db:
            get_or_create_user(db, DEMO_ADMIN_EMAIL, "Admin", UserType.ADMIN)
            get_or_create_user(db, DEMO_CLIENT_EMAIL, "Client", UserType.CLIENT)
            consultant_user = get_or_create_user(db, DEMO_CONSULTANT_EMAIL, "Consultant", UserType.CONSULTANT)

            consultant = db.query(Consultant).filter(Consultant.user_id == consultant_user.id).first()
            if consultant is None:
                consultant = Consultant(
                    user_id=consultant_user.id,
                    title="Business advisor",
                    buffer=15,
                    price_per_hour=Decimal("200.00"),
                )
                db.add(consultant)
                db.flush()

            if not db.query(ConsultantService).filter(ConsultantService.consultant_id == consultant.id).count():
                db.add(
                    ConsultantService(
                        consultant_id=consultant.id,
                        title="Strategy session",
                        duration_minutes=45,
                        buffer=10,
                        price=Decimal("150.00"),
                        consultation_method=ConsultationMethod.VIDEO.value,
                    )
                )

            if not db.query(ConsultantWorkingHour).filter(ConsultantWorkingHour.consultant_id == consultant.id).count():
                db.add_all(
                    ConsultantWorkingHour(
                        consultant_id=consultant.id, day_of_week=day, start_time="09:00", end_time="17:00"
                    )
                    for day in DEMO_WORKING_DAYS
                )
            db.commit()
            logger.info("demo data ready consultant_id=%s", consultant.id)
    except SQLAlchemyError as exc:
        logger.warning("Skipping demo seed due to database error: %s", exc)
