import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from app.api import (  # noqa: E402
    admin_bookings,
    availability,
    bookings,
    conversations,
    reviews,
    schedule,
)
from app.core.config import settings  # noqa: E402
from app.core.errors import DomainError, domain_error_handler  # noqa: E402
from app.scheduler.expire_pending_job import EXPIRE_PENDING_JOB_ID, run_expire_pending_job  # noqa: E402
from database import Base, engine  # noqa: E402
import models  # noqa: F401,E402
from seed import seed_demo_data  # noqa: E402

logger = logging.getLogger(__name__)

default_origins = ["http://localhost:3000"]
cors_origins = os.getenv("CORS_ORIGINS")
env_origins = [origin.strip() for origin in cors_origins.split(",") if origin.strip()] if cors_origins else []
origins = list({*default_origins, *env_origins})

app = FastAPI(title="Consultation Booking API", version="0.1.0")

# Sweeps lapsed pending holds; availability already ignores them, this only tidies statuses.
_scheduler = BackgroundScheduler()


def _should_create_all() -> bool:
    env = (os.getenv("APP_ENV") or "").lower()
    enable_flag = os.getenv("ENABLE_CREATE_ALL", "").lower() in {"1", "true", "yes"}
    if engine.url.get_backend_name() == "sqlite":
        return True
    if env in {"local", "dev", "development"} or enable_flag:
        return True
    return False


@app.on_event("startup")
def on_startup() -> None:
    if _should_create_all():
        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as exc:
            logger.warning("Base.metadata.create_all failed; continuing without fatal error: %s", exc)
    else:
        logger.info(
            "Skipping Base.metadata.create_all on %s (APP_ENV=%s); run `alembic upgrade head` instead.",
            engine.url.get_backend_name(),
            os.getenv("APP_ENV"),
        )
    seed_demo_data()

    if settings.enable_scheduler and not _scheduler.running:
        _scheduler.add_job(
            run_expire_pending_job,
            "interval",
            seconds=settings.expire_sweep_interval_seconds,
            id=EXPIRE_PENDING_JOB_ID,
            replace_existing=True,
        )
        _scheduler.start()
        app.state.scheduler = _scheduler
        logger.info("expire sweep scheduled every %ss", settings.expire_sweep_interval_seconds)


@app.on_event("shutdown")
def on_shutdown() -> None:
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(DomainError, domain_error_handler)

app.include_router(bookings.router, prefix="/api", tags=["bookings"])
app.include_router(availability.router, prefix="/api", tags=["availability"])
app.include_router(schedule.router, prefix="/api", tags=["schedule"])
app.include_router(conversations.router, prefix="/api", tags=["conversations"])
app.include_router(reviews.router, prefix="/api", tags=["reviews"])
app.include_router(admin_bookings.router, prefix="/api", tags=["admin"])


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
