"""
What a booking is made against: a consultant directly or one of their services.

The (bookable_type, bookable_id) pair is resolved through BOOKABLE_LOADERS.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from app.core import errors
from app.core.config import settings
from app.core.errors import BookingValidationError
from app.models import BookableType, Consultant, ConsultantService
from app.services import booking_rules

Bookable = Union[Consultant, ConsultantService]


def _load_consultant(db: Session, bookable_id: int) -> Optional[Consultant]:
    return db.query(Consultant).filter(Consultant.id == bookable_id, Consultant.deleted_at.is_(None)).first()


def _load_service(db: Session, bookable_id: int) -> Optional[ConsultantService]:
    return (
        db.query(ConsultantService)
        .filter(ConsultantService.id == bookable_id, ConsultantService.deleted_at.is_(None))
        .first()
    )


BOOKABLE_LOADERS: dict[str, Callable[[Session, int], Optional[Bookable]]] = {
    BookableType.CONSULTANT.value: _load_consultant,
    BookableType.CONSULTANT_SERVICE.value: _load_service,
}


@dataclass(frozen=True)
class BookingTerms:
    duration_minutes: int
    buffer_after_minutes: int
    price: Decimal
    consultation_method: Optional[str]


def normalize_bookable_type(value) -> str:
    raw = value.value if isinstance(value, BookableType) else str(value or "")
    if raw not in BOOKABLE_LOADERS:
        raise BookingValidationError(errors.INVALID_BOOKABLE_TYPE, "Invalid bookable type", field="bookable_type")
    return raw


def resolve_bookable(db: Session, bookable_type, bookable_id: int, consultant_id: int) -> Bookable:
    """Load the bookable and check it belongs to the consultant."""
    kind = normalize_bookable_type(bookable_type)
    bookable = BOOKABLE_LOADERS[kind](db, bookable_id)
    if bookable is None:
        raise BookingValidationError(errors.BOOKABLE_NOT_FOUND, "Service or consultant not found", "bookable_id")
    owner_id = bookable.consultant_id if kind == BookableType.CONSULTANT_SERVICE.value else bookable.id
    if owner_id != consultant_id:
        raise BookingValidationError(
            errors.BOOKABLE_MISMATCH, "Bookable does not belong to this consultant", "bookable_id"
        )
    return bookable


def resolve_duration_and_buffer(
    bookable_type: str, bookable: Bookable, consultant: Consultant, duration_minutes: Optional[int]
) -> tuple[int, int]:
    if bookable_type == BookableType.CONSULTANT_SERVICE.value:
        buffer = bookable.buffer if bookable.buffer is not None else consultant.buffer
        return bookable.duration_minutes, buffer or 0
    if duration_minutes is None:
        raise BookingValidationError(
            errors.DURATION_REQUIRED, "Duration is required for a direct consultant booking", "duration_minutes"
        )
    return duration_minutes, consultant.buffer or 0


def calculate_price(bookable_type: str, bookable: Bookable, consultant: Consultant, duration_minutes: int) -> Decimal:
    if bookable_type == BookableType.CONSULTANT_SERVICE.value:
        return booking_rules.round_money(bookable.price)
    return booking_rules.hourly_price(consultant.price_per_hour, duration_minutes)


def resolve_consultation_method(bookable_type: str, bookable: Bookable, requested: Optional[str]) -> str:
    if bookable_type == BookableType.CONSULTANT_SERVICE.value:
        return bookable.consultation_method
    if not requested:
        raise BookingValidationError(
            errors.CONSULTATION_METHOD_REQUIRED,
            "Consultation method is required for a direct consultant booking",
            "consultation_method",
        )
    return requested.value if hasattr(requested, "value") else requested


def resolve_terms(
    bookable_type: str,
    bookable: Bookable,
    consultant: Consultant,
    duration_minutes: Optional[int],
    consultation_method: Optional[str],
) -> BookingTerms:
    duration, buffer = resolve_duration_and_buffer(bookable_type, bookable, consultant, duration_minutes)
    return BookingTerms(
        duration_minutes=duration,
        buffer_after_minutes=buffer,
        price=calculate_price(bookable_type, bookable, consultant, duration),
        consultation_method=resolve_consultation_method(bookable_type, bookable, consultation_method),
    )


def listing_duration_and_buffer(
    db: Session,
    consultant: Consultant,
    bookable_type: Optional[str] = None,
    bookable_id: Optional[int] = None,
    duration_minutes: Optional[int] = None,
) -> tuple[int, int]:
    """Duration/buffer for slot listing: unknown services fall back to the consultant defaults."""
    default_buffer = consultant.buffer or 0
    if bookable_type == BookableType.CONSULTANT_SERVICE.value and bookable_id:
        service = _load_service(db, bookable_id)
        if service is not None:
            buffer = service.buffer if service.buffer is not None else default_buffer
            return service.duration_minutes or settings.default_direct_duration_minutes, buffer
    return duration_minutes or settings.default_direct_duration_minutes, default_buffer
