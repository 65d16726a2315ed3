"""
Domain errors raised by the booking, chat and review services.
Routes stay thin: main.py maps these onto HTTP responses in one place.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

# ---------------------------------------------------------------------------
# Reason codes carried by validation failures
# ---------------------------------------------------------------------------

HOLIDAY_CONFLICT = "holiday_conflict"
OUTSIDE_WORKING_HOURS = "outside_working_hours"
SLOT_UNAVAILABLE = "slot_unavailable"
INVALID_GRANULARITY = "invalid_granularity"
INVALID_BOOKABLE_TYPE = "invalid_bookable_type"
BOOKABLE_NOT_FOUND = "bookable_not_found"
BOOKABLE_MISMATCH = "bookable_mismatch"
DURATION_REQUIRED = "duration_required"
CONSULTATION_METHOD_REQUIRED = "consultation_method_required"
INVALID_STATUS = "invalid_status"
BOOKING_EXPIRED = "booking_expired"
RATING_OUT_OF_RANGE = "rating_out_of_range"
DUPLICATE_REVIEW = "duplicate_review"
BOOKING_NOT_COMPLETED = "booking_not_completed"
INVALID_SCHEDULE = "invalid_schedule"
SCHEDULE_OVERLAP = "schedule_overlap"
HOLIDAY_IN_PAST = "holiday_in_past"
DUPLICATE_HOLIDAY = "duplicate_holiday"
QUOTA_EXCEEDED = "quota_exceeded"
INVALID_ATTACHMENT = "invalid_attachment"
EMPTY_MESSAGE = "empty_message"
MESSAGE_TOO_LONG = "message_too_long"
NOT_PARTICIPANT = "not_participant"
NOT_OWNER = "not_owner"
MESSAGING_NOT_ALLOWED = "messaging_not_allowed"

STATUS_VALIDATION = 422
STATUS_CONFLICT = 409
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404

# Reasons that describe a lost race for a slot rather than bad input.
CONFLICT_REASONS = {SLOT_UNAVAILABLE}


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str, reason: str | None = None, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.field = field

    def to_dict(self) -> dict:
        return {"detail": self.message, "reason": self.reason, "field": self.field}


class BookingValidationError(DomainError):
    """Business-rule failure with a machine-readable reason code."""

    status_code = STATUS_VALIDATION

    def __init__(self, reason: str, message: str, field: str | None = None) -> None:
        super().__init__(message, reason=reason, field=field)
        if reason in CONFLICT_REASONS:
            self.status_code = STATUS_CONFLICT


class ForbiddenError(DomainError):
    status_code = STATUS_FORBIDDEN

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message, reason=reason)


class NotFoundError(DomainError):
    status_code = STATUS_NOT_FOUND

    def __init__(self, entity: str, entity_id: object | None = None) -> None:
        message = f"{entity} not found"
        super().__init__(message, reason="not_found")
        self.entity = entity
        self.entity_id = entity_id


async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


__all__ = [
    "DomainError",
    "BookingValidationError",
    "ForbiddenError",
    "NotFoundError",
    "domain_error_handler",
]
