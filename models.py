"""
Compatibility shim for flat `models` imports (scripts, alembic, tests).
Domain models live in `app.models.*`.
"""
from app.models import (  # noqa: F401,F403
    BookableType,
    Booking,
    BookingStatus,
    CancellerType,
    Consultant,
    ConsultantHoliday,
    ConsultantService,
    ConsultantWorkingHour,
    ConsultationMethod,
    Conversation,
    ConversationParticipant,
    Message,
    MessageAttachment,
    MessageContext,
    MessageType,
    Review,
    User,
    UserType,
    utcnow,
)
from database import Base  # noqa: F401

__all__ = [
    "Base",
    "utcnow",
    "BookableType",
    "BookingStatus",
    "CancellerType",
    "ConsultationMethod",
    "MessageContext",
    "MessageType",
    "UserType",
    "User",
    "Consultant",
    "ConsultantService",
    "ConsultantWorkingHour",
    "ConsultantHoliday",
    "Booking",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "MessageAttachment",
    "Review",
]
