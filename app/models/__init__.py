from database import Base
from app.models.base import SoftDeleteMixin, TimestampMixin, utcnow
from app.models.enums import (
    BookableType,
    BookingStatus,
    CancellerType,
    ConsultationMethod,
    MessageContext,
    MessageType,
    UserType,
)
from app.models.user import User
from app.models.consultant import Consultant, ConsultantHoliday, ConsultantService, ConsultantWorkingHour
from app.models.booking import Booking
from app.models.conversation import Conversation, ConversationParticipant, Message, MessageAttachment
from app.models.review import Review

__all__ = [
    "Base",
    "SoftDeleteMixin",
    "TimestampMixin",
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
