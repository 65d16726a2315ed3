from __future__ import annotations

from enum import Enum


class UserType(str, Enum):
    CLIENT = "client"
    CONSULTANT = "consultant"
    ADMIN = "admin"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXPIRED = "expired"


class BookableType(str, Enum):
    CONSULTANT = "consultant"
    CONSULTANT_SERVICE = "consultant_service"


class CancellerType(str, Enum):
    USER = "user"
    ADMIN = "admin"


class ConsultationMethod(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    CHAT = "chat"
    IN_PERSON = "in_person"


class MessageType(str, Enum):
    TEXT = "text"
    ATTACHMENT = "attachment"
    MIXED = "mixed"


class MessageContext(str, Enum):
    IN_SESSION = "in_session"
    OUT_OF_SESSION = "out_of_session"


CANCELLABLE_STATUSES = {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value}


__all__ = [
    "UserType",
    "BookingStatus",
    "BookableType",
    "CancellerType",
    "ConsultationMethod",
    "MessageType",
    "MessageContext",
    "CANCELLABLE_STATUSES",
]
