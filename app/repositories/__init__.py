from app.repositories.bookings import BookingRepository
from app.repositories.chat import ConversationRepository, MessageRepository
from app.repositories.reviews import ReviewRepository
from app.repositories.schedule import HolidayRepository, WorkingHourRepository

__all__ = [
    "BookingRepository",
    "ConversationRepository",
    "HolidayRepository",
    "MessageRepository",
    "ReviewRepository",
    "WorkingHourRepository",
]
