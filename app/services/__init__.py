from . import availability, bookables, booking_rules, bookings, chat, ratings, read_state, reviews, schedule, storage

__all__ = [
    "availability",
    "bookables",
    "booking_rules",
    "bookings",
    "chat",
    "ratings",
    "read_state",
    "reviews",
    "schedule",
    "storage",
]
