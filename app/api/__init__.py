# FastAPI routers grouped under app.api.*
from . import (
    admin_bookings,
    availability,
    bookings,
    conversations,
    reviews,
    schedule,
)

__all__ = [
    "admin_bookings",
    "availability",
    "bookings",
    "conversations",
    "reviews",
    "schedule",
]
