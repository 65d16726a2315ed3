from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal

from app.core.config import settings

TIME_FORMAT = "%H:%M"


def day_of_week(target: date) -> int:
    """Return 0=Sunday ... 6=Saturday (Python's weekday() starts at Monday)."""
    return (target.weekday() + 1) % 7


def parse_hhmm(value: str) -> time:
    return datetime.strptime(value, TIME_FORMAT).time()


def format_hhmm(value: datetime | time) -> str:
    return value.strftime(TIME_FORMAT)


def normalize_hhmm(value: str) -> str:
    """Accept HH:MM or HH:MM:SS and return HH:MM; raises ValueError on anything else."""
    text = (value or "").strip()
    if len(text) == 8 and text.count(":") == 2:
        text = text[:5]
    return format_hhmm(parse_hhmm(text))


def at_time(target: date, hhmm: str) -> datetime:
    return datetime.combine(target, parse_hhmm(hhmm))


def is_on_granularity(minutes: int, granularity: int | None = None) -> bool:
    step = granularity or settings.booking_granularity_minutes
    return minutes % step == 0


def hold_expiry(now: datetime) -> datetime:
    return now + timedelta(minutes=settings.booking_hold_minutes)


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open [start, end) overlap."""
    return start_a < end_b and end_a > start_b


def round_money(value: Decimal | float | int | None) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def hourly_price(hourly_rate: Decimal | float | int | None, duration_minutes: int) -> Decimal:
    rate = Decimal(str(hourly_rate or 0))
    return round_money(rate * Decimal(duration_minutes) / Decimal(60))
