from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from app.core.config import settings


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Wall clock in the application timezone, returned as naive local datetimes."""

    def __init__(self, tz_name: str | None = None) -> None:
        self.tz = ZoneInfo(tz_name or settings.app_timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None, microsecond=0)

    def today(self) -> date:
        return self.now().date()

    def to_local(self, value: datetime) -> datetime:
        """Drop tzinfo after converting aware datetimes into the application timezone."""
        if value.tzinfo is None:
            return value
        return value.astimezone(self.tz).replace(tzinfo=None)


class FixedClock:
    """Clock frozen at a given instant. Separated for tests and scripted runs."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def advance(self, minutes: int = 0, **kwargs) -> None:
        self.current = self.current + timedelta(minutes=minutes, **kwargs)


_system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency; overridden in tests with a FixedClock."""
    return _system_clock


def to_local_naive(value: datetime) -> datetime:
    return _system_clock.to_local(value)


__all__ = ["Clock", "SystemClock", "FixedClock", "get_clock", "to_local_naive"]
