from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime


def utcnow() -> datetime:
    return datetime.utcnow()


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class SoftDeleteMixin:
    """Rows are hidden by setting deleted_at; restoring clears it."""

    deleted_at = Column(DateTime, nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


__all__ = ["utcnow", "TimestampMixin", "SoftDeleteMixin"]
