"""Booking store - persistence and conflict queries for bookings.

Methods never commit; the calling orchestrator owns the transaction.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Query, Session, joinedload

from app.core.locking import locked
from app.models import Booking, BookingStatus, Consultant, User
from app.services import booking_rules


class BookingRepository:
    """Repository for booking database operations"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, booking_id: int) -> Optional[Booking]:
        return (
            self.db.query(Booking)
            .filter(Booking.id == booking_id, Booking.deleted_at.is_(None))
            .first()
        )

    def get_with_relations(self, booking_id: int) -> Optional[Booking]:
        return (
            self.db.query(Booking)
            .options(
                joinedload(Booking.client),
                joinedload(Booking.consultant).joinedload(Consultant.user),
            )
            .filter(Booking.id == booking_id, Booking.deleted_at.is_(None))
            .first()
        )

    def query(self) -> Query:
        return (
            self.db.query(Booking)
            .options(
                joinedload(Booking.client),
                joinedload(Booking.consultant).joinedload(Consultant.user),
            )
            .filter(Booking.deleted_at.is_(None))
        )

    def for_client(self, client_id: int) -> Query:
        return self.query().filter(Booking.client_id == client_id)

    def for_consultant(self, consultant_id: int) -> Query:
        return self.query().filter(Booking.consultant_id == consultant_id)

    # ------------------------------------------------------------------
    # Blocking / overlap queries
    # ------------------------------------------------------------------

    @staticmethod
    def blocking_clause(now: datetime):
        """confirmed OR (pending AND expires_at > now)"""
        return or_(
            Booking.status == BookingStatus.CONFIRMED.value,
            and_(Booking.status == BookingStatus.PENDING.value, Booking.expires_at > now),
        )

    def _overlap_query(
        self,
        consultant_id: int,
        occupied_start: datetime,
        occupied_end: datetime,
        now: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> Query:
        # new_start < existing_occupied_end AND new_occupied_end > existing_start
        query = self.db.query(Booking).filter(
            Booking.consultant_id == consultant_id,
            Booking.deleted_at.is_(None),
            self.blocking_clause(now),
            Booking.occupied_end_at > occupied_start,
            Booking.start_at < occupied_end,
        )
        if exclude_booking_id:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.order_by(Booking.start_at.asc())

    def find_blocking_overlaps(
        self,
        consultant_id: int,
        occupied_start: datetime,
        occupied_end: datetime,
        now: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Booking]:
        return self._overlap_query(consultant_id, occupied_start, occupied_end, now, exclude_booking_id).all()

    def find_blocking_overlaps_with_lock(
        self,
        consultant_id: int,
        occupied_start: datetime,
        occupied_end: datetime,
        now: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Booking]:
        """Same as find_blocking_overlaps but holds FOR UPDATE on the matching rows.

        Must run inside the transaction that already holds the consultant row lock.
        """
        query = self._overlap_query(consultant_id, occupied_start, occupied_end, now, exclude_booking_id)
        return locked(query).all()

    def blocking_for_date(self, consultant_id: int, target: date, now: datetime) -> list[Booking]:
        day_start = datetime.combine(target, datetime.min.time())
        day_end = day_start + timedelta(days=1)
        return (
            self.db.query(Booking)
            .filter(
                Booking.consultant_id == consultant_id,
                Booking.deleted_at.is_(None),
                self.blocking_clause(now),
                Booking.start_at < day_end,
                Booking.occupied_end_at > day_start,
            )
            .order_by(Booking.start_at.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_pending(self, now: datetime, **data) -> Booking:
        booking = self.create(status=BookingStatus.PENDING.value, expires_at=booking_rules.hold_expiry(now), **data)
        return booking

    def create(
        self,
        *,
        start_at: datetime,
        duration_minutes: int,
        buffer_after_minutes: int,
        **data,
    ) -> Booking:
        booking = Booking(**data)
        booking.set_times(start_at, duration_minutes, buffer_after_minutes)
        self.db.add(booking)
        self.db.flush()
        return booking

    def confirm(self, booking: Booking) -> Booking:
        booking.status = BookingStatus.CONFIRMED.value
        booking.expires_at = None
        self.db.flush()
        return booking

    def cancel(
        self,
        booking: Booking,
        cancelled_by_type: str,
        cancelled_by_id: int,
        now: datetime,
        reason: Optional[str] = None,
    ) -> Booking:
        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = now
        booking.cancelled_by_type = cancelled_by_type
        booking.cancelled_by_id = cancelled_by_id
        booking.cancel_reason = reason
        booking.expires_at = None
        self.db.flush()
        return booking

    def expire_pending(self, now: datetime) -> int:
        """Bulk-move pending bookings whose hold has lapsed to expired."""
        result = self.db.execute(
            update(Booking)
            .where(
                Booking.status == BookingStatus.PENDING.value,
                Booking.expires_at <= now,
            )
            .values(status=BookingStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def soft_delete(self, booking: Booking, now: datetime) -> None:
        booking.deleted_at = now
        self.db.flush()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def filtered(
        self,
        status: Optional[str] = None,
        consultant_id: Optional[int] = None,
        client_id: Optional[int] = None,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Query:
        query = self.query()
        if status:
            query = query.filter(Booking.status == status)
        if consultant_id:
            query = query.filter(Booking.consultant_id == consultant_id)
        if client_id:
            query = query.filter(Booking.client_id == client_id)
        if date_from:
            query = query.filter(Booking.start_at >= datetime.combine(date_from, datetime.min.time()))
        if date_to:
            query = query.filter(Booking.start_at < datetime.combine(date_to + timedelta(days=1), datetime.min.time()))
        if search:
            pattern = f"%{search}%"
            matching_consultant_ids = (
                self.db.query(Consultant.id)
                .join(User, Consultant.user_id == User.id)
                .filter(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern)))
            )
            matching_client_ids = self.db.query(User.id).filter(
                or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern), User.email.ilike(pattern))
            )
            query = query.filter(
                or_(Booking.client_id.in_(matching_client_ids), Booking.consultant_id.in_(matching_consultant_ids))
            )
        return query.order_by(Booking.start_at.desc())
