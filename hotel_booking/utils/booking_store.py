"""
Storage access for booking rows.

This is the only module that writes to the ``bookings`` table. The commit
protocol (``reservations``) and the state machine (``state_machine``) are its
only writers; routers and query helpers use the read methods. Code that adds
or updates booking rows any other way bypasses the per-room guard and the
overlap re-check, and is not allowed.
"""

import logging
from typing import List, Optional, Set
from sqlalchemy import update
from sqlalchemy.orm import Session
from hotel_booking.models.booking import Booking, BookingStatus

logger = logging.getLogger(__name__)


class BookingStore:
    def __init__(self, db: Session):
        self.db = db

    def _visible(self):
        return self.db.query(Booking).filter(Booking.is_deleted.is_(False))

    def _active(self):
        return self._visible().filter(Booking.status != BookingStatus.CANCELLED.value)

    # Reads

    def get(self, booking_id: str) -> Optional[Booking]:
        return self._visible().filter(Booking.id == booking_id).first()

    def list_visible(self, skip=0, limit=100, room_id=None, user_id=None) -> List[Booking]:
        query = self._visible()
        if room_id is not None:
            query = query.filter(Booking.room_id == room_id)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        return query.order_by(Booking.check_in, Booking.created_at).offset(skip).limit(limit).all()

    def find_overlapping(self, room_id, check_in, check_out, exclude_booking_id=None) -> Optional[Booking]:
        """Earliest active booking on the room whose range overlaps [check_in, check_out)."""
        query = self._active().filter(
            Booking.room_id == room_id,
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.order_by(Booking.check_in).first()

    def active_in_window(self, room_id, start, end) -> List[Booking]:
        return (
            self._active()
            .filter(
                Booking.room_id == room_id,
                Booking.check_in < end,
                Booking.check_out > start,
            )
            .order_by(Booking.check_in)
            .all()
        )

    def rooms_taken(self, check_in, check_out) -> Set[int]:
        rows = (
            self._active()
            .with_entities(Booking.room_id)
            .filter(Booking.check_in < check_out, Booking.check_out > check_in)
            .distinct()
            .all()
        )
        return {row.room_id for row in rows}

    def due_for_completion(self, today) -> List[Booking]:
        return (
            self._visible()
            .filter(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.check_out <= today,
            )
            .all()
        )

    # Writes

    def insert(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def update_dates(self, booking: Booking, check_in, check_out, total_price, now) -> Booking:
        booking.check_in = check_in
        booking.check_out = check_out
        booking.total_price = total_price
        booking.updated_at = now
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def update_status(self, booking_id: str, expected: BookingStatus, new: BookingStatus, now) -> bool:
        """
        Compare-and-set the status of a booking.

        Returns False, without touching the row, when the stored status is no
        longer ``expected``.
        """
        result = self.db.execute(
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status == expected.value,
                Booking.is_deleted.is_(False),
            )
            .values(status=new.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount != 1:
            logger.debug(f"Status of booking {booking_id} is no longer {expected.value}")
            return False
        return True

    def soft_delete(self, booking: Booking, now) -> Booking:
        booking.is_deleted = True
        booking.deleted_at = now
        booking.updated_at = now
        self.db.commit()
        self.db.refresh(booking)
        return booking
