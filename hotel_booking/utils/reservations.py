"""
Reservation commit protocol.

Turning a request into a stored booking is a check-then-write, which races
when two requests for the same room arrive together. Commits are therefore
layered:

1. A per-room lock (``RoomLockTable``) serializes commits for one room inside
   this process. Waiting longer than the lock timeout raises
   ``CommitTimeoutError``.
2. While holding it, the overlap query runs again in the same session as the
   insert, and a hit raises ``ConflictError``.
3. The database rejects overlapping active rows on its own (an exclusion
   constraint on PostgreSQL, triggers on SQLite). That ``IntegrityError`` is
   also reported as ``ConflictError``.

``OperationalError`` from the database (locked file, dropped connection) is
retried with jittered backoff and then raised as ``TransientStorageError``.
The per-room lock only covers one process, so deployments with several
writer processes rely on layer 3.
"""

import logging
import random
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from hotel_booking import config
from hotel_booking.models.booking import (
    OVERLAP_CONSTRAINT,
    OVERLAP_GUARD_MESSAGE,
    Booking,
    BookingStatus,
)
from hotel_booking.models.room import Room
from hotel_booking.utils.booking_store import BookingStore
from hotel_booking.utils.errors import (
    CapacityExceededError,
    CommitTimeoutError,
    ConflictError,
    GuestCountError,
    InvalidTransitionError,
    RoomNotFoundError,
    StorageIntegrityError,
    TransientStorageError,
)
from hotel_booking.utils.intervals import DateRange
from hotel_booking.utils.state_machine import ACTIVE_STATUSES
from hotel_booking.utils.validation_helpers import check_dates

logger = logging.getLogger(__name__)


class RoomLockTable:
    """One lock per room id, created on first use."""

    def __init__(self):
        self._locks = {}
        self._guard = threading.Lock()

    def _lock_for(self, room_id):
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, room_id, timeout):
        lock = self._lock_for(room_id)
        if not lock.acquire(timeout=timeout):
            logger.warning(f"Timed out after {timeout}s waiting for room {room_id}")
            raise CommitTimeoutError(
                f"Room {room_id} is busy, please retry the booking"
            )
        try:
            yield
        finally:
            lock.release()


room_locks = RoomLockTable()


def quote_price(price_per_night, nights) -> Decimal:
    return (Decimal(str(price_per_night)) * nights).quantize(Decimal("0.01"))


def _conflict(existing, room_id):
    conflict = DateRange(existing.check_in, existing.check_out)
    return ConflictError(
        f"Room {room_id} is already booked from {conflict}",
        conflict=conflict,
        conflicting_booking_id=existing.id,
    )


def _is_overlap_violation(exc):
    detail = str(exc.orig)
    return OVERLAP_GUARD_MESSAGE in detail or OVERLAP_CONSTRAINT in detail


def ensure_reschedulable(booking: Booking):
    if booking.is_deleted or BookingStatus(booking.status) not in ACTIVE_STATUSES:
        raise InvalidTransitionError(booking.status, "rescheduled")


def _run_guarded(db, room_id, operation, locks, lock_timeout, max_attempts, backoff):
    locks = locks or room_locks
    lock_timeout = config.COMMIT_LOCK_TIMEOUT_SECONDS if lock_timeout is None else lock_timeout
    max_attempts = max_attempts or config.COMMIT_MAX_ATTEMPTS
    backoff = config.COMMIT_BACKOFF_SECONDS if backoff is None else backoff

    attempt = 0
    while True:
        attempt += 1
        try:
            with locks.hold(room_id, lock_timeout):
                return operation()
        except IntegrityError as exc:
            db.rollback()
            if not _is_overlap_violation(exc):
                logger.error(f"Storage rejected booking write for room {room_id}: {exc.orig}")
                raise StorageIntegrityError(
                    "The booking was rejected by the database"
                ) from exc
            logger.warning(f"Storage rejected overlapping booking for room {room_id}: {exc.orig}")
            raise ConflictError(
                f"Room {room_id} is already booked for the requested dates"
            ) from exc
        except OperationalError as exc:
            db.rollback()
            if attempt >= max_attempts:
                logger.error(f"Giving up on room {room_id} after {attempt} attempts: {exc.orig}")
                raise TransientStorageError(
                    "The booking could not be stored right now, please retry"
                ) from exc
            delay = backoff * (2 ** (attempt - 1)) * random.uniform(0.5, 1.5)
            logger.warning(
                f"Storage error on attempt {attempt} for room {room_id}, retrying in {delay:.3f}s: {exc.orig}"
            )
            time.sleep(delay)


def commit_booking(
    db: Session,
    room: Room,
    user_id: int,
    check_in,
    check_out,
    guests: int = 1,
    guest_name=None,
    guest_email=None,
    guest_phone=None,
    *,
    today=None,
    locks: RoomLockTable = None,
    lock_timeout=None,
    max_attempts=None,
    backoff=None,
) -> Booking:
    """
    Store a new Pending booking of ``room`` for [check_in, check_out).

    The total price is nights times the room's rate as read now; later rate
    changes leave it alone.

    Raises a BookingValidationError for bad dates or a guest count outside
    1..capacity, ConflictError when the range is taken, CommitTimeoutError
    when the room guard is not acquired in time, TransientStorageError when
    storage keeps failing and StorageIntegrityError when the database rejects
    the row for any reason other than an overlap.
    """
    check_dates(check_in, check_out, today=today).raise_for_error()
    if guests < 1:
        raise GuestCountError(f"At least one guest is required, {guests} requested")
    if guests > room.capacity:
        raise CapacityExceededError(
            f"Room {room.id} holds {room.capacity} guests, {guests} requested"
        )

    room_id = room.id
    stay = DateRange(check_in, check_out)
    total_price = quote_price(room.price_per_night, stay.nights)
    store = BookingStore(db)

    def insert():
        existing = store.find_overlapping(room_id, check_in, check_out)
        if existing is not None:
            error = _conflict(existing, room_id)
            db.rollback()
            logger.warning(f"Commit conflict for room {room_id}: {error.message}")
            raise error
        return store.insert(
            Booking(
                room_id=room_id,
                user_id=user_id,
                check_in=check_in,
                check_out=check_out,
                guests=guests,
                total_price=total_price,
                status=BookingStatus.PENDING.value,
                guest_name=guest_name,
                guest_email=guest_email,
                guest_phone=guest_phone,
            )
        )

    booking = _run_guarded(db, room_id, insert, locks, lock_timeout, max_attempts, backoff)
    logger.info(
        f"Committed booking {booking.id} for room {room_id}, {stay}, total {total_price}"
    )
    return booking


def reschedule_booking(
    db: Session,
    booking: Booking,
    check_in,
    check_out,
    *,
    today=None,
    locks: RoomLockTable = None,
    lock_timeout=None,
    max_attempts=None,
    backoff=None,
) -> Booking:
    """
    Move an active booking to new dates on the same room and re-price it.

    Its current range is ignored by the overlap check, so shifting a stay
    within its own dates succeeds.
    """
    ensure_reschedulable(booking)
    check_dates(check_in, check_out, today=today).raise_for_error()

    room = db.get(Room, booking.room_id)
    if room is None or not room.is_active:
        raise RoomNotFoundError(f"Room {booking.room_id} is not available")

    room_id = room.id
    booking_id = booking.id
    total_price = quote_price(room.price_per_night, DateRange(check_in, check_out).nights)
    store = BookingStore(db)

    def move():
        db.refresh(booking)
        try:
            ensure_reschedulable(booking)
        except InvalidTransitionError:
            db.rollback()
            raise
        existing = store.find_overlapping(room_id, check_in, check_out, exclude_booking_id=booking_id)
        if existing is not None:
            error = _conflict(existing, room_id)
            db.rollback()
            raise error
        return store.update_dates(
            booking, check_in, check_out, total_price, datetime.now(timezone.utc)
        )

    moved = _run_guarded(db, room_id, move, locks, lock_timeout, max_attempts, backoff)
    logger.info(f"Rescheduled booking {booking_id} on room {room_id} to {check_in} to {check_out}")
    return moved
