import logging
from datetime import datetime, timezone
from sqlalchemy.orm import Session
from hotel_booking.models.booking import Booking, BookingStatus
from hotel_booking.utils.booking_store import BookingStore
from hotel_booking.utils.errors import InvalidTransitionError

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

# Statuses that occupy the room's dates
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def validate_transition(current, target):
    """Raise InvalidTransitionError unless current -> target is allowed."""
    current, target = BookingStatus(current), BookingStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


def transition_booking(db: Session, booking: Booking, target, now=None) -> Booking:
    """
    Move a booking to ``target``.

    The write only lands if the stored status is still the one validated here,
    so of two racing transitions the loser gets InvalidTransitionError and the
    row, including ``updated_at``, is left as the winner wrote it.
    """
    target = BookingStatus(target)
    current = BookingStatus(booking.status)
    validate_transition(current, target)

    store = BookingStore(db)
    if not store.update_status(booking.id, current, target, now or datetime.now(timezone.utc)):
        db.refresh(booking)
        logger.warning(
            f"Booking {booking.id} moved to {booking.status} before {current.value} -> {target.value}"
        )
        raise InvalidTransitionError(booking.status, target.value)

    db.refresh(booking)
    logger.info(f"Booking {booking.id}: {current.value} -> {target.value}")
    return booking


def confirm_booking(db: Session, booking: Booking) -> Booking:
    return transition_booking(db, booking, BookingStatus.CONFIRMED)


def cancel_booking(db: Session, booking: Booking) -> Booking:
    """Cancel a booking. The row stays; its dates stop blocking new commits."""
    return transition_booking(db, booking, BookingStatus.CANCELLED)


def complete_booking(db: Session, booking: Booking) -> Booking:
    return transition_booking(db, booking, BookingStatus.COMPLETED)


def complete_due_bookings(db: Session, today=None):
    """
    Complete every Confirmed booking whose checkout day has arrived.

    Meant to be called periodically by an external scheduler. Bookings that
    change status while this runs are skipped.
    """
    today = today or datetime.now(timezone.utc).date()
    completed = []
    for booking in BookingStore(db).due_for_completion(today):
        try:
            completed.append(complete_booking(db, booking))
        except InvalidTransitionError as exc:
            logger.info(f"Skipped completing booking {booking.id}: {exc.message}")
    logger.debug(f"Completed {len(completed)} bookings due by {today}")
    return completed


def remove_booking(db: Session, booking: Booking) -> Booking:
    """Soft-delete a booking. It drops out of queries and overlap checks but stays stored."""
    BookingStore(db).soft_delete(booking, datetime.now(timezone.utc))
    logger.info(f"Booking {booking.id} soft deleted")
    return booking
