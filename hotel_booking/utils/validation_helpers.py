"""
Booking date rules and the advisory overlap check.

``validate_booking`` inspects a snapshot of the room's bookings. Two callers
can both see a free range before either writes, so a ``VALID`` outcome is a
hint, not a reservation; ``reservations.commit_booking`` re-checks under the
room guard.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional
from sqlalchemy.orm import Session
from hotel_booking import config
from hotel_booking.utils.booking_store import BookingStore
from hotel_booking.utils.errors import (
    DurationExceededError,
    InvalidRangeError,
    OverlapError,
    PastDateError,
)
from hotel_booking.utils.intervals import DateRange

logger = logging.getLogger(__name__)


class OutcomeCode(str, Enum):
    VALID = "valid"
    INVALID_RANGE = "invalid_range"
    PAST_DATE = "past_date"
    DURATION_EXCEEDED = "duration_exceeded"
    OVERLAP = "overlap"


_ERRORS = {
    OutcomeCode.INVALID_RANGE: InvalidRangeError,
    OutcomeCode.PAST_DATE: PastDateError,
    OutcomeCode.DURATION_EXCEEDED: DurationExceededError,
}


@dataclass(frozen=True)
class ValidationOutcome:
    code: OutcomeCode
    message: str = ""
    conflict: Optional[DateRange] = None
    conflicting_booking_id: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.code is OutcomeCode.VALID

    def raise_for_error(self):
        if self.is_valid:
            return
        if self.code is OutcomeCode.OVERLAP:
            raise OverlapError(self.message, self.conflict, self.conflicting_booking_id)
        raise _ERRORS[self.code](self.message)


VALID = ValidationOutcome(OutcomeCode.VALID)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _as_date(value):
    if isinstance(value, datetime):
        return value.date()
    return value


def check_dates(check_in, check_out, today=None, max_stay_days=None) -> ValidationOutcome:
    """Apply the range, past-date and maximum-stay rules, in that order."""
    check_in, check_out = _as_date(check_in), _as_date(check_out)
    today = today or utc_today()
    max_stay_days = config.MAX_STAY_DAYS if max_stay_days is None else max_stay_days

    if check_out <= check_in:
        return ValidationOutcome(
            OutcomeCode.INVALID_RANGE, "Check-out date must be after check-in date"
        )
    if check_in < today:
        return ValidationOutcome(OutcomeCode.PAST_DATE, "Check-in date cannot be in the past")
    if (check_out - check_in).days > max_stay_days:
        return ValidationOutcome(
            OutcomeCode.DURATION_EXCEEDED,
            f"Booking duration cannot exceed {max_stay_days} days",
        )
    return VALID


def overlap_outcome(existing) -> ValidationOutcome:
    conflict = DateRange(existing.check_in, existing.check_out)
    return ValidationOutcome(
        OutcomeCode.OVERLAP,
        f"Room is already booked from {conflict}",
        conflict=conflict,
        conflicting_booking_id=existing.id,
    )


def validate_booking(
    db: Session,
    room_id: int,
    check_in,
    check_out,
    exclude_booking_id: Optional[str] = None,
    today=None,
) -> ValidationOutcome:
    """
    Decide whether [check_in, check_out) may be booked on the room.

    - **exclude_booking_id**: booking to ignore, used when re-validating the
      new dates of an existing booking.

    Returns the first failing rule as a ValidationOutcome, or ``VALID``.
    """
    logger.debug(f"Validating room {room_id} for {check_in} to {check_out}")

    outcome = check_dates(check_in, check_out, today=today)
    if not outcome.is_valid:
        logger.warning(f"Rejected dates for room {room_id}: {outcome.message}")
        return outcome

    existing = BookingStore(db).find_overlapping(
        room_id, _as_date(check_in), _as_date(check_out), exclude_booking_id
    )
    if existing is not None:
        outcome = overlap_outcome(existing)
        logger.warning(f"Overlap for room {room_id} with booking {existing.id}: {outcome.conflict}")
        return outcome

    logger.debug(f"No overlap for room {room_id}")
    return VALID
