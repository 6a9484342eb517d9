"""
Typed failures raised by the booking engine.

Each error carries a stable ``code`` so callers can branch on the kind of
failure without matching message text, and the HTTP ``status_code`` the API
layer answers with.
"""

from fastapi import status


class BookingError(Exception):
    code = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST
    retryable = False

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"detail": self.message, "code": self.code}


class BookingValidationError(BookingError):
    """Client input that can never succeed as given."""


class InvalidRangeError(BookingValidationError):
    code = "invalid_range"


class PastDateError(BookingValidationError):
    code = "past_date"


class DurationExceededError(BookingValidationError):
    code = "duration_exceeded"


class CapacityExceededError(BookingValidationError):
    code = "capacity_exceeded"


class GuestCountError(BookingValidationError):
    code = "invalid_guests"


class _RangeTakenError(BookingError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message, conflict=None, conflicting_booking_id=None):
        super().__init__(message)
        self.conflict = conflict
        self.conflicting_booking_id = conflicting_booking_id

    def to_dict(self):
        data = super().to_dict()
        if self.conflict is not None:
            data["conflict_check_in"] = self.conflict.start.isoformat()
            data["conflict_check_out"] = self.conflict.end.isoformat()
        return data


class OverlapError(_RangeTakenError):
    """The advisory validator saw an existing booking in the requested range."""

    code = "overlap"


class ConflictError(_RangeTakenError):
    """The commit protocol found the range taken while holding the room guard."""

    code = "conflict"


class NotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND


class RoomNotFoundError(NotFoundError):
    code = "room_not_found"


class BookingNotFoundError(NotFoundError):
    code = "booking_not_found"


class CommitTimeoutError(BookingError):
    code = "timeout"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class TransientStorageError(BookingError):
    code = "transient_storage_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class StorageIntegrityError(BookingError):
    """The database rejected a write for a reason other than an overlapping stay."""

    code = "integrity_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InvalidTransitionError(BookingError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current, target):
        super().__init__(f"Cannot move booking from {current} to {target}")
        self.current = current
        self.target = target
