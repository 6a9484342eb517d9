import uuid
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    event,
)
from sqlalchemy.orm import relationship
from hotel_booking.db import Base


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"


def _new_booking_id():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Booking(Base):
    """
    A reservation of one room for the half-open date range [check_in, check_out).

    Rows are created only by the commit protocol in
    hotel_booking.utils.reservations and mutated only through
    hotel_booking.utils.booking_store; nothing else writes this table.
    """

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_new_booking_id)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests = Column(Integer, nullable=False, default=1)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(100), nullable=True)
    guest_phone = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    room = relationship("Room", back_populates="bookings")
    user = relationship("User", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="check_booking_dates_ordered"),
        CheckConstraint("guests > 0", name="check_booking_guests_positive"),
    )

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, room={self.room_id}, "
            f"{self.check_in}..{self.check_out}, status={self.status})>"
        )


# Storage-level exclusion of overlapping active bookings. The commit protocol
# already serializes writers per room; these reject anything that slips past it.
OVERLAP_GUARD_MESSAGE = "booking overlaps an active booking for this room"
OVERLAP_CONSTRAINT = "bookings_no_overlap"

_OVERLAP_GUARD = (
    f"SELECT RAISE(ABORT, '{OVERLAP_GUARD_MESSAGE}') "
    "WHERE EXISTS ("
    "SELECT 1 FROM bookings b WHERE b.room_id = NEW.room_id AND b.id != NEW.id "
    "AND b.status != 'Cancelled' AND b.is_deleted = 0 "
    "AND b.check_in < NEW.check_out AND NEW.check_in < b.check_out); "
)

event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "CREATE TRIGGER IF NOT EXISTS bookings_no_overlap_insert "
        "BEFORE INSERT ON bookings "
        "WHEN NEW.status != 'Cancelled' AND NEW.is_deleted = 0 "
        "BEGIN " + _OVERLAP_GUARD + "END"
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        "CREATE TRIGGER IF NOT EXISTS bookings_no_overlap_update "
        "BEFORE UPDATE OF check_in, check_out ON bookings "
        "WHEN NEW.status != 'Cancelled' AND NEW.is_deleted = 0 "
        "BEGIN " + _OVERLAP_GUARD + "END"
    ).execute_if(dialect="sqlite"),
)
event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (room_id WITH =, daterange(check_in, check_out, '[)') WITH &&) "
        "WHERE (status <> 'Cancelled' AND NOT is_deleted)"
    ).execute_if(dialect="postgresql"),
)
