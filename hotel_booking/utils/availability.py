from datetime import date
from typing import List
from sqlalchemy.orm import Session
from hotel_booking.models.room import Room
from hotel_booking.utils.booking_store import BookingStore
from hotel_booking.utils.intervals import DateRange


def is_room_available(db: Session, room_id: int, check_in: date, check_out: date) -> bool:
    return BookingStore(db).find_overlapping(room_id, check_in, check_out) is None


def find_available_rooms(db: Session, check_in: date, check_out: date, guests: int = 1) -> List[Room]:
    """
    Find active rooms that fit ``guests`` and are free for the whole stay.

    Smallest rooms come first, then the cheapest, so a party is not handed a
    suite while a double is free.
    """
    taken = BookingStore(db).rooms_taken(check_in, check_out)
    rooms = (
        db.query(Room)
        .filter(Room.is_active.is_(True), Room.capacity >= guests)
        .order_by(Room.capacity, Room.price_per_night, Room.id)
        .all()
    )
    return [room for room in rooms if room.id not in taken]


def booked_ranges(db: Session, room_id: int, start: date, end: date) -> List[DateRange]:
    return [
        DateRange(booking.check_in, booking.check_out)
        for booking in BookingStore(db).active_in_window(room_id, start, end)
    ]


def free_ranges(db: Session, room_id: int, start: date, end: date) -> List[DateRange]:
    """Gaps between active bookings of the room inside the window [start, end)."""
    window = DateRange(start, end)
    gaps = []
    cursor = start
    for booked in booked_ranges(db, room_id, start, end):
        if not booked.overlaps(window):
            continue
        if booked.start > cursor:
            gaps.append(DateRange(cursor, min(booked.start, end)))
        cursor = max(cursor, booked.end)
        if cursor >= end:
            break
    if cursor < end:
        gaps.append(DateRange(cursor, end))
    return gaps
