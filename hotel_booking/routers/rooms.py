import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List
from hotel_booking.db import get_db
from hotel_booking.models.room import Room
from hotel_booking.schemas.booking import AvailabilityResponse, DateRangeResponse
from hotel_booking.schemas.room import RoomCreate, RoomUpdate, RoomResponse
from hotel_booking.utils.auth import require_admin
from hotel_booking.utils.availability import find_available_rooms, free_ranges
from hotel_booking.utils.errors import InvalidRangeError, RoomNotFoundError
from hotel_booking.utils.validation_helpers import validate_booking

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/rooms",
    tags=["rooms"],
)


def get_room_or_404(db: Session, room_id: int, active_only: bool = False) -> Room:
    room = db.get(Room, room_id)
    if room is None or (active_only and not room.is_active):
        logger.warning(f"Room not found: {room_id}")
        raise RoomNotFoundError("Room not found")
    return room


@router.post("/", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
def create_room(room: RoomCreate, db: Session = Depends(get_db), current_user: dict = Depends(require_admin)):
    """
    Add a room to the catalog.
    Requires the admin role.
    """
    db_room = Room(**room.model_dump())
    db.add(db_room)
    db.commit()
    db.refresh(db_room)
    logger.debug(f"Created room: {db_room.id}")
    return db_room


@router.get("/", response_model=List[RoomResponse])
def get_rooms(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """
    Retrieve a list of all rooms.
    """
    return db.query(Room).order_by(Room.id).offset(skip).limit(limit).all()


@router.get(
    "/available",
    response_model=List[RoomResponse],
    summary="Find free rooms",
    description="Active rooms with enough capacity and no booking overlapping the stay.",
)
def get_available_rooms(
    check_in: date,
    check_out: date,
    guests: int = Query(1, ge=1),
    db: Session = Depends(get_db),
):
    """
    - **check_in**: First night of the stay.
    - **check_out**: Departure day, not occupied.
    - **guests**: Party size the room must hold.
    """
    if check_out <= check_in:
        raise InvalidRangeError("Check-out date must be after check-in date")
    rooms = find_available_rooms(db, check_in, check_out, guests)
    logger.debug(f"Found {len(rooms)} free rooms for {check_in} to {check_out}")
    return rooms


@router.get("/{room_id}", response_model=RoomResponse)
def get_room(room_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a specific room by ID.
    """
    return get_room_or_404(db, room_id)


@router.put("/{room_id}", response_model=RoomResponse)
def update_room(room_id: int, room_update: RoomUpdate, db: Session = Depends(get_db), current_user: dict = Depends(require_admin)):
    """
    Update a room's details.
    Requires the admin role. Existing bookings keep the price they were made at.
    """
    db_room = get_room_or_404(db, room_id)

    update_data = room_update.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in update_data.items():
        setattr(db_room, key, value)

    db.commit()
    db.refresh(db_room)
    return db_room


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_room(room_id: int, db: Session = Depends(get_db), current_user: dict = Depends(require_admin)):
    """
    Take a room out of service.
    Requires the admin role. The room and its bookings are kept.
    """
    db_room = get_room_or_404(db, room_id)
    db_room.is_active = False
    db.commit()
    logger.debug(f"Deactivated room: {room_id}")
    return None


@router.get(
    "/{room_id}/availability",
    response_model=AvailabilityResponse,
    summary="Check a stay",
    description="Run the booking rules for a stay without reserving it.",
)
def check_availability(room_id: int, check_in: date, check_out: date, db: Session = Depends(get_db)):
    """
    The answer reflects current bookings only; a later booking request can
    still lose the dates to a concurrent one.
    """
    get_room_or_404(db, room_id, active_only=True)
    outcome = validate_booking(db, room_id, check_in, check_out)
    return AvailabilityResponse(
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        available=outcome.is_valid,
        code=outcome.code.value,
        message=outcome.message,
        conflict=DateRangeResponse.from_range(outcome.conflict) if outcome.conflict else None,
    )


@router.get(
    "/{room_id}/free_ranges",
    response_model=List[DateRangeResponse],
    summary="List free date ranges",
    description="Gaps between the room's active bookings inside a window.",
)
def get_free_ranges(room_id: int, start: date, end: date, db: Session = Depends(get_db)):
    """
    - **start**: First day of the window.
    - **end**: Day after the last day of the window.
    """
    if end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must be after start")
    get_room_or_404(db, room_id)
    gaps = free_ranges(db, room_id, start, end)
    logger.debug(f"Found {len(gaps)} free ranges for room {room_id}")
    return [DateRangeResponse.from_range(gap) for gap in gaps]
