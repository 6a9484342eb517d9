from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from hotel_booking.db import get_db
from hotel_booking.models.booking import Booking
from hotel_booking.routers.rooms import get_room_or_404
from hotel_booking.schemas.booking import BookingCreate, BookingUpdate, BookingResponse
from hotel_booking.utils.auth import ADMIN_ROLE, get_current_user, require_admin
from hotel_booking.utils.booking_store import BookingStore
from hotel_booking.utils.errors import BookingNotFoundError
from hotel_booking.utils.reservations import commit_booking, ensure_reschedulable, reschedule_booking
from hotel_booking.utils.state_machine import cancel_booking, confirm_booking, remove_booking
from hotel_booking.utils.validation_helpers import validate_booking
import logging

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
)


def get_booking_or_404(db: Session, booking_id: str) -> Booking:
    booking = BookingStore(db).get(booking_id)
    if booking is None:
        logger.warning(f"Booking not found: {booking_id}")
        raise BookingNotFoundError("Booking not found")
    return booking


def ensure_owner_or_admin(booking: Booking, current_user: dict, action: str):
    if booking.user_id != current_user["id"] and current_user["role"] != ADMIN_ROLE:
        logger.warning(f"User {current_user['username']} not authorized to {action} booking {booking.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Not authorized to {action} this booking")


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new booking",
    description="Reserve a room for a date range. Requires authentication."
)
def create_booking(
    booking: BookingCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """
    Reserve a room for the nights from check-in up to, not including, check-out.
    Requires authentication.

    - **room_id**: ID of the room to book.
    - **check_in**: Arrival day, today or later.
    - **check_out**: Departure day; the room is free again that day.
    - **guests**: Party size, at most the room capacity.
    - **guest_name**, **guest_email**, **guest_phone**: Contact details, stored as given.

    Returns the Pending booking with its total price.
    """
    logger.debug(f"Creating booking for user: {current_user['username']}, room_id: {booking.room_id}")

    room = get_room_or_404(db, booking.room_id, active_only=True)
    validate_booking(db, room.id, booking.check_in, booking.check_out).raise_for_error()

    return commit_booking(
        db,
        room,
        current_user["id"],
        booking.check_in,
        booking.check_out,
        guests=booking.guests,
        guest_name=booking.guest_name,
        guest_email=booking.guest_email,
        guest_phone=booking.guest_phone,
    )


@router.get(
    "/",
    response_model=List[BookingResponse],
    summary="List bookings",
    description="Retrieve a paginated list of bookings. Requires authentication."
)
def get_bookings(
    skip: int = 0,
    limit: int = 100,
    room_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """
    Retrieve bookings that have not been deleted.
    Admins see every booking, other users only their own.

    - **skip**: Number of bookings to skip.
    - **limit**: Maximum number of bookings to return.
    - **room_id**: Only bookings of this room.
    """
    user_id = None if current_user["role"] == ADMIN_ROLE else current_user["id"]
    bookings = BookingStore(db).list_visible(skip=skip, limit=limit, room_id=room_id, user_id=user_id)
    logger.debug(f"Retrieved {len(bookings)} bookings")
    return bookings


@router.get(
    "/mine",
    response_model=List[BookingResponse],
    summary="List my bookings",
)
def get_my_bookings(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    return BookingStore(db).list_visible(skip=skip, limit=limit, user_id=current_user["id"])


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking by ID",
)
def get_booking(booking_id: str, db: Session = Depends(get_db), current_user: dict = Depends(get_current_user)):
    db_booking = get_booking_or_404(db, booking_id)
    ensure_owner_or_admin(db_booking, current_user, "view")
    return db_booking


@router.put(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Reschedule a booking",
    description="Move a booking to new dates on the same room. Requires authentication and ownership."
)
def update_booking(
    booking_id: str,
    booking_update: BookingUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(get_current_user),
):
    """
    Move a Pending or Confirmed booking to new dates.
    The booking's own current dates do not count as a conflict. The price is
    recalculated at the room's current rate.
    """
    db_booking = get_booking_or_404(db, booking_id)
    ensure_owner_or_admin(db_booking, current_user, "update")
    ensure_reschedulable(db_booking)

    validate_booking(
        db,
        db_booking.room_id,
        booking_update.check_in,
        booking_update.check_out,
        exclude_booking_id=db_booking.id,
    ).raise_for_error()

    return reschedule_booking(db, db_booking, booking_update.check_in, booking_update.check_out)


@router.post(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    summary="Confirm a booking",
    description="Move a Pending booking to Confirmed. Requires the admin role."
)
def confirm(booking_id: str, db: Session = Depends(get_db), current_user: dict = Depends(require_admin)):
    return confirm_booking(db, get_booking_or_404(db, booking_id))


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
    description="Cancel a Pending or Confirmed booking, freeing its dates. Requires ownership or the admin role."
)
def cancel(booking_id: str, db: Session = Depends(get_db), current_user: dict = Depends(get_current_user)):
    db_booking = get_booking_or_404(db, booking_id)
    ensure_owner_or_admin(db_booking, current_user, "cancel")
    return cancel_booking(db, db_booking)


@router.delete(
    "/{booking_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a booking",
    description="Soft-delete a booking. Requires the admin role."
)
def delete_booking(booking_id: str, db: Session = Depends(get_db), current_user: dict = Depends(require_admin)):
    remove_booking(db, get_booking_or_404(db, booking_id))
    return None
