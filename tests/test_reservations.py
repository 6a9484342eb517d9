import random
import sqlite3
import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from hotel_booking.models.booking import BookingStatus
from hotel_booking.models.room import Room
from hotel_booking.utils.booking_store import BookingStore
from hotel_booking.utils.errors import (
    CapacityExceededError,
    CommitTimeoutError,
    ConflictError,
    GuestCountError,
    InvalidTransitionError,
    PastDateError,
    StorageIntegrityError,
    TransientStorageError,
)
from hotel_booking.utils import reservations
from hotel_booking.utils.intervals import DateRange
from hotel_booking.utils.reservations import (
    RoomLockTable,
    commit_booking,
    quote_price,
    reschedule_booking,
)
from hotel_booking.utils.state_machine import cancel_booking
from hotel_booking.utils.validation_helpers import VALID

from tests.conf_tests import (
    TestingSessionLocal,
    active_bookings,
    clear_db,
    future,
    make_room,
    test_db,
    test_room,
    test_user,
)


def commit_in_own_session(room_id, user_id, check_in, check_out, barrier, results):
    """Thread body: one request-handling worker with its own session."""
    db = TestingSessionLocal()
    try:
        room = db.get(Room, room_id)
        barrier.wait()
        try:
            booking = commit_booking(db, room, user_id, check_in, check_out)
            results.append(("booked", booking.id))
        except ConflictError as exc:
            results.append(("conflict", exc))
    finally:
        db.close()


def run_concurrently(requests):
    barrier = threading.Barrier(len(requests))
    results = []
    threads = [
        threading.Thread(target=commit_in_own_session, args=request + (barrier, results))
        for request in requests
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


def assert_no_overlaps(room_id):
    bookings = active_bookings(room_id)
    for i, first in enumerate(bookings):
        for second in bookings[i + 1:]:
            assert first.check_in >= second.check_out or second.check_in >= first.check_out


# pylint: disable-next=redefined-outer-name
def test_commit_creates_pending_booking_with_price_snapshot(test_db, test_room, test_user):
    booking = commit_booking(
        test_db,
        test_room,
        test_user.id,
        future(3),
        future(6),
        guests=2,
        guest_name="Ada Lovelace",
        guest_email="ada@example.com",
        guest_phone="+44 20 0000 0000",
    )

    assert booking.id
    assert booking.status == BookingStatus.PENDING.value
    assert booking.total_price == Decimal("300.00")
    assert booking.guest_name == "Ada Lovelace"
    assert booking.created_at is not None
    assert booking.updated_at is None
    assert booking.is_deleted is False


# pylint: disable-next=redefined-outer-name
def test_price_does_not_follow_rate_changes(test_db, test_room, test_user):
    booking = commit_booking(test_db, test_room, test_user.id, future(3), future(5))
    test_room.price_per_night = Decimal("250.00")
    test_db.commit()

    test_db.refresh(booking)
    assert booking.total_price == Decimal("200.00")


def test_quote_price():
    assert quote_price(Decimal("89.99"), 3) == Decimal("269.97")
    assert quote_price(120, 2) == Decimal("240.00")


# pylint: disable-next=redefined-outer-name
def test_touching_bookings_both_commit(test_db, test_room, test_user):
    commit_booking(test_db, test_room, test_user.id, future(1), future(5))
    commit_booking(test_db, test_room, test_user.id, future(5), future(10))
    assert len(active_bookings(test_room.id)) == 2


# pylint: disable-next=redefined-outer-name
def test_overlapping_commit_raises_conflict(test_db, test_room, test_user):
    first = commit_booking(test_db, test_room, test_user.id, future(10), future(19))

    with pytest.raises(ConflictError) as excinfo:
        commit_booking(test_db, test_room, test_user.id, future(12), future(14))

    assert excinfo.value.conflict == DateRange(future(10), future(19))
    assert excinfo.value.conflicting_booking_id == first.id
    assert len(active_bookings(test_room.id)) == 1


# pylint: disable-next=redefined-outer-name
def test_commit_checks_dates_and_capacity(test_db, test_room, test_user):
    with pytest.raises(PastDateError):
        commit_booking(test_db, test_room, test_user.id, future(-1), future(2))
    with pytest.raises(GuestCountError):
        commit_booking(test_db, test_room, test_user.id, future(1), future(2), guests=0)
    with pytest.raises(CapacityExceededError):
        commit_booking(test_db, test_room, test_user.id, future(1), future(2), guests=3)
    assert active_bookings(test_room.id) == []


# pylint: disable-next=redefined-outer-name
def test_cancellation_frees_the_range(test_db, test_room, test_user):
    booking = commit_booking(test_db, test_room, test_user.id, future(30), future(34))
    cancel_booking(test_db, booking)

    again = commit_booking(test_db, test_room, test_user.id, future(30), future(34))
    assert again.status == BookingStatus.PENDING.value
    assert again.id != booking.id


# pylint: disable-next=redefined-outer-name
def test_concurrent_identical_requests_book_once(test_room, test_user):
    request = (test_room.id, test_user.id, future(40), future(43))
    results = run_concurrently([request, request])

    outcomes = sorted(kind for kind, _ in results)
    assert outcomes == ["booked", "conflict"]
    assert len(active_bookings(test_room.id)) == 1


# pylint: disable-next=redefined-outer-name
def test_concurrent_random_requests_keep_room_free_of_overlaps(test_room, test_user):
    rng = random.Random(7)
    requests = []
    for _ in range(12):
        start = rng.randint(1, 20)
        requests.append((test_room.id, test_user.id, future(start), future(start + rng.randint(1, 6))))

    results = run_concurrently(requests)

    assert len(results) == len(requests)
    booked = [value for kind, value in results if kind == "booked"]
    assert len(booked) == len(active_bookings(test_room.id))
    assert booked
    assert_no_overlaps(test_room.id)


# pylint: disable-next=redefined-outer-name
def test_concurrent_requests_for_different_rooms_all_succeed(test_db, test_room, test_user):
    rooms = [test_room] + [make_room(test_db, name=f"Room {n}") for n in range(3)]
    requests = [(room.id, test_user.id, future(5), future(8)) for room in rooms]

    results = run_concurrently(requests)

    assert [kind for kind, _ in results] == ["booked"] * len(rooms)


# pylint: disable-next=redefined-outer-name
def test_busy_room_guard_times_out(test_db, test_room, test_user):
    locks = RoomLockTable()
    with locks.hold(test_room.id, timeout=1):
        with pytest.raises(CommitTimeoutError):
            commit_booking(
                test_db, test_room, test_user.id, future(1), future(3), locks=locks, lock_timeout=0.01
            )

    # Released again once the holder leaves
    booking = commit_booking(test_db, test_room, test_user.id, future(1), future(3), locks=locks)
    assert booking.status == BookingStatus.PENDING.value


# pylint: disable-next=redefined-outer-name
def test_storage_rejects_overlap_that_skips_the_recheck(test_db, test_room, test_user, monkeypatch):
    commit_booking(test_db, test_room, test_user.id, future(10), future(15))
    monkeypatch.setattr(BookingStore, "find_overlapping", lambda self, *args, **kwargs: None)

    with pytest.raises(ConflictError) as excinfo:
        commit_booking(test_db, test_room, test_user.id, future(12), future(13))

    assert isinstance(excinfo.value.__cause__, IntegrityError)
    assert len(active_bookings(test_room.id)) == 1


# pylint: disable-next=redefined-outer-name
def test_transient_storage_errors_are_retried(test_db, test_room, test_user, monkeypatch):
    original_insert = BookingStore.insert
    calls = []

    def flaky_insert(self, booking):
        calls.append(booking)
        if len(calls) == 1:
            raise OperationalError("INSERT", {}, sqlite3.OperationalError("database is locked"))
        return original_insert(self, booking)

    monkeypatch.setattr(BookingStore, "insert", flaky_insert)

    booking = commit_booking(test_db, test_room, test_user.id, future(1), future(2), backoff=0)
    assert len(calls) == 2
    assert booking.status == BookingStatus.PENDING.value


# pylint: disable-next=redefined-outer-name
def test_transient_storage_errors_give_up(test_db, test_room, test_user, monkeypatch):
    calls = []

    def broken_insert(self, booking):
        calls.append(booking)
        raise OperationalError("INSERT", {}, sqlite3.OperationalError("disk I/O error"))

    monkeypatch.setattr(BookingStore, "insert", broken_insert)

    with pytest.raises(TransientStorageError) as excinfo:
        commit_booking(
            test_db, test_room, test_user.id, future(1), future(2), max_attempts=3, backoff=0
        )
    assert len(calls) == 3
    assert excinfo.value.retryable
    assert active_bookings(test_room.id) == []


# pylint: disable-next=redefined-outer-name
def test_reschedule_moves_and_reprices(test_db, test_room, test_user):
    booking = commit_booking(test_db, test_room, test_user.id, future(5), future(7))

    moved = reschedule_booking(test_db, booking, future(6), future(10))

    assert moved.check_in == future(6)
    assert moved.check_out == future(10)
    assert moved.total_price == Decimal("400.00")
    assert moved.updated_at is not None


# pylint: disable-next=redefined-outer-name
def test_reschedule_onto_another_booking_conflicts(test_db, test_room, test_user):
    booking = commit_booking(test_db, test_room, test_user.id, future(5), future(7))
    commit_booking(test_db, test_room, test_user.id, future(10), future(12))

    with pytest.raises(ConflictError):
        reschedule_booking(test_db, booking, future(9), future(11))

    test_db.refresh(booking)
    assert booking.check_in == future(5)


# pylint: disable-next=redefined-outer-name
def test_reschedule_needs_an_active_booking(test_db, test_room, test_user):
    booking = commit_booking(test_db, test_room, test_user.id, future(5), future(7))
    cancel_booking(test_db, booking)

    with pytest.raises(InvalidTransitionError):
        reschedule_booking(test_db, booking, future(8), future(9))


# pylint: disable-next=redefined-outer-name
def test_other_storage_rejections_are_not_conflicts(test_db, test_room, test_user, monkeypatch):
    # Skip the date rules so the row reaches the CHECK constraint on dates
    monkeypatch.setattr(reservations, "check_dates", lambda *args, **kwargs: VALID)

    with pytest.raises(StorageIntegrityError) as excinfo:
        commit_booking(test_db, test_room, test_user.id, future(3), future(3))

    assert not isinstance(excinfo.value, ConflictError)
    assert excinfo.value.code == "integrity_error"
    assert active_bookings(test_room.id) == []

