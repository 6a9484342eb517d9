from datetime import date

import pytest

from hotel_booking.utils.intervals import DateRange, intervals_overlap


def d(day, month=3):
    return date(2025, month, day)


EXISTING = DateRange(d(10), d(15))


@pytest.mark.parametrize(
    "candidate",
    [
        DateRange(d(10), d(15)),  # exact match
        DateRange(d(8), d(11)),  # overlaps the start
        DateRange(d(14), d(20)),  # overlaps the end
        DateRange(d(11), d(13)),  # inside
        DateRange(d(1), d(25)),  # around
    ],
)
def test_overlapping_shapes(candidate):
    assert EXISTING.overlaps(candidate)
    assert candidate.overlaps(EXISTING)


@pytest.mark.parametrize(
    "candidate",
    [
        DateRange(d(5), d(10)),  # checks out the day the existing stay arrives
        DateRange(d(15), d(20)),  # arrives the day the existing stay leaves
        DateRange(d(1), d(3)),
        DateRange(d(20), d(25)),
    ],
)
def test_disjoint_and_touching_ranges_do_not_overlap(candidate):
    assert not EXISTING.overlaps(candidate)
    assert not candidate.overlaps(EXISTING)


def test_touching_example_from_turnover_day():
    first = DateRange(date(2025, 3, 1), date(2025, 3, 5))
    second = DateRange(date(2025, 3, 5), date(2025, 3, 10))
    assert not first.overlaps(second)


def test_raw_predicate_matches_range():
    assert intervals_overlap(d(1), d(5), d(4), d(6))
    assert not intervals_overlap(d(1), d(5), d(5), d(6))


def test_nights_span_month_end():
    stay = DateRange(date(2025, 2, 27), date(2025, 3, 2))
    assert stay.nights == 3
    assert DateRange(d(5), d(5)).nights == 0


def test_str_is_readable():
    assert str(DateRange(d(1), d(4))) == "2025-03-01 to 2025-03-04"
