from dataclasses import dataclass
from datetime import date


def intervals_overlap(a_start, a_end, b_start, b_end):
    """Half-open overlap test: [a_start, a_end) and [b_start, b_end) share a point."""
    return a_start < b_end and b_start < a_end


@dataclass(frozen=True)
class DateRange:
    """
    A stay as the half-open interval [start, end).

    The end date is the checkout day and is not occupied, so a range ending on
    a given day never overlaps one starting on that same day.
    """

    start: date
    end: date

    @property
    def nights(self) -> int:
        return (self.end - self.start).days

    def overlaps(self, other: "DateRange") -> bool:
        return intervals_overlap(self.start, self.end, other.start, other.end)

    def __str__(self):
        return f"{self.start.isoformat()} to {self.end.isoformat()}"
