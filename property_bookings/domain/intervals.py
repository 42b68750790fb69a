"""
Half-open stay intervals.

A stay occupies [check_in, check_out): the check-out instant itself is free,
so one guest can leave and the next arrive on the same day.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

from property_bookings.errors import ValidationError

SECONDS_PER_NIGHT = 86400


@dataclass(frozen=True)
class Interval:
    """
    Half-open interval [start, end) of aware datetimes.

    Raises:
        ValidationError: If start is not strictly before end
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError(
                "Check-in date must be before check-out date",
                {"check_in": self.start.isoformat(), "check_out": self.end.isoformat()},
            )

    @property
    def nights(self) -> int:
        return count_nights(self.start, self.end)

    def overlaps(self, other: Interval) -> bool:
        return overlaps(self, other)


def overlaps(a: Interval, b: Interval) -> bool:
    """
    Return True if two half-open intervals share any instant.

    Covers all three conflict shapes with one predicate: b starts during a,
    b ends during a, or b contains a. Touching endpoints do not overlap.

    Example:
        >>> overlaps(Interval(d(10), d(15)), Interval(d(12), d(18)))
        True
        >>> overlaps(Interval(d(10), d(15)), Interval(d(15), d(20)))
        False
    """
    return a.start < b.end and b.start < a.end


def count_nights(start: datetime, end: datetime) -> int:
    """Number of nights in [start, end), rounding partial days up."""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_NIGHT)
