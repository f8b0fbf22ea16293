"""
Time helpers shared by the scheduling services.

All datetimes handled by the scheduling core are naive UTC. Aware values
coming from callers are converted once at the edge with ``to_utc_naive``.
Intervals are half-open: ``[start, end)``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional


# Injectable source of "now" (naive UTC)
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC.

    Naive values are assumed to already be UTC.

    Args:
        value: Aware or naive datetime (or None)

    Returns:
        Naive UTC datetime, or None when value is None
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def windows_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime
) -> bool:
    """
    Check whether two half-open intervals overlap.

    ``[a_start, a_end)`` and ``[b_start, b_end)`` overlap iff each one starts
    before the other ends. Touching boundaries do not overlap.
    """
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class TimeWindow:
    """A half-open ``[start, end)`` time window."""

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        return windows_overlap(self.start, self.end, other.start, other.end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"
