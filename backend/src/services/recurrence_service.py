"""
Recurrence expansion for recurring event series.

Turns a template window, a recurrence pattern and a series end bound into the
ordered list of instance windows. Pure computation, no persistence.

Design:
- The k-th occurrence is computed from the template start (start + k * step),
  so monthly series on the 29th-31st clamp to short months without drifting
- Every instance keeps the template duration exactly
- The template's own window is never an instance
- Expansion stops at the bound or at the instance cap, whichever comes first
"""

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import List, Optional, Union

from dateutil.relativedelta import relativedelta

from backend.src.config.settings import MAX_SERIES_INSTANCES
from backend.src.models.event import RecurrencePattern
from backend.src.utils.logging_config import get_logger
from backend.src.utils.time_utils import TimeWindow


logger = get_logger("services")


# Minimum distance between series start and series end bound per pattern
MIN_SERIES_SPAN_DAYS = {
    RecurrencePattern.DAILY: 1,
    RecurrencePattern.WEEKLY: 7,
    RecurrencePattern.MONTHLY: 30,
}


@dataclass
class RecurrenceExpansion:
    """
    Result of expanding a recurring series.

    Attributes:
        windows: Instance windows, strictly increasing by start
        truncated: True if the cap stopped expansion before the bound
        cap: Instance cap in force during expansion
    """

    windows: List[TimeWindow] = field(default_factory=list)
    truncated: bool = False
    cap: int = MAX_SERIES_INSTANCES

    def __len__(self) -> int:
        return len(self.windows)

    def __iter__(self):
        return iter(self.windows)


def effective_series_bound(series_end: datetime) -> datetime:
    """
    Resolve the inclusive upper bound for instance starts.

    A bound at exactly midnight is a calendar-date bound ("until June 22")
    and admits occurrences at any time on that day.
    """
    if series_end.time() == time.min:
        return datetime.combine(series_end.date(), time.max)
    return series_end


def occurrence_start(
    template_start: datetime,
    pattern: Union[RecurrencePattern, str],
    index: int
) -> datetime:
    """
    Start of the ``index``-th occurrence after the template (index >= 1).

    DAILY adds days, WEEKLY adds weeks, MONTHLY adds calendar months
    (clamped to the last day of shorter months).
    """
    pattern = RecurrencePattern(pattern)
    if pattern is RecurrencePattern.DAILY:
        return template_start + timedelta(days=index)
    if pattern is RecurrencePattern.WEEKLY:
        return template_start + timedelta(weeks=index)
    return template_start + relativedelta(months=index)


class RecurrenceExpander:
    """
    Expands a series template into instance windows.

    Usage:
        >>> expander = RecurrenceExpander()
        >>> result = expander.expand(
        ...     datetime(2025, 6, 1, 10), datetime(2025, 6, 1, 12),
        ...     RecurrencePattern.WEEKLY, datetime(2025, 6, 22)
        ... )
        >>> [w.start.day for w in result]
        [8, 15, 22]
    """

    def __init__(self, max_instances: int = MAX_SERIES_INSTANCES):
        if max_instances < 1:
            raise ValueError("max_instances must be at least 1")
        self.max_instances = min(max_instances, MAX_SERIES_INSTANCES)

    def expand(
        self,
        template_start: datetime,
        template_end: datetime,
        pattern: Union[RecurrencePattern, str],
        series_end: datetime,
    ) -> RecurrenceExpansion:
        """
        Produce the ordered instance windows of a series.

        Args:
            template_start: Start of the template window
            template_end: End of the template window
            pattern: Recurrence pattern
            series_end: Last allowed instance start (inclusive, see effective_series_bound)

        Returns:
            RecurrenceExpansion with windows and truncation flag

        Raises:
            ValueError: If template_end is not after template_start
        """
        if template_end <= template_start:
            raise ValueError("template_end must be after template_start")

        duration = template_end - template_start
        bound = effective_series_bound(series_end)
        result = RecurrenceExpansion(cap=self.max_instances)

        index = 1
        start = occurrence_start(template_start, pattern, index)
        while start <= bound:
            if len(result.windows) >= self.max_instances:
                result.truncated = True
                break
            result.windows.append(TimeWindow(start, start + duration))
            index += 1
            start = occurrence_start(template_start, pattern, index)

        if result.truncated:
            logger.warning(
                f"Series expansion truncated at {self.max_instances} instances "
                f"(bound {series_end.isoformat()} not reached)"
            )
        return result

    @staticmethod
    def first_self_overlap(
        template: TimeWindow,
        expansion: RecurrenceExpansion
    ) -> Optional[TimeWindow]:
        """
        Find the first generated window that overlaps its predecessor.

        The predecessor of the first instance is the template window itself.
        A non-None result means the event lasts longer than the gap between
        occurrences and the series would double-book its own host.
        """
        previous = template
        for window in expansion.windows:
            if window.overlaps(previous):
                return window
            previous = window
        return None
