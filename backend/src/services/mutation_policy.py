"""
Mutation policy for events and recurring series.

Decides whether a create or update is permitted, given the event's series
role, its active booking count and the fields being changed.

Design:
- Every decision is an explicit value: Allow or Deny
- Deny carries the error kind, reason, field and booking count, and turns
  into the matching service exception with to_error()
- decide() is the pure role x bookings x field-diff table; field rules and
  payload diffing sit around it
- "Now" comes from an injectable clock

Role table (dates = start_date/end_date actually changing):
    standalone + dates  -> allowed with 0 active bookings, recheck availability
    standalone          -> allowed
    template   + dates  -> never (cancel and recreate the series)
    template            -> allowed, optional propagation to future instances
    instance   + dates  -> allowed with 0 active bookings, recheck availability
    instance            -> allowed
"""

import enum
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional, Union

from backend.src.models.event import Event, EventMode, RecurrencePattern, SeriesRole
from backend.src.schemas.event import DATE_FIELDS, RECURRENCE_FIELDS, EventCreate
from backend.src.services.exceptions import (
    ConflictError,
    InvalidOperationError,
    ServiceError,
    ValidationError,
)
from backend.src.services.recurrence_service import (
    MIN_SERIES_SPAN_DAYS,
    RecurrenceExpander,
    RecurrenceExpansion,
    effective_series_bound,
)
from backend.src.utils.time_utils import Clock, TimeWindow, utcnow


# Fields that may not be cleared once set
NON_NULLABLE_FIELDS = ("title", "start_date", "end_date", "mode", "is_free", "currency", "timezone")

_VENUE_MODES = (EventMode.PHYSICAL.value, EventMode.HYBRID.value)
_MEETING_URL_MODES = (EventMode.VIRTUAL.value, EventMode.HYBRID.value)


class DenialKind(enum.Enum):
    """Category of a denied mutation."""
    VALIDATION = "validation"
    CONFLICT = "conflict"
    INVALID_OPERATION = "invalid_operation"


@dataclass(frozen=True)
class Allow:
    """
    Mutation permitted.

    Attributes:
        recheck_availability: The schedule changes; the new window must be
            checked against the host's other events (excluding this one)
        propagate_to_instances: Copy content changes to future instances
        new_window: Effective window after the update
    """

    recheck_availability: bool = False
    propagate_to_instances: bool = False
    new_window: Optional[TimeWindow] = None

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    """Mutation refused, with enough context for the caller to act."""

    kind: DenialKind
    reason: str
    field: Optional[str] = None
    booking_count: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return False

    def to_error(self) -> ServiceError:
        """Translate the denial into the service exception for its kind."""
        if self.kind is DenialKind.CONFLICT:
            return ConflictError(self.reason, booking_count=self.booking_count)
        if self.kind is DenialKind.INVALID_OPERATION:
            return InvalidOperationError(self.reason)
        return ValidationError(self.reason, field=self.field)


MutationDecision = Union[Allow, Deny]


@dataclass(frozen=True)
class MutationContext:
    """Inputs of the role table."""

    role: SeriesRole
    active_booking_count: int
    dates_changed: bool
    recurrence_changed: bool = False
    propagate_requested: bool = False


def _invalid(reason: str, field: str) -> ValidationError:
    return ValidationError(reason, field=field)


class EventMutationPolicy:
    """
    Rules governing event creation and mutation.

    Usage:
        >>> policy = EventMutationPolicy(clock=lambda: datetime(2025, 5, 1))
        >>> decision = policy.evaluate_update(event, payload.changes(), active_booking_count=0)
        >>> if not decision.allowed:
        ...     raise decision.to_error()
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utcnow

    # =========================================================================
    # Role table
    # =========================================================================

    @staticmethod
    def decide(
        context: MutationContext,
        new_window: Optional[TimeWindow] = None
    ) -> MutationDecision:
        """
        Apply the role x bookings x field-diff table.

        Args:
            context: Role, booking count and what is changing
            new_window: Effective window after the update (for Allow)

        Returns:
            Allow or Deny
        """
        role = context.role

        if context.recurrence_changed:
            if role is SeriesRole.TEMPLATE:
                return Deny(
                    DenialKind.INVALID_OPERATION,
                    "The recurrence of a series cannot be changed. "
                    "Cancel the series and create a new one instead."
                )
            return Deny(
                DenialKind.INVALID_OPERATION,
                "An existing event cannot be turned into a recurring series. "
                "Create a new recurring event instead."
            )

        if context.propagate_requested and role is not SeriesRole.TEMPLATE:
            return Deny(
                DenialKind.VALIDATION,
                "update_future_instances only applies to recurring series templates",
                field="update_future_instances"
            )

        if role is SeriesRole.TEMPLATE:
            if context.dates_changed:
                return Deny(
                    DenialKind.INVALID_OPERATION,
                    "The schedule of a recurring series cannot be changed. "
                    "Cancel the series and create a new one instead."
                )
            return Allow(propagate_to_instances=context.propagate_requested)

        # Standalone events and series instances share the same rule
        if context.dates_changed:
            if context.active_booking_count > 0:
                return Deny(
                    DenialKind.CONFLICT,
                    f"Cannot change the dates of an event with "
                    f"{context.active_booking_count} active booking(s)",
                    booking_count=context.active_booking_count
                )
            return Allow(recheck_availability=True, new_window=new_window)

        return Allow(new_window=new_window)

    # =========================================================================
    # Update
    # =========================================================================

    @staticmethod
    def changed_fields(event: Event, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Subset of ``changes`` whose value differs from the event's current value."""
        return {
            key: value for key, value in changes.items()
            if getattr(event, key, None) != value
        }

    def evaluate_update(
        self,
        event: Event,
        changes: Dict[str, Any],
        active_booking_count: int,
        update_future_instances: bool = False,
    ) -> MutationDecision:
        """
        Decide whether an update payload may be applied to an event.

        Args:
            event: Current event row
            changes: Explicitly provided fields (EventUpdate.changes())
            active_booking_count: Active bookings of this event
            update_future_instances: Caller opted into series propagation

        Returns:
            Allow or Deny
        """
        diff = self.changed_fields(event, changes)
        context = MutationContext(
            role=event.role,
            active_booking_count=active_booking_count,
            dates_changed=any(name in diff for name in DATE_FIELDS),
            recurrence_changed=any(name in diff for name in RECURRENCE_FIELDS),
            propagate_requested=update_future_instances,
        )

        # Series structure changes are refused whatever the new values are
        if context.recurrence_changed or (
            context.role is SeriesRole.TEMPLATE and context.dates_changed
        ):
            return self.decide(context)

        denial = self.check_field_rules(event, changes, diff)
        if denial is not None:
            return denial

        new_window = TimeWindow(
            changes.get("start_date", event.start_date),
            changes.get("end_date", event.end_date),
        )
        return self.decide(context, new_window)

    def check_field_rules(
        self,
        event: Event,
        changes: Dict[str, Any],
        diff: Dict[str, Any],
    ) -> Optional[Deny]:
        """
        Cross-field rules applied to every role.

        Values missing from the payload fall back to the event's current
        values, so a payload is judged by the event it would produce.
        """
        for name in NON_NULLABLE_FIELDS:
            if name in changes and changes[name] is None:
                return Deny(DenialKind.VALIDATION, f"{name} cannot be cleared", field=name)

        new_start = changes.get("start_date", event.start_date)
        new_end = changes.get("end_date", event.end_date)
        if new_end <= new_start:
            return Deny(DenialKind.VALIDATION, "End date must be after start date", field="end_date")

        if "start_date" in diff and event.has_started(self.clock()):
            return Deny(
                DenialKind.VALIDATION,
                "Cannot change the start date of an event that has already started",
                field="start_date"
            )

        if changes.get("is_free") is False:
            price = changes.get("price", event.price)
            if not price or price <= 0:
                return Deny(DenialKind.VALIDATION, "Price is required for paid events", field="price")

        mode = changes.get("mode", event.mode)
        if "mode" in changes or "venue" in changes:
            if mode in _VENUE_MODES and not changes.get("venue", event.venue):
                return Deny(
                    DenialKind.VALIDATION,
                    "Venue is required for physical/hybrid events",
                    field="venue"
                )
        if "mode" in changes or "virtual_meeting_url" in changes:
            url = changes.get("virtual_meeting_url", event.virtual_meeting_url)
            if mode in _MEETING_URL_MODES and not url:
                return Deny(
                    DenialKind.VALIDATION,
                    "Virtual meeting URL is required for virtual/hybrid events",
                    field="virtual_meeting_url"
                )

        return None

    # =========================================================================
    # Creation
    # =========================================================================

    def validate_creation(self, payload: EventCreate) -> None:
        """
        Validate a creation payload.

        Raises:
            ValidationError: On the first violated rule, naming its field
        """
        if payload.end_date <= payload.start_date:
            raise _invalid("End date must be after start date", "end_date")

        if payload.start_date < self.clock():
            raise _invalid("Start date cannot be in the past", "start_date")

        if payload.is_free is False and (not payload.price or payload.price <= 0):
            raise _invalid("Price is required for paid events", "price")

        mode = payload.mode.value
        if mode in _VENUE_MODES and not payload.venue:
            raise _invalid("Venue is required for physical/hybrid events", "venue")
        if mode in _MEETING_URL_MODES and not payload.virtual_meeting_url:
            raise _invalid("Virtual meeting URL is required for virtual/hybrid events", "virtual_meeting_url")

        if payload.is_recurring:
            self._validate_recurrence(payload)
        elif payload.recurrence_pattern is not None or payload.recurrence_end_date is not None:
            raise _invalid(
                "Recurrence pattern and end date are only valid for recurring events",
                "recurrence_pattern"
            )

    def _validate_recurrence(self, payload: EventCreate) -> None:
        if payload.recurrence_pattern is None or payload.recurrence_end_date is None:
            raise _invalid(
                "Recurrence pattern and end date required for recurring events",
                "recurrence_pattern"
            )

        bound = effective_series_bound(payload.recurrence_end_date)
        if bound <= payload.start_date:
            raise _invalid("Recurrence end date must be after event start date", "recurrence_end_date")

        if bound < payload.end_date:
            raise _invalid(
                "Recurrence end date must be at or after the first event instance end date",
                "recurrence_end_date"
            )

        pattern = RecurrencePattern(payload.recurrence_pattern)
        min_days = MIN_SERIES_SPAN_DAYS[pattern]
        if (bound - payload.start_date) // timedelta(days=1) < min_days:
            raise _invalid(
                f"Recurrence end date must be at least {min_days} day(s) after "
                f"start date for {pattern.value} series",
                "recurrence_end_date"
            )

    @staticmethod
    def validate_expansion(payload: EventCreate, expansion: RecurrenceExpansion) -> None:
        """
        Validate the generated instance windows of a new series.

        Raises:
            ValidationError: If no instance fits before the end bound, or if
                the event lasts longer than the gap between occurrences
        """
        if not expansion.windows:
            raise _invalid(
                "Recurrence end date leaves room for no instance after the first event",
                "recurrence_end_date"
            )

        template = TimeWindow(payload.start_date, payload.end_date)
        if RecurrenceExpander.first_self_overlap(template, expansion) is not None:
            raise _invalid(
                "Event duration must be shorter than the recurrence interval",
                "end_date"
            )
