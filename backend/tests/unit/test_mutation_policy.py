"""
Unit tests for EventMutationPolicy.

Tests the role x bookings x field-diff table, cross-field rules, creation
rules and the translation of denials into service exceptions.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from backend.src.models import Event, SeriesRole
from backend.src.schemas.event import EventCreate
from backend.src.services.exceptions import (
    ConflictError,
    InvalidOperationError,
    ValidationError,
)
from backend.src.services.mutation_policy import (
    Allow,
    Deny,
    DenialKind,
    EventMutationPolicy,
    MutationContext,
)
from backend.src.services.recurrence_service import RecurrenceExpander


NOW = datetime(2025, 5, 1, 9, 0)
START = datetime(2025, 6, 1, 10, 0)
END = datetime(2025, 6, 1, 12, 0)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def policy():
    """Create a policy with a fixed clock."""
    return EventMutationPolicy(clock=lambda: NOW)


def make_event(role=SeriesRole.STANDALONE, **overrides):
    """Build a transient Event in the given series role."""
    values = dict(
        id="evt-1",
        title="Sunday Morning Yoga",
        start_date=START,
        end_date=END,
        mode="PHYSICAL",
        venue="Riverside Park",
        virtual_meeting_url=None,
        is_free=True,
        price=None,
        is_recurring=role is SeriesRole.TEMPLATE,
        recurrence_pattern="WEEKLY" if role is SeriesRole.TEMPLATE else None,
        recurrence_end_date=datetime(2025, 6, 22) if role is SeriesRole.TEMPLATE else None,
        parent_event_id="evt-template" if role is SeriesRole.INSTANCE else None,
    )
    values.update(overrides)
    return Event(**values)


def make_payload(**overrides):
    values = dict(
        title="Sunday Morning Yoga",
        start_date=START,
        end_date=END,
        venue="Riverside Park",
    )
    values.update(overrides)
    return EventCreate(**values)


# ============================================================================
# Role Table Tests
# ============================================================================


class TestDecide:
    """Tests for the pure role table."""

    @pytest.mark.parametrize("role", [SeriesRole.STANDALONE, SeriesRole.INSTANCE])
    def test_date_change_without_bookings_rechecks_availability(self, role):
        decision = EventMutationPolicy.decide(
            MutationContext(role=role, active_booking_count=0, dates_changed=True)
        )

        assert isinstance(decision, Allow)
        assert decision.recheck_availability is True
        assert decision.propagate_to_instances is False

    @pytest.mark.parametrize("role", [SeriesRole.STANDALONE, SeriesRole.INSTANCE])
    def test_date_change_with_bookings_denied(self, role):
        decision = EventMutationPolicy.decide(
            MutationContext(role=role, active_booking_count=2, dates_changed=True)
        )

        assert isinstance(decision, Deny)
        assert decision.kind is DenialKind.CONFLICT
        assert decision.booking_count == 2

    @pytest.mark.parametrize("role", [SeriesRole.STANDALONE, SeriesRole.INSTANCE, SeriesRole.TEMPLATE])
    def test_content_change_allowed_regardless_of_bookings(self, role):
        decision = EventMutationPolicy.decide(
            MutationContext(role=role, active_booking_count=5, dates_changed=False)
        )

        assert decision.allowed is True
        assert decision.recheck_availability is False

    @pytest.mark.parametrize("bookings", [0, 3])
    def test_template_date_change_never_allowed(self, bookings):
        decision = EventMutationPolicy.decide(
            MutationContext(role=SeriesRole.TEMPLATE, active_booking_count=bookings, dates_changed=True)
        )

        assert isinstance(decision, Deny)
        assert decision.kind is DenialKind.INVALID_OPERATION

    def test_template_propagation_opt_in(self):
        decision = EventMutationPolicy.decide(
            MutationContext(
                role=SeriesRole.TEMPLATE,
                active_booking_count=0,
                dates_changed=False,
                propagate_requested=True,
            )
        )

        assert decision == Allow(propagate_to_instances=True)

    @pytest.mark.parametrize("role", [SeriesRole.STANDALONE, SeriesRole.INSTANCE])
    def test_propagation_requires_template(self, role):
        decision = EventMutationPolicy.decide(
            MutationContext(role=role, active_booking_count=0, dates_changed=False, propagate_requested=True)
        )

        assert decision.kind is DenialKind.VALIDATION
        assert decision.field == "update_future_instances"

    @pytest.mark.parametrize("role", [SeriesRole.STANDALONE, SeriesRole.INSTANCE, SeriesRole.TEMPLATE])
    def test_recurrence_change_is_invalid_operation(self, role):
        decision = EventMutationPolicy.decide(
            MutationContext(role=role, active_booking_count=0, dates_changed=False, recurrence_changed=True)
        )

        assert decision.kind is DenialKind.INVALID_OPERATION


class TestDenyToError:
    """Tests for Deny.to_error."""

    def test_validation(self):
        error = Deny(DenialKind.VALIDATION, "bad", field="price").to_error()

        assert isinstance(error, ValidationError)
        assert error.field == "price"
        assert error.message == "bad"

    def test_conflict_carries_booking_count(self):
        error = Deny(DenialKind.CONFLICT, "booked", booking_count=1).to_error()

        assert isinstance(error, ConflictError)
        assert error.booking_count == 1

    def test_invalid_operation(self):
        error = Deny(DenialKind.INVALID_OPERATION, "recreate").to_error()

        assert isinstance(error, InvalidOperationError)


# ============================================================================
# Update Evaluation Tests
# ============================================================================


class TestEvaluateUpdate:
    """Tests for EventMutationPolicy.evaluate_update."""

    def test_same_dates_are_not_a_change(self, policy):
        """Supplying the current start/end does not count as a date change."""
        event = make_event()

        decision = policy.evaluate_update(
            event, {"start_date": START, "end_date": END, "title": "Renamed"}, active_booking_count=4
        )

        assert decision.allowed is True
        assert decision.recheck_availability is False

    def test_instance_reschedule_returns_new_window(self, policy):
        event = make_event(SeriesRole.INSTANCE)
        new_start = START + timedelta(hours=1)

        decision = policy.evaluate_update(event, {"start_date": new_start}, active_booking_count=0)

        assert decision.recheck_availability is True
        assert decision.new_window.start == new_start
        assert decision.new_window.end == END

    def test_instance_reschedule_with_booking_denied(self, policy):
        event = make_event(SeriesRole.INSTANCE)

        decision = policy.evaluate_update(
            event, {"start_date": START + timedelta(hours=1)}, active_booking_count=1
        )

        error = decision.to_error()
        assert isinstance(error, ConflictError)
        assert error.booking_count == 1

    def test_end_before_start_rejected(self, policy):
        decision = policy.evaluate_update(
            make_event(), {"end_date": START - timedelta(hours=1)}, active_booking_count=0
        )

        assert decision.kind is DenialKind.VALIDATION
        assert decision.field == "end_date"

    def test_started_event_start_cannot_move(self):
        started = EventMutationPolicy(clock=lambda: START + timedelta(minutes=30))

        decision = started.evaluate_update(
            make_event(), {"start_date": START + timedelta(minutes=45)}, active_booking_count=0
        )

        assert decision.field == "start_date"

    def test_started_event_end_can_move(self):
        started = EventMutationPolicy(clock=lambda: START + timedelta(minutes=30))

        decision = started.evaluate_update(
            make_event(), {"end_date": END + timedelta(hours=1)}, active_booking_count=0
        )

        assert decision.allowed is True
        assert decision.recheck_availability is True

    def test_paid_event_requires_price(self, policy):
        decision = policy.evaluate_update(make_event(), {"is_free": False}, active_booking_count=0)
        assert decision.field == "price"

        decision = policy.evaluate_update(
            make_event(), {"is_free": False, "price": Decimal("15.00")}, active_booking_count=0
        )
        assert decision.allowed is True

    def test_virtual_mode_requires_meeting_url(self, policy):
        decision = policy.evaluate_update(make_event(), {"mode": "VIRTUAL"}, active_booking_count=0)
        assert decision.field == "virtual_meeting_url"

    def test_hybrid_mode_requires_venue(self, policy):
        event = make_event(mode="VIRTUAL", venue=None, virtual_meeting_url="https://meet.example.com/y")

        decision = policy.evaluate_update(event, {"mode": "HYBRID"}, active_booking_count=0)

        assert decision.field == "venue"

    def test_clearing_venue_on_physical_event_rejected(self, policy):
        decision = policy.evaluate_update(make_event(), {"venue": None}, active_booking_count=0)
        assert decision.field == "venue"

    def test_required_field_cannot_be_cleared(self, policy):
        decision = policy.evaluate_update(make_event(), {"title": None}, active_booking_count=0)

        assert decision.kind is DenialKind.VALIDATION
        assert decision.field == "title"

    def test_template_reschedule_is_invalid_operation(self, policy):
        decision = policy.evaluate_update(
            make_event(SeriesRole.TEMPLATE), {"start_date": START + timedelta(days=1), "end_date": END + timedelta(days=1)},
            active_booking_count=0
        )

        assert isinstance(decision.to_error(), InvalidOperationError)

    def test_started_template_reschedule_is_invalid_operation(self):
        started = EventMutationPolicy(clock=lambda: START + timedelta(hours=1))

        decision = started.evaluate_update(
            make_event(SeriesRole.TEMPLATE),
            {"start_date": START + timedelta(days=1), "end_date": END + timedelta(days=1)},
            active_booking_count=0
        )

        assert decision.kind is DenialKind.INVALID_OPERATION

    def test_template_end_before_start_is_invalid_operation(self, policy):
        decision = policy.evaluate_update(
            make_event(SeriesRole.TEMPLATE), {"end_date": START - timedelta(hours=1)}, active_booking_count=0
        )

        assert decision.kind is DenialKind.INVALID_OPERATION

    def test_template_recurrence_change_is_invalid_operation(self, policy):
        decision = policy.evaluate_update(
            make_event(SeriesRole.TEMPLATE), {"recurrence_pattern": "DAILY"}, active_booking_count=0
        )

        assert decision.kind is DenialKind.INVALID_OPERATION

    def test_standalone_cannot_become_series(self, policy):
        decision = policy.evaluate_update(
            make_event(), {"is_recurring": True, "recurrence_pattern": "WEEKLY"}, active_booking_count=0
        )

        assert decision.kind is DenialKind.INVALID_OPERATION

    def test_template_content_update_with_propagation(self, policy):
        decision = policy.evaluate_update(
            make_event(SeriesRole.TEMPLATE),
            {"description": "Bring a mat"},
            active_booking_count=0,
            update_future_instances=True,
        )

        assert decision.allowed is True
        assert decision.propagate_to_instances is True


# ============================================================================
# Creation Tests
# ============================================================================


class TestValidateCreation:
    """Tests for EventMutationPolicy.validate_creation."""

    def test_valid_standalone(self, policy):
        policy.validate_creation(make_payload())

    def test_valid_weekly_series(self, policy):
        policy.validate_creation(make_payload(
            is_recurring=True,
            recurrence_pattern="WEEKLY",
            recurrence_end_date=datetime(2025, 6, 22),
        ))

    @pytest.mark.parametrize("overrides,field", [
        ({"end_date": START}, "end_date"),
        ({"start_date": datetime(2025, 4, 30, 10), "end_date": datetime(2025, 4, 30, 12)}, "start_date"),
        ({"is_free": False}, "price"),
        ({"is_free": False, "price": Decimal("0")}, "price"),
        ({"venue": None}, "venue"),
        ({"mode": "VIRTUAL", "venue": None}, "virtual_meeting_url"),
        ({"mode": "HYBRID", "virtual_meeting_url": "https://meet.example.com/y", "venue": None}, "venue"),
        ({"is_recurring": True, "recurrence_pattern": "WEEKLY"}, "recurrence_pattern"),
        ({"is_recurring": True, "recurrence_end_date": datetime(2025, 6, 22)}, "recurrence_pattern"),
        ({"recurrence_pattern": "WEEKLY"}, "recurrence_pattern"),
        (
            {"is_recurring": True, "recurrence_pattern": "DAILY", "recurrence_end_date": datetime(2025, 5, 31)},
            "recurrence_end_date",
        ),
        (
            {"is_recurring": True, "recurrence_pattern": "WEEKLY", "recurrence_end_date": datetime(2025, 6, 5)},
            "recurrence_end_date",
        ),
        (
            {"is_recurring": True, "recurrence_pattern": "MONTHLY", "recurrence_end_date": datetime(2025, 6, 20)},
            "recurrence_end_date",
        ),
    ])
    def test_rule_violations(self, policy, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            policy.validate_creation(make_payload(**overrides))

        assert exc_info.value.field == field

    def test_bound_before_first_end_rejected(self, policy):
        """A multi-day event must end before the series bound."""
        payload = make_payload(
            end_date=datetime(2025, 6, 9, 12),
            is_recurring=True,
            recurrence_pattern="DAILY",
            recurrence_end_date=datetime(2025, 6, 5, 12),
        )

        with pytest.raises(ValidationError) as exc_info:
            policy.validate_creation(payload)

        assert exc_info.value.field == "recurrence_end_date"


class TestValidateExpansion:
    """Tests for EventMutationPolicy.validate_expansion."""

    def test_no_instances_rejected(self):
        """Monthly series whose first step lands after the bound."""
        payload = make_payload(
            start_date=datetime(2025, 3, 1, 10),
            end_date=datetime(2025, 3, 1, 12),
            is_recurring=True,
            recurrence_pattern="MONTHLY",
            recurrence_end_date=datetime(2025, 3, 31, 10),
        )
        expansion = RecurrenceExpander().expand(
            payload.start_date, payload.end_date, "MONTHLY", payload.recurrence_end_date
        )

        with pytest.raises(ValidationError) as exc_info:
            EventMutationPolicy.validate_expansion(payload, expansion)

        assert exc_info.value.field == "recurrence_end_date"

    def test_event_longer_than_interval_rejected(self):
        payload = make_payload(
            end_date=START + timedelta(hours=30),
            is_recurring=True,
            recurrence_pattern="DAILY",
            recurrence_end_date=datetime(2025, 6, 10),
        )
        expansion = RecurrenceExpander().expand(
            payload.start_date, payload.end_date, "DAILY", payload.recurrence_end_date
        )

        with pytest.raises(ValidationError) as exc_info:
            EventMutationPolicy.validate_expansion(payload, expansion)

        assert exc_info.value.field == "end_date"
