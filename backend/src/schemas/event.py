"""
Pydantic schemas for event scheduling payloads.

Provides shape validation for:
- Event creation payloads (standalone or recurring series)
- Event update payloads (partial; only explicitly set fields are applied)

Design:
- Schemas check types, enums and length limits only
- Cross-field scheduling rules live in EventMutationPolicy so that every
  violation surfaces as a service ValidationError with its field name
- Datetimes are normalized to naive UTC on the way in
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from backend.src.models.event import EventMode, RecurrencePattern
from backend.src.utils.time_utils import to_utc_naive


# Fields that control the schedule of an event
DATE_FIELDS = ("start_date", "end_date")

# Fields that control the shape of a recurring series
RECURRENCE_FIELDS = ("is_recurring", "recurrence_pattern", "recurrence_end_date")


class _EventContent(BaseModel):
    """Content fields shared by create and update payloads."""

    description: Optional[str] = Field(default=None, max_length=5000)
    short_description: Optional[str] = Field(default=None, max_length=300)
    category_id: Optional[str] = Field(default=None, max_length=36)

    venue: Optional[str] = Field(default=None, max_length=200)
    address: Optional[str] = Field(default=None, max_length=500)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    virtual_meeting_url: Optional[str] = Field(default=None, max_length=500)

    price: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    max_participants: Optional[int] = Field(default=None, gt=0)

    timezone: Optional[str] = Field(default=None, max_length=64)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        """Currency codes are stored upper-case."""
        return v.upper() if v else v


class EventCreate(_EventContent):
    """
    Schema for creating an event or a recurring series.

    Required:
        title: Event title
        start_date: Start of the first occurrence
        end_date: End of the first occurrence
        mode: PHYSICAL, VIRTUAL or HYBRID

    Recurring series:
        is_recurring: True to create a template plus generated instances
        recurrence_pattern: DAILY, WEEKLY or MONTHLY
        recurrence_end_date: Last allowed instance start
    """

    title: str = Field(..., min_length=3, max_length=200)
    start_date: datetime
    end_date: datetime
    mode: EventMode = Field(default=EventMode.PHYSICAL)
    is_free: bool = Field(default=True)

    is_recurring: bool = Field(default=False)
    recurrence_pattern: Optional[RecurrencePattern] = Field(default=None)
    recurrence_end_date: Optional[datetime] = Field(default=None)

    @field_validator("start_date", "end_date", "recurrence_end_date")
    @classmethod
    def normalize_datetime(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store everything as naive UTC."""
        return to_utc_naive(v)

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Sunday Morning Yoga",
                "start_date": "2025-06-01T10:00:00Z",
                "end_date": "2025-06-01T12:00:00Z",
                "mode": "PHYSICAL",
                "venue": "Riverside Park",
                "is_recurring": True,
                "recurrence_pattern": "WEEKLY",
                "recurrence_end_date": "2025-06-22T00:00:00Z",
            }
        }
    }


class EventUpdate(_EventContent):
    """
    Schema for updating an event.

    All fields are optional. Only fields explicitly present in the payload
    are considered changes (see ``changes()``).

    update_future_instances applies only to series templates: when True,
    content changes are copied to every instance that has not started yet.
    """

    title: Optional[str] = Field(default=None, min_length=3, max_length=200)
    start_date: Optional[datetime] = Field(default=None)
    end_date: Optional[datetime] = Field(default=None)
    mode: Optional[EventMode] = Field(default=None)
    is_free: Optional[bool] = Field(default=None)

    is_recurring: Optional[bool] = Field(default=None)
    recurrence_pattern: Optional[RecurrencePattern] = Field(default=None)
    recurrence_end_date: Optional[datetime] = Field(default=None)

    update_future_instances: bool = Field(default=False)

    @field_validator("start_date", "end_date", "recurrence_end_date")
    @classmethod
    def normalize_datetime(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store everything as naive UTC."""
        return to_utc_naive(v)

    def changes(self) -> Dict[str, Any]:
        """
        Explicitly provided field values, enums flattened to their values.

        ``update_future_instances`` is a directive, not a field, and is
        never part of the result.
        """
        data = self.model_dump(exclude_unset=True, exclude={"update_future_instances"})
        return {
            key: value.value if isinstance(value, (EventMode, RecurrencePattern)) else value
            for key, value in data.items()
        }
