"""
Event model for marketplace events.

An Event is used as a standalone bookable item and, through recurrence, as
either a series template or one of its generated instances.

Design Rationale:
- Series role is derived from is_recurring and parent_event_id, never stored
- Templates keep the series bounds; instances copy the template content
- Soft delete via deleted_at preserves history (instances keep their parent link)
- All datetimes are naive UTC; timezone holds the display zone of the host
- Overlap checks treat [start_date, end_date) as half-open
"""

import enum
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, Numeric,
    ForeignKey, Index
)
from sqlalchemy.orm import relationship
from uuid_extensions import uuid7

from backend.src.models import Base
from backend.src.utils.time_utils import utcnow


class EventStatus(enum.Enum):
    """Event lifecycle status."""
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PUBLISHED = "PUBLISHED"
    OPEN = "OPEN"
    FULL = "FULL"
    POSTPONED = "POSTPONED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


# Statuses excluded from double-booking checks
TERMINAL_EVENT_STATUSES = (EventStatus.CANCELLED.value, EventStatus.COMPLETED.value)


class EventMode(enum.Enum):
    """Where the event takes place."""
    PHYSICAL = "PHYSICAL"
    VIRTUAL = "VIRTUAL"
    HYBRID = "HYBRID"


class RecurrencePattern(enum.Enum):
    """Step between two occurrences of a recurring series."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class SeriesRole(enum.Enum):
    """Recurrence role of an event."""
    STANDALONE = "standalone"
    TEMPLATE = "template"
    INSTANCE = "instance"


def _new_event_id() -> str:
    return str(uuid7())


class Event(Base):
    """
    Marketplace event model.

    Attributes:
        id: Opaque UUIDv7 string identifier
        slug: Unique human-readable identifier derived from the title

        Content Fields:
            title, description, short_description, category_id
            mode: PHYSICAL, VIRTUAL or HYBRID
            venue, address, city, country: Physical location
            virtual_meeting_url: Meeting link for virtual/hybrid events
            is_free, price, currency: Pricing flags (values only, no pricing logic)
            max_participants: Capacity

        Time Fields:
            start_date: Start of the event (naive UTC)
            end_date: End of the event, exclusive (naive UTC)
            timezone: IANA timezone for display

        Recurrence Fields:
            is_recurring: True only for series templates
            recurrence_pattern: DAILY, WEEKLY or MONTHLY (templates only)
            recurrence_end_date: Last allowed instance start (templates only)
            parent_event_id: Template id (instances only)

        Ownership / Status:
            host_id: Owning host
            status: EventStatus value
            published_at, cancelled_at: Lifecycle timestamps
            deleted_at: Soft delete timestamp (NULL = not deleted)

    Indexes:
        - slug (unique)
        - host_id, start_date, end_date (availability queries)
        - parent_event_id (series queries)
    """

    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_new_event_id)
    slug = Column(String(160), nullable=False, unique=True)

    # Content
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    short_description = Column(String(300), nullable=True)
    category_id = Column(String(36), nullable=True, index=True)

    mode = Column(String(16), default=EventMode.PHYSICAL.value, nullable=False)
    venue = Column(String(200), nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    virtual_meeting_url = Column(String(500), nullable=True)

    is_free = Column(Boolean, default=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), default="USD", nullable=False)
    max_participants = Column(Integer, nullable=True)

    # Time
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    timezone = Column(String(64), default="UTC", nullable=False)

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(String(16), nullable=True)
    recurrence_end_date = Column(DateTime, nullable=True)
    parent_event_id = Column(
        String(36),
        ForeignKey("events.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )

    # Ownership and status
    host_id = Column(String(36), nullable=False)
    status = Column(String(32), default=EventStatus.DRAFT.value, nullable=False)
    published_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    parent = relationship(
        "Event",
        remote_side=[id],
        back_populates="instances"
    )
    instances = relationship(
        "Event",
        back_populates="parent",
        lazy="dynamic"
    )
    bookings = relationship(
        "Booking",
        back_populates="event",
        lazy="dynamic"
    )

    __table_args__ = (
        Index("idx_events_host_window", "host_id", "start_date", "end_date"),
    )

    @property
    def role(self) -> SeriesRole:
        """Recurrence role derived from is_recurring and parent_event_id."""
        if self.parent_event_id is not None:
            return SeriesRole.INSTANCE
        if self.is_recurring:
            return SeriesRole.TEMPLATE
        return SeriesRole.STANDALONE

    @property
    def is_terminal(self) -> bool:
        """Terminal events no longer block the host's calendar."""
        return self.status in TERMINAL_EVENT_STATUSES

    def has_started(self, now: datetime) -> bool:
        return self.start_date <= now

    def __repr__(self) -> str:
        return (
            f"<Event("
            f"id='{self.id}', "
            f"slug='{self.slug}', "
            f"role={self.role.value}, "
            f"start={self.start_date}"
            f")>"
        )

    def __str__(self) -> str:
        return f"{self.title} ({self.start_date} - {self.end_date})"
