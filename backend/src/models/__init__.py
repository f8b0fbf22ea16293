"""
SQLAlchemy models for the event scheduling backend.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# All models inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
# This is required for Alembic autogenerate to detect models
from backend.src.models.event import (
    Event,
    EventStatus,
    EventMode,
    RecurrencePattern,
    SeriesRole,
    TERMINAL_EVENT_STATUSES,
)
from backend.src.models.booking import Booking, BookingStatus, INACTIVE_BOOKING_STATUSES

__all__ = [
    "Base",
    "Event",
    "EventStatus",
    "EventMode",
    "RecurrencePattern",
    "SeriesRole",
    "TERMINAL_EVENT_STATUSES",
    "Booking",
    "BookingStatus",
    "INACTIVE_BOOKING_STATUSES",
]
