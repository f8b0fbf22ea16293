"""
Pydantic schemas for scheduling payload validation.

This module exports the payload schemas consumed by EventService.
"""

from backend.src.schemas.event import (
    DATE_FIELDS,
    RECURRENCE_FIELDS,
    EventCreate,
    EventUpdate,
)

__all__ = [
    "DATE_FIELDS",
    "RECURRENCE_FIELDS",
    "EventCreate",
    "EventUpdate",
]
