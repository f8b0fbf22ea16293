"""
Booking model.

Bookings are owned by the bookings subsystem; the scheduling core only reads
them to count active bookings that block date changes.
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.utils.time_utils import utcnow


class BookingStatus(enum.Enum):
    """Booking lifecycle status."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    ATTENDED = "ATTENDED"
    NO_SHOW = "NO_SHOW"
    WAITLISTED = "WAITLISTED"


# Bookings in these statuses no longer hold a seat
INACTIVE_BOOKING_STATUSES = (BookingStatus.CANCELLED.value, BookingStatus.REFUNDED.value)


class Booking(Base):
    """
    Booking of a user on an event.

    Attributes:
        id: Primary key
        event_id: FK to the booked Event (standalone or instance)
        user_id: Booking user
        status: BookingStatus value
        created_at: Creation timestamp
    """

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        String(36),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String(32), default=BookingStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    event = relationship("Event", back_populates="bookings")

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_BOOKING_STATUSES

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, event_id='{self.event_id}', status={self.status})>"
