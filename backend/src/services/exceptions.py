"""
Custom exceptions for service layer.

Provides specific exception types for scheduling rule violations
that can be translated to appropriate HTTP responses by the caller.
"""

from datetime import datetime
from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class ForbiddenError(ServiceError):
    """Raised when the caller does not own the resource being mutated."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class ConflictError(ServiceError):
    """
    Raised when an operation conflicts with existing state.

    Two flavours share this type:
    - double-booking: the conflicting_* attributes describe the blocking event
    - blocked by bookings: booking_count holds the number of active bookings
    """

    def __init__(
        self,
        message: str,
        conflicting_event_id: Optional[str] = None,
        conflicting_event_title: Optional[str] = None,
        conflicting_start: Optional[datetime] = None,
        conflicting_end: Optional[datetime] = None,
        booking_count: Optional[int] = None,
    ):
        self.message = message
        self.conflicting_event_id = conflicting_event_id
        self.conflicting_event_title = conflicting_event_title
        self.conflicting_start = conflicting_start
        self.conflicting_end = conflicting_end
        self.booking_count = booking_count
        super().__init__(message)


class InvalidOperationError(ServiceError):
    """
    Raised when an operation is structurally disallowed.

    Example: changing the schedule of a recurring series template, which
    requires cancelling the series and creating a new one.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
