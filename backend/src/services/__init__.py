"""
Service layer for event scheduling.

This module exports the service classes used by the hosting application.
"""

from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ForbiddenError,
    ValidationError,
    ConflictError,
    InvalidOperationError,
)
from backend.src.services.slug_service import SlugService
from backend.src.services.recurrence_service import (
    RecurrenceExpander,
    RecurrenceExpansion,
)
from backend.src.services.availability_service import AvailabilityService
from backend.src.services.mutation_policy import (
    Allow,
    Deny,
    DenialKind,
    EventMutationPolicy,
    MutationContext,
)
from backend.src.services.series_service import SeriesService
from backend.src.services.audit_service import (
    AuditEntry,
    AuditRecorder,
    AuditService,
    LoggingAuditRecorder,
)
from backend.src.services.event_service import EventCreateResult, EventService

__all__ = [
    "ServiceError",
    "NotFoundError",
    "ForbiddenError",
    "ValidationError",
    "ConflictError",
    "InvalidOperationError",
    "SlugService",
    "RecurrenceExpander",
    "RecurrenceExpansion",
    "AvailabilityService",
    "Allow",
    "Deny",
    "DenialKind",
    "EventMutationPolicy",
    "MutationContext",
    "SeriesService",
    "AuditEntry",
    "AuditRecorder",
    "AuditService",
    "LoggingAuditRecorder",
    "EventCreateResult",
    "EventService",
]
