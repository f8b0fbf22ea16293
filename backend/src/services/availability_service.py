"""
Host availability service.

Detects double-booking: two non-terminal, non-deleted events of the same host
whose half-open [start_date, end_date) windows overlap.

Design:
- A single AND of two inequalities is the full overlap test
  (existing.start < candidate.end AND existing.end > candidate.start)
- Touching boundaries do not conflict
- On PostgreSQL a transaction-scoped advisory lock per host serializes
  concurrent check-then-write sequences; the exclusion constraint created by
  the initial migration is the storage-level backstop
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.src.models import Event, TERMINAL_EVENT_STATUSES
from backend.src.services.exceptions import ConflictError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")
db_logger = get_logger("db")


class AvailabilityService:
    """
    Service answering "is this host free during this window?".

    Usage:
        >>> service = AvailabilityService(db_session)
        >>> service.has_conflict(host_id, start, end, exclude_event_id=event.id)
        False
    """

    def __init__(self, db: Session):
        """
        Initialize availability service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def _is_postgresql(self) -> bool:
        try:
            return self.db.get_bind().dialect.name == "postgresql"
        except Exception:
            return False

    def acquire_host_lock(self, host_id: str) -> None:
        """
        Serialize scheduling writes for one host until the transaction ends.

        Uses pg_advisory_xact_lock keyed on the host id. SQLite serializes
        writers on its own, so the call is a no-op there.
        """
        if not self._is_postgresql():
            return
        self.db.execute(select(func.pg_advisory_xact_lock(func.hashtext(host_id))))
        db_logger.debug(f"Acquired scheduling lock for host {host_id}")

    def find_conflict(
        self,
        host_id: str,
        start: datetime,
        end: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> Optional[Event]:
        """
        Find the earliest event of the host overlapping [start, end).

        Args:
            host_id: Host whose calendar is checked
            start: Candidate window start
            end: Candidate window end (exclusive)
            exclude_event_id: Event to ignore (the event being updated)

        Returns:
            Conflicting Event, or None if the host is free
        """
        query = self.db.query(Event).filter(
            Event.host_id == host_id,
            Event.deleted_at.is_(None),
            Event.status.notin_(TERMINAL_EVENT_STATUSES),
            Event.start_date < end,
            Event.end_date > start,
        )
        if exclude_event_id is not None:
            query = query.filter(Event.id != exclude_event_id)

        return query.order_by(Event.start_date.asc()).first()

    def has_conflict(
        self,
        host_id: str,
        start: datetime,
        end: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> bool:
        """Check whether any event of the host overlaps [start, end)."""
        return self.find_conflict(host_id, start, end, exclude_event_id) is not None

    def ensure_available(
        self,
        host_id: str,
        start: datetime,
        end: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> None:
        """
        Raise if the host is busy during [start, end).

        Raises:
            ConflictError: Carrying the conflicting event id, title and window
        """
        conflict = self.find_conflict(host_id, start, end, exclude_event_id)
        if conflict is not None:
            raise self.conflict_error(conflict)

    @staticmethod
    def conflict_error(conflict: Event) -> ConflictError:
        """Build the double-booking error for a conflicting event."""
        logger.info(
            f"Host {conflict.host_id} double-booking rejected: "
            f"overlaps event {conflict.id}"
        )
        return ConflictError(
            f"Host is not available during this time. Conflicting event: "
            f"\"{conflict.title}\" ({conflict.start_date.isoformat()} - "
            f"{conflict.end_date.isoformat()}). Please choose a different time slot.",
            conflicting_event_id=conflict.id,
            conflicting_event_title=conflict.title,
            conflicting_start=conflict.start_date,
            conflicting_end=conflict.end_date,
        )
