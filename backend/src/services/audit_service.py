"""
Audit notifications for scheduling mutations.

The audit trail itself belongs to an external collaborator reached through
the AuditRecorder protocol. This module builds the entries and delivers them
without letting a recorder failure affect the mutation that was audited.

Design:
- Entries carry old/new snapshots of the event's persisted columns
- Delivery happens after the mutation committed
- Recorder exceptions are logged at WARNING and discarded
- An optional executor makes delivery fire-and-forget
"""

from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

from backend.src.config.settings import SchedulingSettings, get_settings
from backend.src.models import Event
from backend.src.utils.logging_config import get_logger
from backend.src.utils.time_utils import utcnow


logger = get_logger("audit")


def _snapshot_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def event_snapshot(event: Optional[Event]) -> Optional[Dict[str, Any]]:
    """
    Serialize the persisted columns of an event into a plain dict.

    Args:
        event: Event to snapshot (None yields None)

    Returns:
        Column name to JSON-friendly value mapping
    """
    if event is None:
        return None
    return {
        column.name: _snapshot_value(getattr(event, column.name))
        for column in Event.__table__.columns
    }


@dataclass(frozen=True)
class AuditEntry:
    """
    One audited scheduling mutation.

    Attributes:
        action: create, update, delete, publish or cancel
        entity_id: Id of the mutated event
        host_id: Host who performed the mutation
        old_values: Snapshot before the mutation (None on create)
        new_values: Snapshot after the mutation
        occurred_at: Naive UTC timestamp of the notification
    """

    action: str
    entity_id: str
    host_id: str
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    occurred_at: datetime = field(default_factory=utcnow)


class AuditRecorder(Protocol):
    """Sink for audit entries."""

    def record(self, entry: AuditEntry) -> None:
        ...


class LoggingAuditRecorder:
    """Recorder writing entries to the audit logger."""

    def record(self, entry: AuditEntry) -> None:
        logger.info(
            f"{entry.action} event {entry.entity_id} by host {entry.host_id}",
            extra={"extra_fields": {
                "action": entry.action,
                "entity_id": entry.entity_id,
                "host_id": entry.host_id,
                "old_values": entry.old_values,
                "new_values": entry.new_values,
            }}
        )


class AuditService:
    """
    Delivers audit entries to a recorder.

    Usage:
        >>> audit = AuditService(recorder, executor=ThreadPoolExecutor(max_workers=1))
        >>> audit.notify("update", event, host_id, old_values=before)
    """

    def __init__(
        self,
        recorder: Optional[AuditRecorder] = None,
        executor: Optional[Executor] = None,
        settings: Optional[SchedulingSettings] = None,
    ):
        """
        Initialize audit service.

        Args:
            recorder: Audit sink (defaults to LoggingAuditRecorder)
            executor: If given, entries are recorded on it without waiting
            settings: Scheduling settings (audit_enabled switch)
        """
        self.recorder = recorder or LoggingAuditRecorder()
        self.executor = executor
        self.enabled = (settings or get_settings()).audit_enabled

    def notify(
        self,
        action: str,
        event: Event,
        host_id: str,
        old_values: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        """
        Record a mutation that has already been committed.

        Args:
            action: Mutation name
            event: Event after the mutation
            host_id: Acting host
            old_values: Snapshot taken before the mutation

        Returns:
            The entry handed to the recorder, or None when auditing is disabled
        """
        if not self.enabled:
            return None

        try:
            entry = AuditEntry(
                action=action,
                entity_id=event.id,
                host_id=host_id,
                old_values=old_values,
                new_values=event_snapshot(event),
            )
            if self.executor is not None:
                self.executor.submit(self._deliver, entry)
                return entry
        except Exception as e:
            logger.warning(
                f"Audit notification failed for {action} on event {event.id}: {e}",
                extra={"extra_fields": {"action": action, "entity_id": event.id}}
            )
            return None

        self._deliver(entry)
        return entry

    def _deliver(self, entry: AuditEntry) -> None:
        try:
            self.recorder.record(entry)
        except Exception as e:
            logger.warning(
                f"Audit recording failed for {entry.action} on event {entry.entity_id}: {e}",
                extra={"extra_fields": {"action": entry.action, "entity_id": entry.entity_id}}
            )
