"""
Series service for recurring event series.

Reads the instances of a series template and propagates content edits from
the template to the instances that have not started yet.

Design:
- Propagation is all-or-nothing: template and instances share one commit
- Instances that already started keep their content
- Schedule and recurrence fields never propagate; each instance keeps its
  own window and its parent link
- Future instances are row-locked (SELECT ... FOR UPDATE) on PostgreSQL
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.src.models import Event
from backend.src.utils.logging_config import get_logger
from backend.src.utils.time_utils import Clock, utcnow


logger = get_logger("services")


# Fields that never propagate from a template to its instances
NON_PROPAGATING_FIELDS = frozenset({
    "start_date",
    "end_date",
    "timezone",
    "is_recurring",
    "recurrence_pattern",
    "recurrence_end_date",
    "parent_event_id",
    "update_future_instances",
})


class SeriesService:
    """
    Service for recurring series reads and content propagation.

    Usage:
        >>> service = SeriesService(db_session)
        >>> service.propagate_content_update(template, {"description": "New"})
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        """
        Initialize series service.

        Args:
            db: SQLAlchemy database session
            clock: Callable returning the current naive UTC time
        """
        self.db = db
        self.clock = clock or utcnow

    def _is_sqlite(self) -> bool:
        try:
            return self.db.get_bind().dialect.name == "sqlite"
        except Exception:
            return False

    def list_instances(self, template_id: str, include_deleted: bool = False) -> List[Event]:
        """
        List the instances of a series, ordered by start.

        Args:
            template_id: Series template id
            include_deleted: If True, include soft-deleted instances

        Returns:
            List of instance events
        """
        query = self.db.query(Event).filter(Event.parent_event_id == template_id)
        if not include_deleted:
            query = query.filter(Event.deleted_at.is_(None))
        return query.order_by(Event.start_date.asc()).all()

    def list_future_instances(self, template_id: str, lock: bool = False) -> List[Event]:
        """
        List non-deleted instances of a series that have not started yet.

        Args:
            template_id: Series template id
            lock: Row-lock the selected instances (PostgreSQL only)

        Returns:
            List of instance events with start_date >= now
        """
        query = self.db.query(Event).filter(
            Event.parent_event_id == template_id,
            Event.deleted_at.is_(None),
            Event.start_date >= self.clock(),
        ).order_by(Event.start_date.asc())

        if lock and not self._is_sqlite():
            query = query.with_for_update()

        return query.all()

    @staticmethod
    def propagating_fields(content_fields: Dict[str, Any]) -> Dict[str, Any]:
        """Subset of ``content_fields`` that may be copied to instances."""
        return {
            key: value for key, value in content_fields.items()
            if key not in NON_PROPAGATING_FIELDS
        }

    def propagate_content_update(
        self,
        template: Event,
        content_fields: Dict[str, Any]
    ) -> Event:
        """
        Apply content changes to a template and its future instances.

        Args:
            template: Series template
            content_fields: Fields to set on the template

        Returns:
            Updated template

        Raises:
            SQLAlchemyError: If persisting fails (nothing is changed)
        """
        instance_fields = self.propagating_fields(content_fields)

        try:
            instances = self.list_future_instances(template.id, lock=True)

            for field, value in content_fields.items():
                setattr(template, field, value)

            for instance in instances:
                for field, value in instance_fields.items():
                    setattr(instance, field, value)

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Series propagation failed for template {template.id}: {e}")
            raise

        self.db.refresh(template)
        logger.info(
            f"Propagated {sorted(instance_fields)} from template {template.id} "
            f"to {len(instances)} future instance(s)"
        )
        return template
