"""
Slug service for human-readable event identifiers.

Derives a unique slug from an event title. Collisions with persisted events
are resolved by retrying with a random lowercase alphanumeric suffix.
"""

import re
import secrets
import string
from typing import Callable, Optional

from sqlalchemy.orm import Session

from backend.src.config.settings import SchedulingSettings, get_settings
from backend.src.models import Event
from backend.src.services.exceptions import ConflictError, ValidationError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

_STRIP_PATTERN = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE_PATTERN = re.compile(r"\s+")
_HYPHEN_PATTERN = re.compile(r"-+")

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class SlugService:
    """
    Service for allocating unique event slugs.

    Allocation does not reserve anything: two calls for the same unused title
    return the same slug until one of them is persisted.

    Usage:
        >>> service = SlugService(db_session)
        >>> service.allocate("Sunday Morning Yoga!")
        'sunday-morning-yoga'
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[SchedulingSettings] = None,
        suffix_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize slug service.

        Args:
            db: SQLAlchemy database session
            settings: Scheduling settings (defaults to environment settings)
            suffix_factory: Callable returning a random collision suffix
        """
        self.db = db
        self.settings = settings or get_settings()
        self._suffix_factory = suffix_factory or self._random_suffix

    def normalize(self, title: str) -> str:
        """
        Normalize a title into the slug base.

        Lowercases, strips characters other than word characters, whitespace
        and hyphens, turns whitespace runs into single hyphens and truncates.
        """
        slug = (title or "").lower().strip()
        slug = _STRIP_PATTERN.sub("", slug)
        slug = _WHITESPACE_PATTERN.sub("-", slug)
        slug = _HYPHEN_PATTERN.sub("-", slug)
        return slug[:self.settings.slug_max_length]

    def allocate(self, title: str, suffix: Optional[str] = None) -> str:
        """
        Allocate a slug that no persisted event uses.

        Args:
            title: Event title
            suffix: Optional suffix appended as ``-{suffix}``

        Returns:
            Unique slug

        Raises:
            ValidationError: If the title normalizes to an empty string
            ConflictError: If no unique slug was found within the retry budget
        """
        base = self.normalize(title)
        if not base:
            raise ValidationError(
                "Title must contain at least one letter or digit",
                field="title"
            )

        candidate = f"{base}-{suffix}" if suffix else base
        for _ in range(self.settings.slug_max_attempts):
            if not self.exists(candidate):
                return candidate
            logger.debug(f"Slug collision on '{candidate}', retrying with random suffix")
            candidate = f"{base}-{self._suffix_factory()}"

        raise ConflictError(
            f"Could not allocate a unique slug for '{title}' "
            f"after {self.settings.slug_max_attempts} attempts"
        )

    def exists(self, slug: str) -> bool:
        """Check whether any event (soft-deleted included) holds the slug."""
        return (
            self.db.query(Event.id)
            .filter(Event.slug == slug)
            .first()
        ) is not None

    def _random_suffix(self) -> str:
        return "".join(
            secrets.choice(_SUFFIX_ALPHABET)
            for _ in range(self.settings.slug_suffix_length)
        )
