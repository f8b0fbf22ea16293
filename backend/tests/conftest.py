"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions
- A controllable clock
- Scheduling settings and services
- Sample data factories
"""

import os
import pytest
from datetime import datetime, timedelta
from unittest.mock import Mock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app modules
os.environ['EVENTHUB_DB_URL'] = 'sqlite:///:memory:'

from backend.src.config.settings import SchedulingSettings
from backend.src.models import Base, Booking, BookingStatus, Event, EventStatus
from backend.src.services.audit_service import AuditService
from backend.src.services.event_service import EventService
from backend.src.services.availability_service import AvailabilityService
from backend.src.services.series_service import SeriesService
from backend.src.services.slug_service import SlugService


# Default "now" of the controllable clock
NOW = datetime(2025, 5, 1, 9, 0, 0)

HOST_ID = "host-0001"
OTHER_HOST_ID = "host-0002"


class FakeClock:
    """Callable clock whose current time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


# ============================================================================
# Database Fixtures
# ============================================================================

def drop_test_schema(engine):
    """
    Drop all tables with foreign key enforcement switched off.

    Series instances reference their template with ON DELETE RESTRICT, so
    dropping the events table with enforcement on fails while a series exists.
    """
    with engine.connect() as connection:
        connection.exec_driver_sql("pragma foreign_keys=OFF")
        Base.metadata.drop_all(connection)
        connection.commit()


@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    from sqlalchemy import event

    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )

    # Enable foreign key constraints for SQLite
    # This must be set for each connection
    def _fk_pragma_on_connect(dbapi_con, con_record):
        dbapi_con.execute('pragma foreign_keys=ON')

    event.listen(engine, 'connect', _fk_pragma_on_connect)

    Base.metadata.create_all(engine)
    yield engine
    drop_test_schema(engine)
    engine.dispose()


@pytest.fixture
def drop_schema():
    """Helper dropping every table of a test engine."""
    return drop_test_schema


@pytest.fixture(scope='function')
def test_db_session(test_db_engine):
    """Create a test database session."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# Utility Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def clock():
    """Controllable clock starting at NOW."""
    return FakeClock(NOW)


@pytest.fixture(scope='function')
def test_settings():
    """Scheduling settings with defaults."""
    return SchedulingSettings()


@pytest.fixture(scope='function')
def audit_recorder():
    """Mock audit recorder."""
    return Mock()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def event_service(test_db_session, clock, test_settings, audit_recorder):
    """Create an EventService wired to the test session and clock."""
    return EventService(
        test_db_session,
        clock=clock,
        settings=test_settings,
        audit=AuditService(audit_recorder, settings=test_settings),
    )


@pytest.fixture
def availability_service(test_db_session):
    """Create an AvailabilityService for testing."""
    return AvailabilityService(test_db_session)


@pytest.fixture
def series_service(test_db_session, clock):
    """Create a SeriesService for testing."""
    return SeriesService(test_db_session, clock=clock)


@pytest.fixture
def slug_service(test_db_session, test_settings):
    """Create a SlugService for testing."""
    return SlugService(test_db_session, test_settings)


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def sample_event(test_db_session):
    """Factory for creating sample Event models in the database."""
    counter = {"n": 0}

    def _create(
        title="Sample Event",
        start_date=datetime(2025, 7, 1, 9, 0),
        end_date=None,
        host_id=HOST_ID,
        status=EventStatus.PUBLISHED.value,
        **kwargs
    ):
        counter["n"] += 1
        event = Event(
            title=title,
            slug=kwargs.pop("slug", f"sample-event-{counter['n']}"),
            start_date=start_date,
            end_date=end_date or start_date + timedelta(hours=2),
            host_id=host_id,
            status=status,
            venue=kwargs.pop("venue", "Main Hall"),
            **kwargs
        )
        test_db_session.add(event)
        test_db_session.commit()
        test_db_session.refresh(event)
        return event

    return _create


@pytest.fixture
def sample_booking(test_db_session):
    """Factory for creating sample Booking models in the database."""
    def _create(event, status=BookingStatus.CONFIRMED.value, user_id="user-0001"):
        booking = Booking(event_id=event.id, user_id=user_id, status=status)
        test_db_session.add(booking)
        test_db_session.commit()
        test_db_session.refresh(booking)
        return booking

    return _create
