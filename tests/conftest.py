"""Pytest fixtures and configuration for creditboard tests."""

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
import uuid

from creditboard.database.database import Base
from creditboard.database import models  # noqa: F401  (registers tables)
from creditboard.database.repository import TaskRepository
from creditboard.database.settings_repository import SettingsRepository
from creditboard.models.task import Task, Quadrant, TaskType
from tests.fakes import FixedClock, InMemorySettingsStore, InMemoryTaskStore


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

# Wednesday mid-morning; far enough from month and year boundaries
TEST_NOW = datetime(2024, 5, 15, 10, 0, 0)


@pytest.fixture(scope="function")
def db_session():
    """Create a database session for testing.

    Uses an in-memory SQLite database that is created fresh for each test.
    """
    # Create engine with StaticPool for in-memory database
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def task_repository(db_session: Session):
    """Create a TaskRepository instance for testing."""
    return TaskRepository(db_session)


@pytest.fixture
def settings_repository(db_session: Session):
    """Create a SettingsRepository instance for testing."""
    return SettingsRepository(db_session)


@pytest.fixture
def now():
    return TEST_NOW


@pytest.fixture
def fixed_clock(now):
    """Clock frozen at TEST_NOW (advance it explicitly)."""
    return FixedClock(now)


@pytest.fixture
def sample_task_base(now):
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    return {
        "id": str(uuid.uuid4()),
        "title": "Test Task",
        "quadrant": Quadrant.Q1,
        "type": TaskType.APPRAISAL,
        "note": None,
        "deadline": None,
        "amount_disbursement": None,
        "service_fee": None,
        "amount_recovery": None,
        "amount_mobilized": None,
        "completed": False,
        "completed_at": None,
        "archived_at": None,
        "position": 1,
        "created_at": now,
    }


@pytest.fixture
def make_task(sample_task_base):
    """Factory for tasks with a fresh id and overridden attributes."""
    def _make(**overrides) -> Task:
        return Task(**{**sample_task_base, "id": str(uuid.uuid4()), **overrides})
    return _make


@pytest.fixture
def sample_task(sample_task_base):
    """Create a sample Task object for testing."""
    return Task(**sample_task_base)


@pytest.fixture
def disbursement_task(make_task):
    """Disbursement task carrying an amount and a service fee."""
    return make_task(
        title="Disburse working capital loan",
        type=TaskType.DISBURSEMENT,
        amount_disbursement=1_000_000,
        service_fee=10_000,
    )


@pytest.fixture
def collection_task(make_task):
    """Collection task carrying a recovered amount."""
    return make_task(title="Collect overdue installment", type=TaskType.COLLECTION, amount_recovery=300_000)


@pytest.fixture
def task_store():
    return InMemoryTaskStore()


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def test_client(db_session: Session, fixed_clock):
    """Create a FastAPI test client with overridden database and clock dependencies.

    The client is not entered as a context manager, so the lifespan hook
    (which would create the on-disk database) does not run.
    """
    from creditboard.api.app import app, get_clock
    from creditboard.database.database import get_db

    # Override the get_db dependency to use our test database session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close the session here, let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock

    yield TestClient(app)

    # Clean up dependency overrides
    app.dependency_overrides.clear()
