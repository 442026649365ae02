import os

# Must be set before leadflow builds its settings and engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ACCEPTANCE_MONITOR_ENABLED", "false")

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.domain.entities import Base, UserRole
from leadflow.infrastructure.services.assignment_service import LeadAssignmentService
from leadflow.infrastructure.services.notification_service import AcceptanceNotifier
from tests.utils import create_pool, create_session_factory, create_test_engine, create_user


@pytest.fixture
async def session_factory():
    """
    Fresh database per test: tables are created on a new in-memory engine
    and thrown away with it.
    """
    engine = create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield create_session_factory(engine)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    """Notifier that always succeeds; tests swap in side effects as needed."""
    mock = AsyncMock(spec=AcceptanceNotifier)
    mock.send_lead_assigned.return_value = "New lead"
    mock.send_reminder.return_value = "Reminder"
    mock.send_manager_timeout_notice.return_value = "Lead timed out"
    return mock


@pytest.fixture
def service(db_session, notifier) -> LeadAssignmentService:
    return LeadAssignmentService(db_session, notifier)


@pytest.fixture
async def falkenberg(db_session):
    """
    Facility "Falkenberg": manager M, pool = [A@1, B@2], both enabled.
    """
    manager = await create_user(db_session, "manager@leadflow.se", role=UserRole.MANAGER)
    seller_a = await create_user(db_session, "a@leadflow.se", first_name="Anna")
    seller_b = await create_user(db_session, "b@leadflow.se", first_name="Bertil")
    entries = await create_pool(db_session, "Falkenberg", [seller_a, seller_b])
    await db_session.commit()

    return {
        "manager": manager,
        "a": seller_a,
        "b": seller_b,
        "entries": entries,
    }
