"""Test config and shared fixtures."""
import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy.engine import make_url
from sqlmodel.ext.asyncio.session import AsyncSession

from main import app
from framework.database.drivers import SQLiteDriver
from framework.database.manager import get_db
from apps.training.models import (
    AllowanceStatus,
    AllowanceType,
    Participant,
    Training,
)
from apps.training.unit_of_work import TrainingUnitOfWork


# In-memory SQLite for tests (one shared connection per test)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def driver() -> AsyncGenerator[SQLiteDriver, None]:
    """SQLite driver with foreign keys on and every table created."""
    import apps.models  # noqa: F401

    db = SQLiteDriver(make_url(TEST_DATABASE_URL), enable_foreign_keys=True)
    await db.create_schema()
    yield db
    await db.disconnect()


@pytest.fixture(scope="function")
async def async_session(driver: SQLiteDriver) -> AsyncGenerator[AsyncSession, None]:
    """Create async test database session."""
    async with driver.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def uow(async_session: AsyncSession) -> TrainingUnitOfWork:
    return TrainingUnitOfWork(async_session, actor="tester@training.org")


@pytest.fixture
async def client(async_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the test session."""
    async def _get_db():
        yield async_session

    app.dependency_overrides[get_db] = _get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def participant(uow: TrainingUnitOfWork) -> Participant:
    """Create sample participant."""
    entity = Participant(
        title="Dr",
        firstname="Amina",
        lastname="Otieno",
        id_no="ID-1001",
        sex="Female",
        phone="0700000001",
        email="amina.otieno@training.org",
    )
    await uow.participants.add(entity)
    await uow.save_changes()
    return entity


@pytest.fixture
async def training(uow: TrainingUnitOfWork) -> Training:
    """Create sample training that ends in the future."""
    now = datetime.now(timezone.utc)
    entity = Training(
        institution="University of Nairobi",
        program="MSc Public Health",
        country_of_study="Kenya",
        start_date=now - timedelta(days=30),
        end_date=now + timedelta(days=365),
        duration=12,
        financial_year="2025/2026",
    )
    await uow.trainings.add(entity)
    await uow.save_changes()
    return entity


@pytest.fixture
async def allowance_lookups(uow: TrainingUnitOfWork):
    """Create one allowance type and one allowance status."""
    allowance_type = AllowanceType(name="Stipend", description="Monthly stipend")
    status = AllowanceStatus(name="Approved")
    await uow.allowance_types.add(allowance_type)
    await uow.allowance_statuses.add(status)
    await uow.save_changes()
    return allowance_type, status
