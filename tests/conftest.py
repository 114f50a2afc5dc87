"""Pytest fixtures for billing engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fieldops_billing.database import enable_sqlite_savepoints
from fieldops_billing.models import Base, Client, StaffMember, WorkEntry
from fieldops_billing.services.work_entry_service import WorkEntryService

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Monday of the week the fixture entries are logged in
PERIOD_START = date(2024, 3, 4)


@pytest.fixture
async def engine():
    """Create a fresh test database engine per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def test_client(session: AsyncSession) -> Client:
    """Create an active client."""
    client = Client(name="Harbor Facilities", company_name="Harbor Facilities Ltd")
    session.add(client)
    await session.flush()
    return client


@pytest.fixture
async def other_client(session: AsyncSession) -> Client:
    """Create a second active client."""
    client = Client(name="Northside Estates")
    session.add(client)
    await session.flush()
    return client


@pytest.fixture
async def day_rate_staff(session: AsyncSession) -> StaffMember:
    """Staff member paid 160.00 per 8-hour day (20.00/h)."""
    staff = StaffMember(
        name="Alice Moreau",
        payment_type="per_day",
        rate=Decimal("160.00"),
        allocated_daily_hours=Decimal("8"),
    )
    session.add(staff)
    await session.flush()
    return staff


@pytest.fixture
async def monthly_staff(session: AsyncSession) -> StaffMember:
    """Staff member paid 3520.00 per month over 8-hour days (20.00/h)."""
    staff = StaffMember(
        name="Bruno Keller",
        payment_type="per_month",
        rate=Decimal("3520.00"),
        allocated_daily_hours=Decimal("8"),
    )
    session.add(staff)
    await session.flush()
    return staff


@pytest.fixture
async def logged_entries(
    session: AsyncSession,
    test_client: Client,
    day_rate_staff: StaffMember,
) -> list[WorkEntry]:
    """Three entries for the client in the test period: 80.00, 120.00 and 160.00."""
    service = WorkEntryService(session)
    return [
        await service.log_entry(
            staff_id=day_rate_staff.staff_id,
            client_id=test_client.client_id,
            work_date=PERIOD_START,
            task_description="Boiler inspection",
            hours_worked=Decimal("4"),
        ),
        await service.log_entry(
            staff_id=day_rate_staff.staff_id,
            client_id=test_client.client_id,
            work_date=date(2024, 3, 5),
            task_description="Pump replacement",
            hours_worked=Decimal("4"),
            override_cost=Decimal("120.00"),
        ),
        await service.log_entry(
            staff_id=day_rate_staff.staff_id,
            client_id=test_client.client_id,
            work_date=date(2024, 3, 6),
            task_description="Full site survey",
            hours_worked=Decimal("8"),
        ),
    ]
