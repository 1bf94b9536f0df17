"""
Pytest configuration and shared fixtures
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from luxestay.models import (
    Base,
    Guest,
    MembershipPlan,
    MembershipStatus,
    LoyaltyTier,
    Voucher,
    DiscountType,
    VoucherSource,
)
from luxestay.main import app


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.

    Uses in-memory SQLite database for fast test execution.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing FastAPI endpoints.
    Override the database dependency to use the test database.
    """
    from luxestay.models.base import get_db

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def gold_plan(db_session: AsyncSession) -> MembershipPlan:
    """10% booking discount plan (room only)"""
    plan = MembershipPlan(
        id=uuid4(),
        slug="luxe-gold",
        name="Luxe Gold",
        booking_discount_rate=Decimal("10"),
        apply_discount_to_services=False,
        experience_discount_rate=Decimal("5"),
    )
    db_session.add(plan)
    await db_session.commit()
    return plan


@pytest_asyncio.fixture(scope="function")
async def guest(db_session: AsyncSession) -> Guest:
    """Guest without a membership"""
    guest = Guest(
        id=uuid4(),
        email="guest@example.com",
        name="Test Guest",
        loyalty_tier=LoyaltyTier.SILVER.value,
        membership_status=MembershipStatus.INACTIVE.value,
    )
    db_session.add(guest)
    await db_session.commit()
    return guest


@pytest_asyncio.fixture(scope="function")
async def member_guest(db_session: AsyncSession, gold_plan: MembershipPlan) -> Guest:
    """Guest with an active 10% membership"""
    guest = Guest(
        id=uuid4(),
        email="member@example.com",
        name="Member Guest",
        loyalty_tier=LoyaltyTier.GOLD.value,
        membership_status=MembershipStatus.ACTIVE.value,
        membership_expires_at=datetime.utcnow() + timedelta(days=180),
        membership_plan_id=gold_plan.id,
    )
    db_session.add(guest)
    await db_session.commit()
    return guest


@pytest.fixture(scope="function")
def make_voucher(db_session: AsyncSession):
    """
    Factory for vouchers stored in the test database.

    Defaults to an active 10% voucher valid for the next 30 days.
    """

    async def _make(**overrides) -> Voucher:
        now = datetime.utcnow()
        fields = dict(
            id=uuid4(),
            code="LUXE10",
            name="Luxe 10%",
            discount_type=DiscountType.PERCENTAGE.value,
            discount_value=Decimal("10"),
            max_discount=None,
            min_booking_value=None,
            max_uses=None,
            max_uses_per_user=None,
            used_count=0,
            allowed_membership_tiers=[],
            listing_ids=[],
            property_types=[],
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
            stack_with_membership=True,
            stack_with_promotions=False,
            is_active=True,
            source=VoucherSource.ADMIN.value,
            point_cost=0,
        )
        fields.update(overrides)
        voucher = Voucher(**fields)
        db_session.add(voucher)
        await db_session.commit()
        return voucher

    return _make


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory on a file-backed SQLite database.

    Every session opens its own connection, so tests can run several
    transactions against the same data at once.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'luxestay.db'}",
        connect_args={"timeout": 30},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
