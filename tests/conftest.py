"""
Pytest Configuration and Fixtures.
Shared fixtures: an in-memory database per test, a frozen clock and
factories for plans, members and contributions.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from dateutil.relativedelta import relativedelta
from sqlalchemy import inspect

from mcdf.core.config import FundSettings
from mcdf.core.enums import ContributionStatus
from mcdf.db.connection import create_engine_for_url, create_session_maker, init_db
from mcdf.services.contribution_service import ContributionService
from mcdf.services.member_service import MemberService
from mcdf.utils.clock import FixedClock

TODAY = date(2025, 6, 15)
MONTHLY_AMOUNT = Decimal("5000.00")


@pytest.fixture
def settings():
    """Default business rules, isolated from the environment."""
    return FundSettings(_env_file=None)


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 6, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def actor_id():
    return uuid4()


@pytest_asyncio.fixture
async def engine():
    engine = create_engine_for_url("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async with create_session_maker(engine)() as session:
        yield session


@pytest_asyncio.fixture
async def plan(session, settings, clock):
    service = ContributionService(session, settings, clock)
    return await service.create_plan({"name": "Standard", "amount": MONTHLY_AMOUNT})


@pytest.fixture
def pay_months(session, settings, clock, actor_id):
    """Record on-time paid contributions for the last N months, oldest first."""

    async def _pay(member, months, amount=MONTHLY_AMOUNT):
        service = ContributionService(session, settings, clock)
        current = clock.today().replace(day=1)
        contributions = []
        for offset in range(months - 1, -1, -1):
            start = current - relativedelta(months=offset)
            end = start + relativedelta(months=1, days=-1)
            contributions.append(
                await service.record_contribution(
                    {
                        "member_id": member.id,
                        "amount": amount,
                        "payment_date": start,
                        "period_start": start,
                        "period_end": end,
                        "status": ContributionStatus.PAID,
                    },
                    actor_id,
                )
            )
        return contributions

    return _pay


@pytest.fixture
def make_member(session, settings, clock, plan, actor_id, pay_months):
    """Register a member; by default completes and approves them."""

    async def _make(
        registration_date=date(2024, 1, 15),
        activate=True,
        paid_months=0,
        **overrides,
    ):
        service = MemberService(session, settings, clock)
        data = {
            "first_name": "Amina",
            "last_name": "Bello",
            "contribution_plan_id": plan.id,
            "registration_date": registration_date,
            **overrides,
        }
        member = await service.register_member(data, actor_id)
        if activate:
            await service.complete_registration(member.id, actor_id)
            await service.approve_member(member.id, actor_id)
        if paid_months:
            await pay_months(member, paid_months)
        return member

    return _make


@pytest.fixture
def stored_row(session):
    """Every mapped column of an entity, re-read from the database."""

    async def _read(entity):
        fresh = await session.get(type(entity), entity.id, populate_existing=True)
        return {attr.key: getattr(fresh, attr.key) for attr in inspect(fresh).mapper.column_attrs}

    return _read


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
