"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for tests (must be set before app.config is imported)
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", "logs/test.log")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from datetime import UTC, datetime  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import event  # noqa: E402

from app.config.database import create_engine, create_session_maker  # noqa: E402
from app.models import Base  # noqa: E402
from app.services.referral_service import ReferralService  # noqa: E402
from tests.factories import NO_BENEFITS, STRATEGY_CONFIGS, FakeClock  # noqa: E402


@pytest.fixture
def clock():
    """Fake clock starting Wednesday 2026-01-07 10:00 UTC."""
    return FakeClock(datetime(2026, 1, 7, 10, 0, tzinfo=UTC))


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite database with the schema created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'referrals.db'}", echo=False)

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs nest properly
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    """Session factory bound to the test database."""
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    """Async session for a single test."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def service(session, clock):
    """ReferralService with the fake clock and 1 point per unit of volume."""
    return ReferralService(session, clock=clock, points_per_volume=Decimal("1"))


@pytest.fixture
def make_period(service):
    """Factory creating (and by default activating) a period."""

    async def _make_period(
        strategy: str = "growth_multiplier",
        strategy_config: dict | None = None,
        activate: bool = True,
        **kwargs,
    ):
        kwargs.setdefault("name", "Season 1")
        kwargs.setdefault("referee_benefits", NO_BENEFITS)
        period = await service.create_period(
            strategy=strategy,
            strategy_config=strategy_config or STRATEGY_CONFIGS[strategy],
            **kwargs,
        )
        if activate:
            period = await service.activate_period(period.id)
        return period

    return _make_period


@pytest.fixture
def make_referral(service):
    """Factory linking referee to referrer through the referrer's code."""

    async def _make_referral(referrer: str, referee: str):
        code = await service.get_or_create_referral_code(referrer)
        return await service.track_signup(referee, code.code.lower())

    return _make_referral
