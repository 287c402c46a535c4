"""
Integration tests for the worker health endpoints.
"""

import pytest
import pytest_asyncio
from aiohttp import test_utils

from jobs.health import create_health_app
from jobs.tasks.referral_reset import ResetScheduler


@pytest_asyncio.fixture
async def reset_scheduler(session_maker, clock):
    """Reset scheduler with monitoring on, shut down afterwards."""
    scheduler = ResetScheduler(session_maker, clock=clock, interval_seconds=60)
    scheduler.start_monitoring()
    yield scheduler
    scheduler.shutdown()


async def get_json(app, path):
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        response = await client.get(path)
        return response.status, await response.json()


class TestHealthEndpoints:
    """Test /health, /readiness and /liveness."""

    @pytest.mark.asyncio
    async def test_health_reports_jobs(self, reset_scheduler):
        """Health lists the reset check job."""
        status, body = await get_json(create_health_app(reset_scheduler), "/health")

        assert status == 200
        assert body["status"] == "healthy"
        assert body["scheduler_running"] is True
        assert body["monitoring"] is True
        assert [job["id"] for job in body["jobs"]] == ["referral_reset_check"]

    @pytest.mark.asyncio
    async def test_unhealthy_without_scheduler(self):
        """Health fails when no scheduler is attached."""
        status, body = await get_json(create_health_app(None), "/health")

        assert status == 503
        assert body["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_readiness(self, reset_scheduler):
        """Ready once the scheduler exists."""
        status, body = await get_json(create_health_app(reset_scheduler), "/readiness")

        assert status == 200
        assert body["ready"] is True

    @pytest.mark.asyncio
    async def test_liveness(self):
        """Liveness always answers."""
        status, body = await get_json(create_health_app(None), "/liveness")

        assert status == 200
        assert body["alive"] is True
