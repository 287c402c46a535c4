"""
Referral worker entry point.

Runs the reset scheduler and its health check server until interrupted.
"""

import asyncio
import sys
from pathlib import Path

from loguru import logger


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config.database import async_session_maker, engine  # noqa: E402
from app.config.settings import settings  # noqa: E402
from jobs.health import start_health_server, stop_health_server  # noqa: E402
from jobs.log_setup import setup_logging  # noqa: E402
from jobs.tasks.referral_reset import ResetScheduler  # noqa: E402


async def main() -> None:
    """Initialize the scheduler and serve health checks until cancelled."""
    setup_logging()

    reset_scheduler = ResetScheduler(async_session_maker)
    reset_scheduler.scheduler.start()
    await reset_scheduler.initialize()

    runner, _ = await start_health_server(
        reset_scheduler, port=settings.health_check_port
    )

    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Shutting down referral worker...")
        reset_scheduler.shutdown()
        await stop_health_server(runner)
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Referral worker stopped by user")
