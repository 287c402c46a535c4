"""
Referral period reset scheduler.

Rolls a scheduled referral period over once its nextResetAt has passed:
the current period is completed and archived, and a successor with the
same rules is activated. Checks run every 60 seconds on an APScheduler
interval job.
"""

from collections.abc import Callable
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.settings import settings
from app.models.enums import ResetMode
from app.models.referral_period import ReferralPeriod
from app.services.referral.period_manager import CompletionResult
from app.services.referral.schedule import get_next_reset_at
from app.services.referral_service import ReferralService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import must_log


RESET_JOB_ID = "referral_reset_check"
WATCH_JOB_ID = "referral_reset_watch"


class ResetScheduler:
    """
    Single long-lived reset monitor.

    Construct once per process, call initialize() on startup and stop()
    (or shutdown()) on exit. Tick failures are logged and never
    propagate; the next tick tries again.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
        interval_seconds: int | None = None,
        watch_interval_seconds: int | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        """
        Initialize reset scheduler.

        Args:
            session_maker: Factory for a fresh session per tick
            clock: Returns the current UTC time
            interval_seconds: Seconds between checks (defaults to settings)
            watch_interval_seconds: Seconds between watcher runs (defaults
                to settings)
            scheduler: APScheduler instance (created if not given)
        """
        self.session_maker = session_maker
        self.clock = clock
        self.interval_seconds = (
            interval_seconds or settings.referral_reset_check_interval
        )
        self.watch_interval_seconds = (
            watch_interval_seconds or settings.referral_reset_watch_interval
        )
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._initialized = False

    @property
    def is_monitoring(self) -> bool:
        """Whether the periodic check job is registered."""
        return self.scheduler.get_job(RESET_JOB_ID) is not None

    async def initialize(self) -> None:
        """
        Start the watcher, and monitoring if the active period resets on a
        schedule.

        Safe to call more than once; only the first call does anything.
        """
        if self._initialized:
            return
        self._initialized = True

        self.start_watching()
        if not await self.resume_if_scheduled():
            logger.info("No active scheduled period found, monitoring inactive")

    def start_watching(self) -> None:
        """
        Register the low-frequency watcher job (no-op if already running).

        The watcher re-arms monitoring when a scheduled period is activated
        outside this process while the check job is stopped.
        """
        if self.scheduler.get_job(WATCH_JOB_ID) is not None:
            return

        if not self.scheduler.running:
            self.scheduler.start()

        self.scheduler.add_job(
            self.resume_if_scheduled,
            "interval",
            seconds=self.watch_interval_seconds,
            id=WATCH_JOB_ID,
            name="Referral scheduled period watcher",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    async def resume_if_scheduled(self) -> bool:
        """
        Start monitoring if the active period resets on a schedule.

        Returns:
            True if monitoring is running afterwards
        """
        if self.is_monitoring:
            return True

        try:
            async with self.session_maker() as session:
                service = ReferralService(session, clock=self.clock)
                active = await service.get_active_period()
        except Exception as e:
            if must_log(e):
                logger.warning(f"Scheduled period lookup skipped, database unavailable: {e}")
            else:
                logger.exception(f"Error looking up the active period: {e}")
            return False

        if active is None or active.reset_mode != ResetMode.SCHEDULED:
            return False

        logger.info(
            f'Found active scheduled period "{active.name}" (ID: {active.id})'
        )
        self.start_monitoring()
        return True

    def start_monitoring(self) -> None:
        """Register the periodic check job (no-op if already running)."""
        if self.is_monitoring:
            return

        if not self.scheduler.running:
            self.scheduler.start()

        self.scheduler.add_job(
            self.check_for_reset,
            "interval",
            seconds=self.interval_seconds,
            id=RESET_JOB_ID,
            name="Referral period reset check",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(
            f"Reset monitoring started (checking every {self.interval_seconds}s)"
        )

    def stop(self) -> None:
        """Remove the periodic check job."""
        if not self.is_monitoring:
            return
        self.scheduler.remove_job(RESET_JOB_ID)
        logger.info("Reset monitoring stopped")

    def shutdown(self) -> None:
        """Stop monitoring and shut the scheduler down."""
        self.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def on_period_activated(self, period: ReferralPeriod) -> None:
        """Start monitoring when a scheduled period becomes active."""
        if period.reset_mode == ResetMode.SCHEDULED:
            self.start_monitoring()

    async def check_for_reset(self) -> CompletionResult | None:
        """
        One tick: roll the active period over if its reset time has passed.

        Returns:
            CompletionResult if a rollover happened, else None
        """
        try:
            async with self.session_maker() as session:
                service = ReferralService(session, clock=self.clock)
                active = await service.get_active_period()

                if active is None:
                    self.stop()
                    return None

                if active.reset_mode != ResetMode.SCHEDULED:
                    return None

                next_reset_at = get_next_reset_at(active.reset_config)
                if next_reset_at is None or self.clock() < next_reset_at:
                    return None

                logger.info(
                    f'Executing scheduled reset for period "{active.name}" '
                    f"(ID: {active.id})"
                )
                result = await service.complete_period(active.id, chain_next=True)

            if result.next_period is not None:
                logger.info(
                    f'New period "{result.next_period.name}" activated, next reset at '
                    f"{(result.next_period.schedule or {}).get('nextResetAt')}"
                )
            return result

        except Exception as e:
            if must_log(e):
                logger.warning(f"Referral reset check skipped, database unavailable: {e}")
            else:
                logger.exception(f"Error checking for referral reset: {e}")
            return None
