"""
Referral service.

Entry point for admin tooling, the trading subsystem and user-facing
views. Write operations each run in their own transaction.
"""

from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.leaderboard_archive import LeaderboardArchive
from app.models.referral_bonus import ReferralBonus
from app.models.referral_code import ReferralCode
from app.models.referral_link import ReferralLink
from app.models.referral_period import ReferralPeriod
from app.services.base_service import BaseService, log_operation, transaction
from app.services.referral.activity_processor import (
    EventResult,
    ProcessResult,
    ReferralActivityProcessor,
    SignupResult,
    TradeInput,
    TradeResult,
)
from app.services.referral.leaderboard import (
    LeaderboardEntry,
    ReferralLeaderboardManager,
)
from app.services.referral.period_manager import (
    CompletionResult,
    PeriodDetail,
    ReferralPeriodManager,
)
from app.services.referral.query_manager import ReferralQueryManager, UserSummary
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import NotFoundError, ReferralError, is_retryable


ActivationListener = Callable[[ReferralPeriod], Awaitable[None]]


class ReferralService(BaseService):
    """Referral service for period lifecycle, activity and rankings."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        points_per_volume: Decimal | None = None,
        on_period_activated: ActivationListener | None = None,
    ) -> None:
        """
        Initialize referral service.

        Args:
            session: Async database session
            clock: Returns the current UTC time
            points_per_volume: Base trading points per unit of volume
            on_period_activated: Awaited after an activation commits
                (e.g. ResetScheduler.on_period_activated)
        """
        super().__init__(session)
        self.clock = clock
        self.on_period_activated = on_period_activated
        self.periods = ReferralPeriodManager(session, clock)
        self.activity = ReferralActivityProcessor(session, clock, points_per_volume)
        self.leaderboard = ReferralLeaderboardManager(session)
        self.queries = ReferralQueryManager(session)

    # ------------------------------------------------------------------
    # Period administration
    # ------------------------------------------------------------------

    @transaction
    async def create_period(self, **data: Any) -> ReferralPeriod:
        """Create a draft period (see ReferralPeriodManager.create_period)."""
        return await self.periods.create_period(**data)

    @transaction
    async def update_period(self, period_id: int, **changes: Any) -> ReferralPeriod:
        """Edit a draft period."""
        return await self.periods.update_period(period_id, **changes)

    async def activate_period(self, period_id: int) -> ReferralPeriod:
        """
        Activate a draft period.

        Raises:
            ConflictError: If another period is active
            InvalidStateError: If the period is not a draft
        """
        period = await self._activate_period(period_id)
        await self._notify_activated(period)
        return period

    @transaction
    async def _activate_period(self, period_id: int) -> ReferralPeriod:
        return await self.periods.activate_period(period_id)

    @log_operation
    async def complete_period(
        self, period_id: int, chain_next: bool = False
    ) -> CompletionResult:
        """
        Complete an active period, archive it and optionally chain a successor.

        Raises:
            InvalidStateError: If the period is not active
        """
        result = await self._complete_period(period_id, chain_next)
        if result.next_period is not None:
            await self._notify_activated(result.next_period)
        return result

    @transaction
    async def _complete_period(
        self, period_id: int, chain_next: bool
    ) -> CompletionResult:
        return await self.periods.complete_period(period_id, chain_next=chain_next)

    async def reset_period(
        self, period_id: int, create_new: bool = True
    ) -> CompletionResult:
        """Admin manual reset."""
        return await self.complete_period(period_id, chain_next=create_new)

    @transaction
    async def cancel_period(self, period_id: int) -> None:
        """Cancel (hard-delete) an unstarted draft."""
        await self.periods.cancel_period(period_id)

    @transaction
    async def delete_period(self, period_id: int) -> None:
        """Delete a draft. Active and completed periods are kept."""
        await self.periods.delete_period(period_id)

    async def list_periods(self) -> list[ReferralPeriod]:
        """List periods, newest first."""
        return await self.periods.list_periods()

    async def get_period(self, period_id: int) -> ReferralPeriod:
        """Get a period or raise NotFoundError."""
        return await self.periods.get_period(period_id)

    async def get_active_period(self) -> ReferralPeriod | None:
        """Get the active period, if any."""
        return await self.periods.get_active_period()

    async def get_period_detail(self, period_id: int) -> PeriodDetail:
        """Period with live stats."""
        return await self.periods.get_period_detail(period_id)

    async def can_modify_period(self, period_id: int) -> tuple[bool, str | None]:
        """Whether admins may still change a period's rules."""
        return await self.periods.can_modify_period(period_id)

    async def _notify_activated(self, period: ReferralPeriod) -> None:
        if self.on_period_activated is not None:
            await self.on_period_activated(period)

    # ------------------------------------------------------------------
    # Codes, signups and trades
    # ------------------------------------------------------------------

    @transaction
    async def get_or_create_referral_code(self, address: str) -> ReferralCode:
        """Get a wallet's referral code, generating one on first request."""
        return await self.activity.get_or_create_code(address)

    @transaction
    async def track_signup(
        self, referee_address: str, code: str
    ) -> SignupResult | None:
        """Link a new wallet to a referrer in the active period."""
        return await self.activity.track_signup(referee_address, code)

    @transaction
    async def record_trade(
        self,
        wallet: str,
        volume: Decimal | int | float | str,
        timestamp: datetime | None = None,
        fee: Decimal | int | float | str | None = None,
    ) -> TradeResult:
        """
        Credit points for one trade in the active period.

        Raises:
            PeriodClosedError: If the period completed meanwhile; nothing
                was written and the trade can be retried
        """
        return await self.activity.record_trade(wallet, volume, timestamp, fee)

    async def process_trades(self, events: Iterable[TradeInput]) -> ProcessResult:
        """
        Process a batch of trades, each in its own transaction.

        A failing event is reported in its EventResult and does not stop
        the rest of the batch.

        Args:
            events: Trades to process

        Returns:
            ProcessResult with one EventResult per event, in order
        """
        results: list[EventResult] = []
        for event in events:
            try:
                result = await self.record_trade(
                    event.wallet, event.volume, event.timestamp, event.fee
                )
                results.append(
                    EventResult(wallet=event.wallet, success=True, result=result)
                )
            except Exception as e:
                if not isinstance(e, ReferralError):
                    self.logger.exception(
                        f"Unexpected error processing trade for {event.wallet}"
                    )
                results.append(
                    EventResult(
                        wallet=event.wallet,
                        success=False,
                        error_message=str(e),
                        retryable=is_retryable(e),
                    )
                )

        process_result = ProcessResult(
            success=all(r.success for r in results), results=results
        )
        self.logger.info(
            "Trade batch processed",
            extra={
                "processed": process_result.processed_count,
                "failed": process_result.failed_count,
            },
        )
        return process_result

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    async def get_referrals_for_user(
        self, address: str, period_id: int | None = None
    ) -> list[ReferralLink]:
        """Links where address is the referrer."""
        return await self.queries.get_referrals_for_user(address, period_id)

    async def get_bonus_breakdown(
        self, address: str, period_id: int | None = None
    ) -> list[ReferralBonus]:
        """A wallet's bonus awards, newest first."""
        return await self.queries.get_bonus_breakdown(address, period_id)

    async def get_user_summary(self, address: str) -> UserSummary:
        """Own code, referral count and points in the active period."""
        return await self.queries.get_user_summary(address)

    async def get_active_period_info(self) -> dict[str, Any] | None:
        """Active period with referee benefits."""
        return await self.queries.get_active_period_info()

    async def get_leaderboard(
        self, period_id: int | None = None, limit: int | None = None
    ) -> list[LeaderboardEntry]:
        """
        Live rankings of a period (defaults to the active one).

        Raises:
            NotFoundError: If the period does not exist, or no period is
                active and none was given
        """
        if period_id is None:
            period = await self.periods.get_active_period()
            if period is None:
                raise NotFoundError("No active period")
        else:
            period = await self.periods.get_period(period_id)
        return await self.leaderboard.get_leaderboard(period, limit)

    async def get_period_leaderboard(
        self, period_id: int, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """Archived rankings for completed periods, live rankings otherwise."""
        return await self.queries.get_period_leaderboard(period_id, limit)

    async def get_archive(self, period_id: int) -> LeaderboardArchive:
        """Frozen snapshot of a completed period."""
        return await self.leaderboard.get_archive(period_id)

    async def list_archives(self) -> list[LeaderboardArchive]:
        """Archived seasons, newest first."""
        return await self.leaderboard.list_archives()
