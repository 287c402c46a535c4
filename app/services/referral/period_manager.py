"""
Referral period lifecycle module.

Owns the draft -> active -> completed state machine. Every status
change goes through the repository's compare-and-swap transition so
concurrent callers cannot both complete (or activate) the same period.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PeriodStatus, ResetMode
from app.models.leaderboard_archive import LeaderboardArchive
from app.models.referral_period import ReferralPeriod
from app.repositories.referral_bonus_repository import ReferralBonusRepository
from app.repositories.referral_link_repository import ReferralLinkRepository
from app.repositories.referral_period_repository import ReferralPeriodRepository
from app.services.referral.config import (
    CONTINUED_SUFFIX,
    MAX_BONUS_HOLDERS_FOR_MODIFY,
)
from app.services.referral.leaderboard import ReferralLeaderboardManager
from app.services.referral.schedule import (
    calculate_next_reset_time,
    get_next_reset_at,
    with_next_reset_at,
)
from app.services.referral.schemas import (
    parse_strategy_type,
    validate_referee_benefits,
    validate_reset_config,
    validate_strategy_config,
)
from app.services.referral.strategies import create_strategy, is_link_expired
from app.utils.datetime_utils import ensure_utc, utc_now
from app.utils.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)


EDITABLE_FIELDS = frozenset(
    {
        "name",
        "strategy",
        "strategy_config",
        "reset_mode",
        "reset_config",
        "referee_benefits",
        "starts_at",
        "ends_at",
    }
)


@dataclass
class CompletionResult:
    """Outcome of completing a period."""

    period: ReferralPeriod
    archive: LeaderboardArchive
    next_period: ReferralPeriod | None = None


@dataclass
class PeriodDetail:
    """Period plus live stats."""

    period: ReferralPeriod
    stats: dict[str, int] | None = None


class ReferralPeriodManager:
    """
    Manages referral period lifecycle.

    Does not commit; callers own the transaction so a completion,
    its archive and its successor land together.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize period manager.

        Args:
            session: Async database session
            clock: Returns the current UTC time
        """
        self.session = session
        self.clock = clock
        self.period_repo = ReferralPeriodRepository(session)
        self.link_repo = ReferralLinkRepository(session)
        self.bonus_repo = ReferralBonusRepository(session)
        self.leaderboard = ReferralLeaderboardManager(session)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_period(self, period_id: int) -> ReferralPeriod:
        """
        Get a period.

        Raises:
            NotFoundError: If the period does not exist
        """
        period = await self.period_repo.get_by_id(period_id)
        if period is None:
            raise NotFoundError(
                f"Period {period_id} not found", period_id=period_id
            )
        return period

    async def get_active_period(self, lock: bool = False) -> ReferralPeriod | None:
        """Get the active period, if any."""
        return await self.period_repo.get_active(lock=lock)

    async def list_periods(self) -> list[ReferralPeriod]:
        """List periods, newest first."""
        return await self.period_repo.list_all()

    async def get_period_stats(self, period: ReferralPeriod) -> dict[str, int]:
        """
        Live stats of a period.

        Returns:
            {"totalReferrals", "activeReferrals", "usersWithBonuses"}
        """
        now = self.clock()
        strategy = create_strategy(period.strategy, period.strategy_config)
        links = await self.link_repo.get_for_period(period.id)
        active = sum(
            1
            for link in links
            if not is_link_expired(link, period.rolling_window_days, now)
            and strategy.is_active_referral(link, now)
        )
        return {
            "totalReferrals": len(links),
            "activeReferrals": active,
            "usersWithBonuses": await self.bonus_repo.count_recipients(period.id),
        }

    async def get_period_detail(self, period_id: int) -> PeriodDetail:
        """
        Period with live stats (active and completed periods only).

        Raises:
            NotFoundError: If the period does not exist
        """
        period = await self.get_period(period_id)
        if period.status not in (PeriodStatus.ACTIVE, PeriodStatus.COMPLETED):
            return PeriodDetail(period=period)
        return PeriodDetail(period=period, stats=await self.get_period_stats(period))

    async def can_modify_period(self, period_id: int) -> tuple[bool, str | None]:
        """
        Check whether admins may still change a period's rules.

        Returns:
            Tuple of (allowed, reason)
        """
        period = await self.period_repo.get_by_id(period_id)
        if period is None:
            return False, "Period not found"

        if PeriodStatus(period.status).is_terminal:
            return False, "Completed/cancelled periods cannot be modified"

        if period.status == PeriodStatus.ACTIVE:
            holders = await self.bonus_repo.count_recipients(period.id)
            if holders > MAX_BONUS_HOLDERS_FOR_MODIFY:
                return False, (
                    f"{holders} users have active bonuses. "
                    "Complete this period and start a new one."
                )

        return True, None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_period(
        self,
        name: str,
        strategy: str,
        strategy_config: dict[str, Any],
        reset_mode: str = ResetMode.MANUAL,
        reset_config: dict[str, Any] | None = None,
        referee_benefits: dict[str, Any] | None = None,
        starts_at: datetime | None = None,
        ends_at: datetime | None = None,
    ) -> ReferralPeriod:
        """
        Create a draft period.

        Args:
            name: Display name
            strategy: Strategy tag
            strategy_config: Strategy config (camelCase)
            reset_mode: manual, scheduled or rolling_expiry
            reset_config: {"schedule": ...} / {"rolling": ...}, archiveEnabled
            referee_benefits: Signup/first-bet benefits (defaults applied)
            starts_at: Planned start (defaults to now)
            ends_at: Planned end

        Returns:
            Draft period

        Raises:
            ValidationError: If a config is malformed
            UnsupportedStrategyError: If the strategy or reset mode is unknown
        """
        strategy_type = parse_strategy_type(strategy)
        config = validate_strategy_config(strategy_type, strategy_config)
        resets = validate_reset_config(reset_mode, reset_config or {})
        benefits = validate_referee_benefits(referee_benefits)

        period = await self.period_repo.create(
            name=name,
            strategy=strategy_type.value,
            strategy_config=config.to_json(),
            reset_mode=ResetMode(reset_mode).value,
            reset_config=resets.to_json(),
            referee_benefits=benefits.to_json(),
            status=PeriodStatus.DRAFT.value,
            starts_at=ensure_utc(starts_at) if starts_at else self.clock(),
            ends_at=ensure_utc(ends_at) if ends_at else None,
        )

        logger.info(
            "Referral period created",
            extra={
                "period_id": period.id,
                "strategy": period.strategy,
                "reset_mode": period.reset_mode,
            },
        )
        return period

    async def update_period(
        self, period_id: int, **changes: Any
    ) -> ReferralPeriod:
        """
        Edit a draft period.

        Raises:
            NotFoundError: If the period does not exist
            InvalidStateError: If the period is not a draft
            ValidationError: If a changed config is malformed
        """
        period = await self.get_period(period_id)
        if period.status != PeriodStatus.DRAFT:
            raise InvalidStateError(
                "Only draft periods can be modified",
                period_id=period_id,
                status=period.status,
            )

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be edited: {', '.join(sorted(unknown))}",
                period_id=period_id,
            )

        strategy = changes.get("strategy", period.strategy)
        if "strategy" in changes or "strategy_config" in changes:
            config = validate_strategy_config(
                strategy, changes.get("strategy_config", period.strategy_config)
            )
            changes["strategy"] = parse_strategy_type(strategy).value
            changes["strategy_config"] = config.to_json()

        if "reset_mode" in changes or "reset_config" in changes:
            reset_mode = changes.get("reset_mode", period.reset_mode)
            changes["reset_config"] = validate_reset_config(
                reset_mode, changes.get("reset_config", period.reset_config)
            ).to_json()
            changes["reset_mode"] = ResetMode(reset_mode).value

        if "referee_benefits" in changes:
            changes["referee_benefits"] = validate_referee_benefits(
                changes["referee_benefits"]
            ).to_json()

        for key in ("starts_at", "ends_at"):
            if changes.get(key) is not None:
                changes[key] = ensure_utc(changes[key])

        updated = await self.period_repo.update(period_id, **changes)
        logger.info(
            "Referral period updated",
            extra={"period_id": period_id, "fields": sorted(changes)},
        )
        return updated

    async def activate_period(self, period_id: int) -> ReferralPeriod:
        """
        Move a draft to active and stamp startsAt.

        Scheduled periods without a future nextResetAt get one computed
        from their schedule.

        Raises:
            NotFoundError: If the period does not exist
            InvalidStateError: If the period is not a draft
            ConflictError: If another period is already active
            ValidationError: If the config is no longer valid
        """
        period = await self.get_period(period_id)
        if period.status != PeriodStatus.DRAFT:
            raise InvalidStateError(
                "Only draft periods can be activated",
                period_id=period_id,
                status=period.status,
            )

        active = await self.period_repo.get_active()
        if active is not None:
            raise ConflictError(
                f'Another period is already active: "{active.name}" (ID: {active.id})',
                period_id=period_id,
                active_period_id=active.id,
            )

        validate_strategy_config(period.strategy, period.strategy_config)
        validate_reset_config(period.reset_mode, period.reset_config)

        now = self.clock()
        values: dict[str, Any] = {"starts_at": now}
        if period.reset_mode == ResetMode.SCHEDULED:
            next_reset_at = get_next_reset_at(period.reset_config)
            if next_reset_at is None or next_reset_at <= now:
                next_reset_at = calculate_next_reset_time(period.schedule, now)
                values["reset_config"] = with_next_reset_at(
                    period.reset_config, next_reset_at
                )

        try:
            async with self.session.begin_nested():
                activated = await self.period_repo.transition_status(
                    period_id, PeriodStatus.DRAFT, PeriodStatus.ACTIVE, **values
                )
        except IntegrityError as e:
            raise ConflictError(
                "Another period was activated concurrently",
                period_id=period_id,
            ) from e

        if activated is None:
            raise InvalidStateError(
                "Period is no longer a draft", period_id=period_id
            )

        logger.info(
            "Referral period activated",
            extra={
                "period_id": period_id,
                "reset_mode": activated.reset_mode,
                "next_reset_at": (activated.schedule or {}).get("nextResetAt"),
            },
        )
        return activated

    async def complete_period(
        self, period_id: int, chain_next: bool = False
    ) -> CompletionResult:
        """
        Complete an active period, archive it and optionally chain a successor.

        Status moves first through compare-and-swap, so of two concurrent
        completions only one archives; the other gets InvalidStateError.

        Args:
            period_id: Period ID
            chain_next: Create and activate a successor with the same rules

        Returns:
            CompletionResult with the archive and the successor, if any

        Raises:
            NotFoundError: If the period does not exist
            InvalidStateError: If the period is not active
        """
        now = self.clock()
        completed = await self.period_repo.transition_status(
            period_id,
            PeriodStatus.ACTIVE,
            PeriodStatus.COMPLETED,
            completed_at=now,
            ends_at=now,
        )
        if completed is None:
            period = await self.get_period(period_id)
            raise InvalidStateError(
                "Only active periods can be completed",
                period_id=period_id,
                status=period.status,
            )

        archive = await self.leaderboard.archive_period(completed, now)

        logger.info(
            "Referral period completed",
            extra={
                "period_id": period_id,
                "archive_id": archive.id,
                "chain_next": chain_next,
            },
        )

        next_period = None
        if chain_next:
            next_period = await self._chain_successor(completed, now)

        return CompletionResult(
            period=completed, archive=archive, next_period=next_period
        )

    async def _chain_successor(
        self, previous: ReferralPeriod, now: datetime
    ) -> ReferralPeriod:
        reset_config = dict(previous.reset_config or {})
        if previous.reset_mode == ResetMode.SCHEDULED and previous.schedule:
            reset_config = with_next_reset_at(
                reset_config, calculate_next_reset_time(previous.schedule, now)
            )

        successor = await self.period_repo.create(
            name=f"{previous.name.removesuffix(CONTINUED_SUFFIX)}{CONTINUED_SUFFIX}",
            strategy=previous.strategy,
            strategy_config=dict(previous.strategy_config),
            reset_mode=previous.reset_mode,
            reset_config=reset_config,
            referee_benefits=dict(previous.referee_benefits),
            status=PeriodStatus.DRAFT.value,
            starts_at=now,
        )
        return await self.activate_period(successor.id)

    async def reset_period(
        self, period_id: int, create_new: bool = True
    ) -> CompletionResult:
        """Admin manual reset: complete and optionally start a successor."""
        return await self.complete_period(period_id, chain_next=create_new)

    async def cancel_period(self, period_id: int) -> None:
        """
        Cancel an unstarted draft. The row is hard-deleted, no archive.

        Raises:
            NotFoundError: If the period does not exist
            InvalidStateError: If the period has started
        """
        period = await self.get_period(period_id)
        if period.status != PeriodStatus.DRAFT:
            raise InvalidStateError(
                "Only draft periods can be cancelled",
                period_id=period_id,
                status=period.status,
            )

        deleted = await self.period_repo.delete_unstarted(period_id)
        if not deleted:
            raise InvalidStateError(
                "Period is no longer a draft", period_id=period_id
            )

        logger.info("Referral period cancelled", extra={"period_id": period_id})

    async def delete_period(self, period_id: int) -> None:
        """
        Delete a period. Never permitted on active or completed periods.

        Raises:
            NotFoundError: If the period does not exist
            InvalidStateError: If the period is active or completed
        """
        await self.cancel_period(period_id)
