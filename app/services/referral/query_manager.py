"""
Referral query management module.

Read-only views for end users: own code and points, referral list,
bonus breakdown, active period info and rankings.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PeriodStatus
from app.models.referral_bonus import ReferralBonus
from app.models.referral_link import ReferralLink
from app.models.referral_period import ReferralPeriod
from app.repositories.referral_bonus_repository import ReferralBonusRepository
from app.repositories.referral_code_repository import ReferralCodeRepository
from app.repositories.referral_link_repository import ReferralLinkRepository
from app.repositories.referral_period_repository import ReferralPeriodRepository
from app.repositories.referral_points_repository import ReferralPointsRepository
from app.services.referral.leaderboard import ReferralLeaderboardManager
from app.utils.exceptions import NotFoundError
from app.utils.validation import normalize_wallet_address


@dataclass
class UserSummary:
    """A wallet's referral standing in the active period."""

    address: str
    code: str | None
    referral_count: int
    period_id: int | None
    trading_points: Decimal = Decimal("0")
    bonus_points: Decimal = Decimal("0")

    @property
    def total_points(self) -> Decimal:
        return self.trading_points + self.bonus_points


class ReferralQueryManager:
    """Manages referral query operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize query manager."""
        self.session = session
        self.period_repo = ReferralPeriodRepository(session)
        self.code_repo = ReferralCodeRepository(session)
        self.link_repo = ReferralLinkRepository(session)
        self.points_repo = ReferralPointsRepository(session)
        self.bonus_repo = ReferralBonusRepository(session)
        self.leaderboard = ReferralLeaderboardManager(session)

    async def _resolve_period_id(self, period_id: int | None) -> int | None:
        if period_id is not None:
            return period_id
        active = await self.period_repo.get_active()
        return active.id if active else None

    async def get_referrals_for_user(
        self, address: str, period_id: int | None = None
    ) -> list[ReferralLink]:
        """
        Get links where address is the referrer.

        Args:
            address: Referrer wallet
            period_id: Period (defaults to the active one)

        Returns:
            Links, oldest first (empty with no active period)
        """
        address = normalize_wallet_address(address)
        period_id = await self._resolve_period_id(period_id)
        if period_id is None:
            return []
        return await self.link_repo.get_for_referrer(period_id, address)

    async def get_bonus_breakdown(
        self, address: str, period_id: int | None = None
    ) -> list[ReferralBonus]:
        """
        Get a wallet's bonus awards, newest first.

        Args:
            address: Wallet address
            period_id: Period (defaults to the active one)

        Returns:
            Bonus awards (empty with no active period)
        """
        address = normalize_wallet_address(address)
        period_id = await self._resolve_period_id(period_id)
        if period_id is None:
            return []
        return await self.bonus_repo.get_for_recipient(period_id, address)

    async def get_user_summary(self, address: str) -> UserSummary:
        """
        Own code, referral count and points in the active period.

        Args:
            address: Wallet address

        Returns:
            UserSummary (zero points with no active period)
        """
        address = normalize_wallet_address(address)
        code = await self.code_repo.get_by_address(address)
        active = await self.period_repo.get_active()

        summary = UserSummary(
            address=address,
            code=code.code if code else None,
            referral_count=code.referral_count if code else 0,
            period_id=active.id if active else None,
        )
        if active is None:
            return summary

        entry = await self.points_repo.get_entry(active.id, address)
        if entry is not None:
            summary.trading_points = entry.trading_points
            summary.bonus_points = entry.bonus_points
        return summary

    async def get_active_period_info(self) -> dict[str, Any] | None:
        """
        Active period with its referee benefits.

        Returns:
            Dict with period fields, or None when no period is active
        """
        period = await self.period_repo.get_active()
        if period is None:
            return None
        return {
            "id": period.id,
            "name": period.name,
            "strategy": period.strategy,
            "strategyConfig": period.strategy_config,
            "resetMode": period.reset_mode,
            "startsAt": period.starts_at.isoformat(),
            "endsAt": period.ends_at.isoformat() if period.ends_at else None,
            "nextResetAt": (period.schedule or {}).get("nextResetAt"),
            "refereeBenefits": period.referee_benefits,
        }

    async def get_period_leaderboard(
        self, period_id: int, limit: int | None = None
    ) -> list[dict[str, Any]]:
        """
        Rankings of any period.

        Completed periods return their frozen archive; others are live.

        Raises:
            NotFoundError: If the period does not exist
        """
        period: ReferralPeriod | None = await self.period_repo.get_by_id(period_id)
        if period is None:
            raise NotFoundError(f"Period {period_id} not found", period_id=period_id)

        if period.status == PeriodStatus.COMPLETED:
            archive = await self.leaderboard.archive_repo.get_by_period(period_id)
            if archive is not None:
                rankings = archive.rankings
                return rankings if limit is None else rankings[:limit]

        entries = await self.leaderboard.get_leaderboard(period, limit)
        return [entry.to_archive_row() for entry in entries]
