"""
Referral bonus repository.

Data access layer for the bonus award log.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import BonusType
from app.models.referral_bonus import ReferralBonus
from app.repositories.base import BaseRepository


class ReferralBonusRepository(BaseRepository[ReferralBonus]):
    """Bonus log repository with aggregate queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize bonus repository."""
        super().__init__(ReferralBonus, session)

    async def get_for_recipient(
        self, period_id: int, recipient_address: str
    ) -> list[ReferralBonus]:
        """
        Get a wallet's bonus awards, newest first.

        Args:
            period_id: Period ID
            recipient_address: Wallet address (lowercase)

        Returns:
            List of bonus awards
        """
        stmt = (
            select(ReferralBonus)
            .where(
                ReferralBonus.period_id == period_id,
                ReferralBonus.recipient_address == recipient_address,
            )
            .order_by(ReferralBonus.awarded_at.desc(), ReferralBonus.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_milestone_keys(
        self, period_id: int, referee_address: str
    ) -> set[str]:
        """
        Get milestone keys already fired for a referral.

        Args:
            period_id: Period ID
            referee_address: Referee whose progress fired the milestones

        Returns:
            Set of milestone keys
        """
        stmt = select(ReferralBonus.milestone_key).where(
            ReferralBonus.period_id == period_id,
            ReferralBonus.source_address == referee_address,
            ReferralBonus.bonus_type == BonusType.MILESTONE,
            ReferralBonus.milestone_key.is_not(None),
        )
        result = await self.session.execute(stmt)
        return {row[0] for row in result.all()}

    async def sum_points(
        self,
        period_id: int,
        recipient_address: str,
        bonus_type: BonusType,
        source_address: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> Decimal:
        """
        Sum awarded points with optional source and time filters.

        Args:
            period_id: Period ID
            recipient_address: Wallet credited
            bonus_type: Award type
            source_address: Only awards caused by this referee
            since: Inclusive lower bound on awarded_at
            until: Exclusive upper bound on awarded_at

        Returns:
            Total points (0 if none)
        """
        stmt = select(
            func.coalesce(func.sum(ReferralBonus.points), Decimal("0"))
        ).where(
            ReferralBonus.period_id == period_id,
            ReferralBonus.recipient_address == recipient_address,
            ReferralBonus.bonus_type == bonus_type,
        )
        if source_address is not None:
            stmt = stmt.where(ReferralBonus.source_address == source_address)
        if since is not None:
            stmt = stmt.where(ReferralBonus.awarded_at >= since)
        if until is not None:
            stmt = stmt.where(ReferralBonus.awarded_at < until)

        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def count_recipients(self, period_id: int) -> int:
        """Count distinct wallets holding a bonus in a period."""
        stmt = select(
            func.count(func.distinct(ReferralBonus.recipient_address))
        ).where(ReferralBonus.period_id == period_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
