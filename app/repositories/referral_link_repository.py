"""
Referral link repository.

Data access layer for ReferralLink model.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import LinkStatus
from app.models.referral_link import ReferralLink
from app.repositories.base import BaseRepository


class ReferralLinkRepository(BaseRepository[ReferralLink]):
    """Referral link repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral link repository."""
        super().__init__(ReferralLink, session)

    async def get_for_referred(
        self, period_id: int, referred_address: str
    ) -> ReferralLink | None:
        """
        Get the link where address is the referee.

        Args:
            period_id: Period ID
            referred_address: Referee wallet (lowercase)

        Returns:
            Link or None
        """
        return await self.get_by(
            period_id=period_id, referred_address=referred_address
        )

    async def get_for_referrer(
        self, period_id: int, referrer_address: str
    ) -> list[ReferralLink]:
        """
        Get links where address is the referrer, oldest first.

        Args:
            period_id: Period ID
            referrer_address: Referrer wallet (lowercase)

        Returns:
            List of links
        """
        stmt = (
            select(ReferralLink)
            .where(
                ReferralLink.period_id == period_id,
                ReferralLink.referrer_address == referrer_address,
            )
            .order_by(ReferralLink.linked_at, ReferralLink.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_period(self, period_id: int) -> list[ReferralLink]:
        """Get all links of a period."""
        stmt = (
            select(ReferralLink)
            .where(ReferralLink.period_id == period_id)
            .order_by(ReferralLink.linked_at, ReferralLink.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_referrer(
        self, period_id: int, referrer_address: str
    ) -> int:
        """Count a referrer's links in a period."""
        return await self.count(
            period_id=period_id, referrer_address=referrer_address
        )

    async def get_referral_counts(self, period_id: int) -> dict[str, int]:
        """
        Get referral counts per referrer in a single query.

        Args:
            period_id: Period ID

        Returns:
            Dict mapping referrer address to link count
        """
        stmt = (
            select(
                ReferralLink.referrer_address,
                func.count(ReferralLink.id).label("count"),
            )
            .where(ReferralLink.period_id == period_id)
            .group_by(ReferralLink.referrer_address)
        )
        result = await self.session.execute(stmt)
        return {row.referrer_address: row.count for row in result.all()}

    async def get_status_counts(self, period_id: int) -> dict[str, int]:
        """
        Get link counts by status.

        Args:
            period_id: Period ID

        Returns:
            Dict {"pending": n, "active": m}
        """
        stmt = (
            select(ReferralLink.status, func.count(ReferralLink.id).label("count"))
            .where(ReferralLink.period_id == period_id)
            .group_by(ReferralLink.status)
        )
        result = await self.session.execute(stmt)
        counts = {status.value: 0 for status in LinkStatus}
        for row in result.all():
            counts[row.status] = row.count
        return counts
