"""
Referral trade repository.

Records trades per period and sums windowed volume.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.referral_trade import ReferralTrade
from app.repositories.base import BaseRepository


class ReferralTradeRepository(BaseRepository[ReferralTrade]):
    """Trade log repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize trade repository."""
        super().__init__(ReferralTrade, session)

    async def sum_volume(
        self,
        period_id: int,
        addresses: list[str],
        since: datetime,
        until: datetime,
    ) -> Decimal:
        """
        Sum trade volume of several wallets inside a window.

        Args:
            period_id: Period ID
            addresses: Wallets to include
            since: Inclusive window start
            until: Exclusive window end

        Returns:
            Total volume (0 if none)
        """
        if not addresses:
            return Decimal("0")

        stmt = select(
            func.coalesce(func.sum(ReferralTrade.volume), Decimal("0"))
        ).where(
            ReferralTrade.period_id == period_id,
            ReferralTrade.address.in_(addresses),
            ReferralTrade.occurred_at >= since,
            ReferralTrade.occurred_at < until,
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))
