"""
Referral points repository.

Per-period points ledger. Balances only ever increase.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.referral_points import ReferralPoints
from app.repositories.base import BaseRepository


ZERO = Decimal("0")


class ReferralPointsRepository(BaseRepository[ReferralPoints]):
    """Points ledger repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize points repository."""
        super().__init__(ReferralPoints, session)

    async def get_entry(
        self, period_id: int, address: str
    ) -> ReferralPoints | None:
        """
        Get a wallet's ledger entry for a period.

        Args:
            period_id: Period ID
            address: Wallet address (lowercase)

        Returns:
            Ledger entry or None
        """
        return await self.get_by(period_id=period_id, address=address)

    async def add_points(
        self,
        period_id: int,
        address: str,
        trading_points: Decimal = ZERO,
        bonus_points: Decimal = ZERO,
    ) -> ReferralPoints:
        """
        Credit points to a wallet, creating its entry on first use.

        Increments are applied in SQL (col = col + delta) so concurrent
        awards for the same wallet never lose an update.

        Args:
            period_id: Period ID
            address: Wallet address (lowercase)
            trading_points: Trading points to add (>= 0)
            bonus_points: Bonus points to add (>= 0)

        Returns:
            Refreshed ledger entry

        Raises:
            ValueError: If a delta is negative
        """
        if trading_points < 0 or bonus_points < 0:
            raise ValueError("Points ledger deltas must be non-negative")

        entry = await self.get_entry(period_id, address)
        if entry is None:
            try:
                async with self.session.begin_nested():
                    entry = ReferralPoints(
                        period_id=period_id,
                        address=address,
                        trading_points=trading_points,
                        bonus_points=bonus_points,
                    )
                    self.session.add(entry)
                    await self.session.flush()
                await self.session.refresh(entry)
                return entry
            except IntegrityError:
                logger.debug(
                    "Points entry created concurrently, falling back to increment",
                    extra={"period_id": period_id, "address": address},
                )
                entry = await self.get_entry(period_id, address)
                if entry is None:
                    raise

        stmt = (
            update(ReferralPoints)
            .where(ReferralPoints.id == entry.id)
            .values(
                trading_points=ReferralPoints.trading_points + trading_points,
                bonus_points=ReferralPoints.bonus_points + bonus_points,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.refresh(entry)
        return entry

    async def list_for_period(self, period_id: int) -> list[ReferralPoints]:
        """Get every ledger entry of a period."""
        stmt = (
            select(ReferralPoints)
            .where(ReferralPoints.period_id == period_id)
            .order_by(ReferralPoints.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
