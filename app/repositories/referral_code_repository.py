"""
Referral code repository.

Data access layer for ReferralCode model.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.referral_code import ReferralCode
from app.repositories.base import BaseRepository


class ReferralCodeRepository(BaseRepository[ReferralCode]):
    """Referral code repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral code repository."""
        super().__init__(ReferralCode, session)

    async def get_by_address(self, address: str) -> ReferralCode | None:
        """
        Get a wallet's code.

        Args:
            address: Wallet address (lowercase)

        Returns:
            ReferralCode or None
        """
        return await self.get_by(address=address)

    async def get_by_code(self, code: str) -> ReferralCode | None:
        """
        Get a code, case-insensitively.

        Args:
            code: Referral code as typed by the user

        Returns:
            ReferralCode or None
        """
        return await self.get_by(code=code.strip().upper())

    async def get_by_addresses(
        self, addresses: list[str]
    ) -> dict[str, ReferralCode]:
        """Get codes for several wallets, keyed by address."""
        if not addresses:
            return {}
        codes = await self.find_by_addresses(addresses)
        return {code.address: code for code in codes}

    async def find_by_addresses(self, addresses: list[str]) -> list[ReferralCode]:
        """Find codes belonging to any of the addresses."""
        stmt = select(ReferralCode).where(ReferralCode.address.in_(addresses))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def increment_referral_count(self, code_id: int) -> None:
        """
        Atomically bump the denormalized referral count.

        Args:
            code_id: ReferralCode ID
        """
        stmt = (
            update(ReferralCode)
            .where(ReferralCode.id == code_id)
            .values(referral_count=ReferralCode.referral_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
