"""
Leaderboard archive repository.

Archives are insert-only.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.leaderboard_archive import LeaderboardArchive
from app.repositories.base import BaseRepository


class LeaderboardArchiveRepository(BaseRepository[LeaderboardArchive]):
    """Archive repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize archive repository."""
        super().__init__(LeaderboardArchive, session)

    async def get_by_period(self, period_id: int) -> LeaderboardArchive | None:
        """
        Get the archive of a period.

        Args:
            period_id: Period ID

        Returns:
            Archive or None if the period was never archived
        """
        return await self.get_by(period_id=period_id)

    async def list_all(self) -> list[LeaderboardArchive]:
        """List archives, newest first."""
        stmt = select(LeaderboardArchive).order_by(
            LeaderboardArchive.created_at.desc(), LeaderboardArchive.id.desc()
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
