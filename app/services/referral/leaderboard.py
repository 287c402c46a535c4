"""
Referral leaderboard and archive module.

Builds live rankings from the points ledger and freezes them into an
archive when a period completes.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.leaderboard_archive import LeaderboardArchive
from app.models.referral_period import ReferralPeriod
from app.repositories.leaderboard_archive_repository import (
    LeaderboardArchiveRepository,
)
from app.repositories.referral_code_repository import ReferralCodeRepository
from app.repositories.referral_link_repository import ReferralLinkRepository
from app.repositories.referral_points_repository import ReferralPointsRepository
from app.services.referral.strategies import create_strategy
from app.utils.exceptions import NotFoundError


_LAST = datetime.max.replace(tzinfo=UTC)
_NO_ID = 2**63


def format_points(value: Decimal) -> str:
    """Exact decimal string for archived point values."""
    return format(value.normalize(), "f")


@dataclass
class LeaderboardEntry:
    """One ranked wallet."""

    rank: int
    address: str
    trading_points: Decimal
    bonus_points: Decimal
    total_points: Decimal
    referral_count: int

    def to_archive_row(self) -> dict[str, Any]:
        """Row frozen into an archive's rankings."""
        return {
            "rank": self.rank,
            "address": self.address,
            "points": format_points(self.total_points),
            "referrals": self.referral_count,
            "bonusPoints": format_points(self.bonus_points),
        }


class ReferralLeaderboardManager:
    """Manages leaderboard and archive operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize leaderboard manager."""
        self.session = session
        self.points_repo = ReferralPointsRepository(session)
        self.link_repo = ReferralLinkRepository(session)
        self.code_repo = ReferralCodeRepository(session)
        self.archive_repo = LeaderboardArchiveRepository(session)

    async def get_leaderboard(
        self, period: ReferralPeriod, limit: int | None = None
    ) -> list[LeaderboardEntry]:
        """
        Rank every wallet with points or referrals in a period.

        Sorted by total points descending. Ties go to the wallet that
        joined first: earlier linkedAt as a referee, then earlier code
        creation, then earlier ledger entry. Ranks are 1..N with no
        gaps and no shared ranks.

        Args:
            period: Period to rank
            limit: Maximum entries (defaults to settings)

        Returns:
            Ranked entries
        """
        if limit is None:
            limit = settings.referral_leaderboard_limit
        strategy = create_strategy(period.strategy, period.strategy_config)

        entries = await self.points_repo.list_for_period(period.id)
        links = await self.link_repo.get_for_period(period.id)
        referral_counts = await self.link_repo.get_referral_counts(period.id)

        ledger = {entry.address: entry for entry in entries}
        linked_at = {link.referred_address: link.linked_at for link in links}
        addresses = set(ledger) | set(referral_counts)
        codes = await self.code_repo.get_by_addresses(sorted(addresses))

        rows = []
        for address in addresses:
            entry = ledger.get(address)
            trading = entry.trading_points if entry else Decimal("0")
            bonus = entry.bonus_points if entry else Decimal("0")
            code = codes.get(address)
            sort_key = (
                -strategy.ranking_score(trading, bonus),
                linked_at.get(address, _LAST),
                code.id if code else _NO_ID,
                entry.id if entry else _NO_ID,
                address,
            )
            rows.append((sort_key, address, trading, bonus))

        rows.sort(key=lambda row: row[0])

        return [
            LeaderboardEntry(
                rank=index,
                address=address,
                trading_points=trading,
                bonus_points=bonus,
                total_points=trading + bonus,
                referral_count=referral_counts.get(address, 0),
            )
            for index, (_, address, trading, bonus) in enumerate(
                rows[:limit], start=1
            )
        ]

    async def archive_period(
        self, period: ReferralPeriod, ended_at: datetime
    ) -> LeaderboardArchive:
        """
        Freeze a period's standings.

        Write-once: if the period already has an archive it is returned
        unchanged.

        Args:
            period: Period being completed
            ended_at: Completion time

        Returns:
            The period's archive
        """
        existing = await self.archive_repo.get_by_period(period.id)
        if existing is not None:
            logger.info(
                "Period already archived, keeping existing snapshot",
                extra={"period_id": period.id, "archive_id": existing.id},
            )
            return existing

        leaderboard = await self.get_leaderboard(
            period, limit=settings.referral_archive_limit
        )
        rankings = [entry.to_archive_row() for entry in leaderboard]
        total_bonus = sum((e.bonus_points for e in leaderboard), Decimal("0"))

        archive = await self.archive_repo.create(
            period_id=period.id,
            period_start=period.starts_at,
            period_end=ended_at,
            reset_mode=period.reset_mode,
            rankings=rankings,
            stats={
                "totalUsers": len(rankings),
                "totalReferrals": sum(e.referral_count for e in leaderboard),
                "totalBonusAwarded": format_points(total_bonus),
                "topReferrer": rankings[0]["address"] if rankings else None,
            },
        )

        logger.info(
            "Period archived",
            extra={
                "period_id": period.id,
                "archive_id": archive.id,
                "users": len(rankings),
            },
        )
        return archive

    async def get_archive(self, period_id: int) -> LeaderboardArchive:
        """
        Get a completed period's archive.

        Raises:
            NotFoundError: If the period was never archived
        """
        archive = await self.archive_repo.get_by_period(period_id)
        if archive is None:
            raise NotFoundError(
                f"No archive for period {period_id}", period_id=period_id
            )
        return archive

    async def list_archives(self) -> list[LeaderboardArchive]:
        """List archives, newest first."""
        return await self.archive_repo.list_all()
