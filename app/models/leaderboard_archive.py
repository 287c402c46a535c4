"""
LeaderboardArchive model.

Immutable snapshot of a completed period's standings.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.referral_period import JSONType
from app.models.types import UTCDateTime


class LeaderboardArchive(Base):
    """
    LeaderboardArchive entity.

    Written once when a period completes, never updated. Point values
    inside rankings/stats are decimal strings so the snapshot is exact.

    Attributes:
        rankings: [{"rank", "address", "points", "referrals", "bonusPoints"}]
        stats: {"totalUsers", "totalReferrals", "totalBonusAwarded", "topReferrer"}
    """

    __tablename__ = "leaderboard_archives"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("referral_periods.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    period_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    period_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reset_mode: Mapped[str] = mapped_column(String(32), nullable=False)

    rankings: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    stats: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LeaderboardArchive(period_id={self.period_id}, "
            f"users={len(self.rankings or [])})>"
        )
