"""
ReferralPoints model.

Per-wallet, per-period points ledger.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import PointsType, UTCDateTime


class ReferralPoints(Base):
    """
    Points ledger entry.

    Balances only grow within a period; the repository exposes
    increments, never overwrites.
    """

    __tablename__ = "referral_points"
    __table_args__ = (
        UniqueConstraint("period_id", "address", name="uq_referral_points_period_address"),
        CheckConstraint("trading_points >= 0", name="trading_points_non_negative"),
        CheckConstraint("bonus_points >= 0", name="bonus_points_non_negative"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("referral_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    address: Mapped[str] = mapped_column(String(42), nullable=False)

    trading_points: Mapped[Decimal] = mapped_column(
        PointsType, nullable=False, default=Decimal("0")
    )
    bonus_points: Mapped[Decimal] = mapped_column(
        PointsType, nullable=False, default=Decimal("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralPoints(period_id={self.period_id}, address={self.address}, "
            f"trading={self.trading_points}, bonus={self.bonus_points})>"
        )

    @property
    def total_points(self) -> Decimal:
        """Trading plus bonus points."""
        return self.trading_points + self.bonus_points
