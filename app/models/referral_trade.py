"""
ReferralTrade model.

Trades recorded against a period; team volume windows sum over them.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import PointsType, UTCDateTime


class ReferralTrade(Base):
    """ReferralTrade entity."""

    __tablename__ = "referral_trades"
    __table_args__ = (
        Index("idx_referral_trades_period_address_time", "period_id", "address", "occurred_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("referral_periods.id", ondelete="CASCADE"),
        nullable=False,
    )
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    volume: Mapped[Decimal] = mapped_column(PointsType, nullable=False)
    fee: Mapped[Decimal | None] = mapped_column(PointsType, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralTrade(period_id={self.period_id}, address={self.address}, "
            f"volume={self.volume})>"
        )
