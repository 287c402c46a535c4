"""
ReferralLink model.

Referrer -> referee edge created when a referee signs up with a code.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import LinkStatus
from app.models.types import PointsType, UTCDateTime


class ReferralLink(Base):
    """
    ReferralLink entity.

    One link per referee per period. Only the activity fields
    (status, first_bet_at, last_bet_at, lifetime_volume) change after
    creation.
    """

    __tablename__ = "referral_links"
    __table_args__ = (
        UniqueConstraint("period_id", "referred_address", name="uq_referral_links_period_referred"),
        Index("idx_referral_links_period_referrer", "period_id", "referrer_address"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("referral_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    referrer_address: Mapped[str] = mapped_column(String(42), nullable=False)
    referred_address: Mapped[str] = mapped_column(String(42), nullable=False)
    referral_code: Mapped[str] = mapped_column(String(20), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LinkStatus.PENDING.value
    )
    linked_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    first_bet_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    last_bet_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
    )
    lifetime_volume: Mapped[Decimal] = mapped_column(
        PointsType, nullable=False, default=Decimal("0")
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralLink(id={self.id}, period_id={self.period_id}, "
            f"{self.referrer_address} -> {self.referred_address}, "
            f"status={self.status})>"
        )
