"""
ReferralBonus model.

Audit log of every bonus award; backs milestone idempotence and
revenue-share caps.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import PointsType, UTCDateTime


class ReferralBonus(Base):
    """
    ReferralBonus entity.

    Attributes:
        recipient_address: Wallet credited
        source_address: Referee whose activity caused the award (None for
            multipliers on the recipient's own trades)
        bonus_type: BonusType tag
        points: Bonus points awarded
        milestone_key: "referrer:<referee>:<index>" / "referee:<referee>:<index>";
            unique per period so a milestone fires once
    """

    __tablename__ = "referral_bonuses"
    __table_args__ = (
        UniqueConstraint("period_id", "milestone_key", name="uq_referral_bonuses_period_milestone"),
        Index("idx_referral_bonuses_period_recipient", "period_id", "recipient_address"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_id: Mapped[int] = mapped_column(
        ForeignKey("referral_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recipient_address: Mapped[str] = mapped_column(String(42), nullable=False)
    source_address: Mapped[str | None] = mapped_column(String(42), nullable=True)

    bonus_type: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[Decimal] = mapped_column(PointsType, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    milestone_key: Mapped[str | None] = mapped_column(String(200), nullable=True)

    awarded_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralBonus(period_id={self.period_id}, "
            f"recipient={self.recipient_address}, type={self.bonus_type}, "
            f"points={self.points})>"
        )
