"""
ReferralCode model.

One code per wallet, shared across periods.
"""

from datetime import UTC, datetime

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import UTCDateTime


class ReferralCode(Base):
    """
    ReferralCode entity.

    Codes are stored upper-case and matched case-insensitively.
    referral_count is denormalized for display.
    """

    __tablename__ = "referral_codes"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    address: Mapped[str] = mapped_column(
        String(42), nullable=False, unique=True, index=True
    )
    code: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True
    )
    referral_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ReferralCode(address={self.address}, code={self.code})>"
