"""
ReferralPeriod model.

A named referral competition window with one reward strategy.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import PeriodStatus, ResetMode
from app.models.types import UTCDateTime


JSONType = JSON().with_variant(JSONB(), "postgresql")


class ReferralPeriod(Base):
    """
    ReferralPeriod entity.

    Lifecycle: draft -> active -> completed, or draft -> cancelled
    (cancellation hard-deletes the draft). At most one row is active;
    the partial unique index enforces it in storage.

    Attributes:
        id: Primary key
        name: Display name
        strategy: StrategyType tag
        strategy_config: Variant-specific config (camelCase JSON)
        reset_mode: ResetMode tag
        reset_config: {"schedule": {...}} or {"rolling": {...}}, plus archiveEnabled
        referee_benefits: {"signupBonus", "firstBetMultiplier", "maxStake"}
        status: PeriodStatus
        starts_at: Stamped on activation
        ends_at: Stamped on completion (or admin-planned end)
        completed_at: When the period completed
    """

    __tablename__ = "referral_periods"
    __table_args__ = (
        Index(
            "uq_referral_periods_single_active",
            "status",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    strategy: Mapped[str] = mapped_column(String(32), nullable=False)
    strategy_config: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    reset_mode: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ResetMode.MANUAL.value
    )
    reset_config: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    referee_benefits: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PeriodStatus.DRAFT.value,
        index=True,
        comment="draft, active, completed, cancelled",
    )

    starts_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC)
    )
    ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True
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
            f"<ReferralPeriod(id={self.id}, name={self.name!r}, "
            f"strategy={self.strategy}, status={self.status})>"
        )

    @property
    def is_active(self) -> bool:
        """Whether the period is currently accruing points."""
        return self.status == PeriodStatus.ACTIVE

    @property
    def schedule(self) -> dict[str, Any] | None:
        """Scheduled-reset settings, if any."""
        return (self.reset_config or {}).get("schedule")

    @property
    def rolling_window_days(self) -> int | None:
        """Link expiry window for rolling_expiry mode."""
        if self.reset_mode != ResetMode.ROLLING_EXPIRY:
            return None
        rolling = (self.reset_config or {}).get("rolling") or {}
        return rolling.get("windowDays")
