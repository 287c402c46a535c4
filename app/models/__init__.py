"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.enums import (
    BonusType,
    LinkStatus,
    PeriodStatus,
    ResetMode,
    ScheduleFrequency,
    StrategyType,
    TeamResetFrequency,
)
from app.models.leaderboard_archive import LeaderboardArchive
from app.models.referral_bonus import ReferralBonus
from app.models.referral_code import ReferralCode
from app.models.referral_link import ReferralLink
from app.models.referral_period import ReferralPeriod
from app.models.referral_points import ReferralPoints
from app.models.referral_trade import ReferralTrade


__all__ = [
    "Base",
    # Enums
    "BonusType",
    "LinkStatus",
    "PeriodStatus",
    "ResetMode",
    "ScheduleFrequency",
    "StrategyType",
    "TeamResetFrequency",
    # Models
    "LeaderboardArchive",
    "ReferralBonus",
    "ReferralCode",
    "ReferralLink",
    "ReferralPeriod",
    "ReferralPoints",
    "ReferralTrade",
]
