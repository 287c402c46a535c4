"""
Referral enumerations.

String-valued enums stored as VARCHAR columns.
"""

from enum import StrEnum


class PeriodStatus(StrEnum):
    """Referral period lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Completed and cancelled periods never change again."""
        return self in (PeriodStatus.COMPLETED, PeriodStatus.CANCELLED)


class StrategyType(StrEnum):
    """Reward strategy variants."""

    GROWTH_MULTIPLIER = "growth_multiplier"
    REVENUE_SHARE = "revenue_share"
    MILESTONE_QUEST = "milestone_quest"
    TEAM_VOLUME = "team_volume"


class ResetMode(StrEnum):
    """How a period ends."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"
    ROLLING_EXPIRY = "rolling_expiry"


class ScheduleFrequency(StrEnum):
    """Cadence of scheduled resets."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TeamResetFrequency(StrEnum):
    """Team volume window length."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LinkStatus(StrEnum):
    """Referral link status."""

    PENDING = "pending"
    ACTIVE = "active"


class BonusType(StrEnum):
    """Reason a bonus award was written."""

    SIGNUP = "signup"
    FIRST_BET = "first_bet"
    GROWTH_MULTIPLIER = "growth_multiplier"
    REVENUE_SHARE = "revenue_share"
    MILESTONE = "milestone"
    TEAM_VOLUME = "team_volume"
