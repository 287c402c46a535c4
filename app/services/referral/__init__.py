"""
Referral services package.

Contains modular services for referral processing:
- config: Configuration constants (code alphabet, strategy bounds)
- schemas: Strategy, reset and benefit config models
- strategies: Reward strategy engine
- schedule: Scheduled reset calculations
- period_manager: Period lifecycle
- activity_processor: Signups and trades
- leaderboard: Rankings and archives
- query_manager: Read-only user views
"""

from app.services.referral.activity_processor import (
    EventResult,
    ProcessResult,
    ReferralActivityProcessor,
    SignupResult,
    TradeInput,
    TradeResult,
)
from app.services.referral.leaderboard import (
    LeaderboardEntry,
    ReferralLeaderboardManager,
)
from app.services.referral.period_manager import (
    CompletionResult,
    PeriodDetail,
    ReferralPeriodManager,
)
from app.services.referral.query_manager import ReferralQueryManager, UserSummary
from app.services.referral.schedule import calculate_next_reset_time
from app.services.referral.strategies import (
    STRATEGIES,
    PointsDelta,
    ReferralStrategy,
    create_strategy,
)


__all__ = [
    # Managers
    "ReferralActivityProcessor",
    "ReferralLeaderboardManager",
    "ReferralPeriodManager",
    "ReferralQueryManager",
    # Strategy engine
    "STRATEGIES",
    "ReferralStrategy",
    "PointsDelta",
    "create_strategy",
    "calculate_next_reset_time",
    # Results
    "CompletionResult",
    "EventResult",
    "LeaderboardEntry",
    "PeriodDetail",
    "ProcessResult",
    "SignupResult",
    "TradeInput",
    "TradeResult",
    "UserSummary",
]
