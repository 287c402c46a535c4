"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from app.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

# Referral Services
from app.services.referral import (
    ProcessResult,
    ReferralActivityProcessor,
    ReferralLeaderboardManager,
    ReferralPeriodManager,
    ReferralQueryManager,
)
from app.services.referral_service import ReferralService


__all__ = [
    # Base Infrastructure
    "BaseService",
    "transaction",
    "log_operation",
    # Referral Package
    "ReferralActivityProcessor",
    "ReferralLeaderboardManager",
    "ReferralPeriodManager",
    "ReferralQueryManager",
    "ProcessResult",
    # Core
    "ReferralService",
]
