"""
Referral system configuration.

Contains constants and configuration for the referral system.
"""

from decimal import Decimal

# Referral codes: 8 chars, ambiguous characters (0/O, 1/I/L) excluded
REFERRAL_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_MAX_ATTEMPTS = 10

# Strategy bounds
MIN_MULTIPLIER = Decimal("1.0")
MAX_MULTIPLIER = Decimal("5.0")
MAX_SHARE_PERCENTAGE = Decimal("50")

# Benefits granted to a referee when a period does not configure its own
DEFAULT_REFEREE_BENEFITS = {
    "signupBonus": 100,
    "firstBetMultiplier": 2.0,
    "maxStake": 10,
}

# An active period may still be edited while at most this many users
# hold bonuses in it
MAX_BONUS_HOLDERS_FOR_MODIFY = 10

# Fallback cadence when a schedule's frequency is not recognized
FALLBACK_RESET_DAYS = 7

# Suffix appended to the name of a period created by a rollover
CONTINUED_SUFFIX = " (continued)"

# Points precision (matches DECIMAL(18, 8) columns)
POINTS_QUANTUM = Decimal("0.00000001")
