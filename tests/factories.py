"""Shared test data: wallets, strategy configs and a controllable clock."""

from datetime import datetime, timedelta


class FakeClock:
    """Controllable clock injected wherever the code asks for "now"."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


def wallet(n: int) -> str:
    """Deterministic lowercase wallet address."""
    return "0x" + f"{n:040x}"


GROWTH_CONFIG = {
    "tiers": [
        {"referrals": 1, "multiplier": 1.1},
        {"referrals": 3, "multiplier": 1.25},
        {"referrals": 5, "multiplier": 1.5},
    ],
    "activeDefinition": {"betWithinDays": 7, "minLifetimeVolume": 10},
}

REVENUE_SHARE_CONFIG = {
    "sharePercentage": 10,
    "durationDays": 30,
    "maxPerReferral": 0,
    "maxMonthlyTotal": 0,
}

MILESTONE_CONFIG = {
    "durationDays": 30,
    "referrerMilestones": [
        {"volume": 0, "reward": 25, "label": "Referral signed up"},
        {"volume": 1, "reward": 100, "label": "First bet"},
        {"volume": 50, "reward": 200, "label": "$50 volume"},
    ],
    "refereeMilestones": [
        {"volume": 50, "reward": 50, "label": "$50 volume"},
    ],
}

TEAM_CONFIG = {
    "resetFrequency": "weekly",
    "teamTiers": [
        {"weeklyVolume": 100, "multiplier": 1.1},
        {"weeklyVolume": 1000, "multiplier": 1.25},
    ],
}

STRATEGY_CONFIGS = {
    "growth_multiplier": GROWTH_CONFIG,
    "revenue_share": REVENUE_SHARE_CONFIG,
    "milestone_quest": MILESTONE_CONFIG,
    "team_volume": TEAM_CONFIG,
}

NO_BENEFITS = {"signupBonus": 0, "firstBetMultiplier": 1, "maxStake": 0}

WEEKLY_MONDAY = {"schedule": {"frequency": "weekly", "dayOfWeek": 1, "timeUtc": "00:00"}}
