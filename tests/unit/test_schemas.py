"""
Unit tests for referral config validation.
"""

from decimal import Decimal

import pytest

from app.models.enums import ResetMode, StrategyType
from app.services.referral.schemas import (
    GrowthMultiplierConfig,
    parse_reset_mode,
    validate_referee_benefits,
    validate_reset_config,
    validate_strategy_config,
)
from app.utils.exceptions import UnsupportedStrategyError, ValidationError
from tests.factories import STRATEGY_CONFIGS


class TestStrategyConfigValidation:
    """Test strategy config shapes."""

    @pytest.mark.parametrize("strategy", list(StrategyType))
    def test_valid_configs_accepted(self, strategy):
        """The sample config of every strategy validates."""
        validate_strategy_config(strategy, STRATEGY_CONFIGS[strategy])

    def test_round_trips_as_camel_case(self):
        """Stored configs keep camelCase keys."""
        config = validate_strategy_config(
            "growth_multiplier", STRATEGY_CONFIGS["growth_multiplier"]
        )

        assert isinstance(config, GrowthMultiplierConfig)
        stored = config.to_json()
        assert stored["activeDefinition"]["betWithinDays"] == 7
        assert stored["tiers"][1] == {"referrals": 3, "multiplier": "1.25"}

    def test_descending_tiers_rejected(self):
        """Tier referral counts must ascend."""
        config = {
            "tiers": [
                {"referrals": 3, "multiplier": 1.25},
                {"referrals": 1, "multiplier": 1.5},
            ],
            "activeDefinition": {"betWithinDays": 7},
        }

        with pytest.raises(ValidationError, match="must be ascending"):
            validate_strategy_config("growth_multiplier", config)

    def test_multiplier_out_of_range(self):
        """Multipliers above 5 are rejected with a field path."""
        config = {
            "tiers": [{"referrals": 1, "multiplier": 6}],
            "activeDefinition": {"betWithinDays": 7},
        }

        with pytest.raises(ValidationError) as exc_info:
            validate_strategy_config("growth_multiplier", config)

        assert exc_info.value.issues[0]["field"] == "tiers[0].multiplier"
        assert str(exc_info.value).startswith("Invalid config: tiers[0].multiplier")

    @pytest.mark.parametrize("share", [-1, 51])
    def test_share_percentage_bounds(self, share):
        """sharePercentage must be within 0..50."""
        with pytest.raises(ValidationError):
            validate_strategy_config("revenue_share", {"sharePercentage": share})

    def test_revenue_share_defaults(self):
        """Caps default to 0 (unlimited) and duration to forever."""
        config = validate_strategy_config("revenue_share", {"sharePercentage": 5})

        assert config.duration_days is None
        assert config.max_per_referral == Decimal("0")
        assert config.max_monthly_total == Decimal("0")

    def test_milestones_required(self):
        """milestone_quest needs at least one referrer milestone."""
        with pytest.raises(ValidationError):
            validate_strategy_config(
                "milestone_quest", {"durationDays": 30, "referrerMilestones": []}
            )

    def test_team_tiers_required(self):
        """team_volume needs at least one tier."""
        with pytest.raises(ValidationError):
            validate_strategy_config("team_volume", {"resetFrequency": "weekly"})

    def test_unknown_strategy(self):
        """Unknown tags raise UnsupportedStrategyError."""
        with pytest.raises(UnsupportedStrategyError):
            validate_strategy_config("lottery", {})


class TestResetConfigValidation:
    """Test reset config shapes."""

    def test_scheduled_requires_schedule(self):
        """Scheduled mode without a schedule is invalid."""
        with pytest.raises(ValidationError, match="schedule"):
            validate_reset_config("scheduled", {})

    def test_rolling_requires_window(self):
        """rolling_expiry without windowDays is invalid."""
        with pytest.raises(ValidationError, match="rolling"):
            validate_reset_config("rolling_expiry", {"archiveEnabled": True})

    def test_manual_needs_nothing(self):
        """Manual mode accepts an empty config and archives by default."""
        config = validate_reset_config("manual", {})

        assert config.archive_enabled is True

    @pytest.mark.parametrize("time_utc", ["24:00", "9:00", "noon"])
    def test_bad_time_rejected(self, time_utc):
        """timeUtc must be HH:MM."""
        with pytest.raises(ValidationError):
            validate_reset_config(
                "scheduled", {"schedule": {"frequency": "daily", "timeUtc": time_utc}}
            )

    def test_day_of_week_range(self):
        """dayOfWeek must be 0-6."""
        with pytest.raises(ValidationError):
            validate_reset_config(
                "scheduled", {"schedule": {"frequency": "weekly", "dayOfWeek": 7}}
            )

    def test_unknown_reset_mode(self):
        """Unknown reset modes raise UnsupportedStrategyError."""
        with pytest.raises(UnsupportedStrategyError):
            parse_reset_mode("hourly")

    def test_known_reset_mode(self):
        """Reset mode tags resolve to the enum."""
        assert parse_reset_mode("rolling_expiry") == ResetMode.ROLLING_EXPIRY


class TestRefereeBenefits:
    """Test referee benefit defaults."""

    def test_defaults_filled_in(self):
        """Missing benefits fall back to the defaults."""
        benefits = validate_referee_benefits(None)

        assert benefits.signup_bonus == Decimal("100")
        assert benefits.first_bet_multiplier == Decimal("2")
        assert benefits.max_stake == Decimal("10")

    def test_partial_override(self):
        """Given values override only their own field."""
        benefits = validate_referee_benefits({"signupBonus": 0})

        assert benefits.signup_bonus == Decimal("0")
        assert benefits.max_stake == Decimal("10")

    def test_multiplier_below_one_rejected(self):
        """firstBetMultiplier must be at least 1."""
        with pytest.raises(ValidationError):
            validate_referee_benefits({"firstBetMultiplier": 0.5})
