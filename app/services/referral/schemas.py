"""
Referral config schemas.

Pydantic models for strategy configs, reset configs and referee
benefits. Payloads are camelCase JSON; models accept either spelling.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    model_validator,
)
from pydantic.alias_generators import to_camel

from app.models.enums import (
    ResetMode,
    ScheduleFrequency,
    StrategyType,
    TeamResetFrequency,
)
from app.services.referral.config import (
    DEFAULT_REFEREE_BENEFITS,
    MAX_MULTIPLIER,
    MAX_SHARE_PERCENTAGE,
    MIN_MULTIPLIER,
)
from app.utils.exceptions import UnsupportedStrategyError, ValidationError


class CamelModel(BaseModel):
    """Base model for camelCase JSON payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json(self) -> dict[str, Any]:
        """Dump as camelCase JSON-compatible dict for storage."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _check_ascending(
    items: list[Any], attr: str, field: str, label: str
) -> None:
    for i in range(1, len(items)):
        if getattr(items[i], attr) <= getattr(items[i - 1], attr):
            raise ValueError(f"{field}[{i}].{to_camel(attr)}: {label} must be ascending")


# ---------------------------------------------------------------------------
# Strategy configs
# ---------------------------------------------------------------------------


class GrowthTier(CamelModel):
    referrals: int = Field(ge=0)
    multiplier: Decimal = Field(ge=MIN_MULTIPLIER, le=MAX_MULTIPLIER)


class ActiveDefinition(CamelModel):
    bet_within_days: int = Field(gt=0)
    min_lifetime_volume: Decimal = Field(default=Decimal("0"), ge=0)


class GrowthMultiplierConfig(CamelModel):
    """More active referrals give a higher multiplier on own trading points."""

    tiers: list[GrowthTier] = Field(min_length=1)
    active_definition: ActiveDefinition

    @model_validator(mode="after")
    def check_tiers(self) -> "GrowthMultiplierConfig":
        _check_ascending(self.tiers, "referrals", "tiers", "Referral counts")
        _check_ascending(self.tiers, "multiplier", "tiers", "Multipliers")
        return self


class RevenueShareConfig(CamelModel):
    """Referrer earns a share of each referee trade."""

    share_percentage: Decimal = Field(ge=0, le=MAX_SHARE_PERCENTAGE)
    duration_days: int | None = Field(default=None, gt=0)
    max_per_referral: Decimal = Field(default=Decimal("0"), ge=0)
    max_monthly_total: Decimal = Field(default=Decimal("0"), ge=0)


class Milestone(CamelModel):
    volume: Decimal = Field(ge=0)
    reward: Decimal = Field(gt=0)
    label: str = ""


class MilestoneQuestConfig(CamelModel):
    """Flat rewards when a referee's volume crosses thresholds."""

    duration_days: int = Field(gt=0)
    referrer_milestones: list[Milestone] = Field(min_length=1)
    referee_milestones: list[Milestone] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_milestones(self) -> "MilestoneQuestConfig":
        _check_ascending(
            self.referrer_milestones, "volume", "referrerMilestones", "Volume thresholds"
        )
        _check_ascending(
            self.referee_milestones, "volume", "refereeMilestones", "Volume thresholds"
        )
        return self


class TeamTier(CamelModel):
    weekly_volume: Decimal = Field(gt=0)
    multiplier: Decimal = Field(ge=MIN_MULTIPLIER, le=MAX_MULTIPLIER)


class TeamVolumeConfig(CamelModel):
    """Combined team volume in a window sets a multiplier for members."""

    reset_frequency: TeamResetFrequency = TeamResetFrequency.WEEKLY
    team_tiers: list[TeamTier] = Field(min_length=1)

    @model_validator(mode="after")
    def check_tiers(self) -> "TeamVolumeConfig":
        _check_ascending(self.team_tiers, "weekly_volume", "teamTiers", "Volume thresholds")
        return self


STRATEGY_CONFIG_MODELS: dict[StrategyType, type[CamelModel]] = {
    StrategyType.GROWTH_MULTIPLIER: GrowthMultiplierConfig,
    StrategyType.REVENUE_SHARE: RevenueShareConfig,
    StrategyType.MILESTONE_QUEST: MilestoneQuestConfig,
    StrategyType.TEAM_VOLUME: TeamVolumeConfig,
}


# ---------------------------------------------------------------------------
# Reset config and referee benefits
# ---------------------------------------------------------------------------


class ScheduleConfig(CamelModel):
    frequency: ScheduleFrequency
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    time_utc: str = Field(default="00:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    next_reset_at: datetime | None = None


class RollingConfig(CamelModel):
    window_days: int = Field(gt=0)


class ResetConfig(CamelModel):
    schedule: ScheduleConfig | None = None
    rolling: RollingConfig | None = None
    archive_enabled: bool = True


class RefereeBenefits(CamelModel):
    signup_bonus: Decimal = Field(ge=0)
    first_bet_multiplier: Decimal = Field(ge=1)
    max_stake: Decimal = Field(ge=0)


# ---------------------------------------------------------------------------
# Validation entry points
# ---------------------------------------------------------------------------


def _issues(error: PydanticValidationError) -> list[dict[str, str]]:
    issues = []
    for err in error.errors():
        parts: list[str] = []
        for loc in err["loc"]:
            if isinstance(loc, int) and parts:
                parts[-1] = f"{parts[-1]}[{loc}]"
            else:
                parts.append(str(loc))
        message = err["msg"].removeprefix("Value error, ")
        issues.append({"field": ".".join(parts) or "config", "message": message})
    return issues


def parse_strategy_type(strategy: str) -> StrategyType:
    """
    Resolve a strategy tag.

    Raises:
        UnsupportedStrategyError: If the tag is unknown
    """
    try:
        return StrategyType(strategy)
    except ValueError as e:
        raise UnsupportedStrategyError(
            f"Unknown strategy type: {strategy}", strategy=strategy
        ) from e


def parse_reset_mode(reset_mode: str) -> ResetMode:
    """
    Resolve a reset-mode tag.

    Raises:
        UnsupportedStrategyError: If the tag is unknown
    """
    try:
        return ResetMode(reset_mode)
    except ValueError as e:
        raise UnsupportedStrategyError(
            f"Unknown reset mode: {reset_mode}", reset_mode=reset_mode
        ) from e


def validate_strategy_config(strategy: str, config: dict[str, Any]) -> CamelModel:
    """
    Validate a strategy config against the shape its strategy requires.

    Args:
        strategy: Strategy tag
        config: Raw camelCase config

    Returns:
        Parsed config model

    Raises:
        UnsupportedStrategyError: If the strategy tag is unknown
        ValidationError: If required sub-fields are missing or invalid
    """
    model = STRATEGY_CONFIG_MODELS[parse_strategy_type(strategy)]
    try:
        return model.model_validate(config or {})
    except PydanticValidationError as e:
        raise ValidationError.from_issues("Invalid config", _issues(e)) from e


def validate_reset_config(reset_mode: str, config: dict[str, Any]) -> ResetConfig:
    """
    Validate a reset config for its mode.

    Scheduled mode requires a schedule, rolling_expiry a rolling window.

    Raises:
        UnsupportedStrategyError: If the reset mode is unknown
        ValidationError: If the config is malformed
    """
    mode = parse_reset_mode(reset_mode)
    try:
        parsed = ResetConfig.model_validate(config or {})
    except PydanticValidationError as e:
        raise ValidationError.from_issues("Invalid reset config", _issues(e)) from e

    if mode == ResetMode.SCHEDULED and parsed.schedule is None:
        raise ValidationError.from_issues(
            "Invalid reset config",
            [{"field": "schedule", "message": "Scheduled reset requires a schedule"}],
        )
    if mode == ResetMode.ROLLING_EXPIRY and parsed.rolling is None:
        raise ValidationError.from_issues(
            "Invalid reset config",
            [{"field": "rolling", "message": "Rolling expiry requires windowDays"}],
        )
    return parsed


def validate_referee_benefits(benefits: dict[str, Any] | None) -> RefereeBenefits:
    """
    Validate referee benefits, filling in the defaults.

    Raises:
        ValidationError: If a value is out of range
    """
    try:
        return RefereeBenefits.model_validate(
            {**DEFAULT_REFEREE_BENEFITS, **(benefits or {})}
        )
    except PydanticValidationError as e:
        raise ValidationError.from_issues("Invalid referee benefits", _issues(e)) from e
