"""
Referral reward strategies.

Four strategies turn trading activity into points. Each one decides
whether a referral counts as active and computes the point delta for
a single trade. Strategies are pure: the activity processor loads
everything they need into a StrategyContext first.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, ClassVar

from app.models.enums import BonusType, StrategyType, TeamResetFrequency
from app.models.referral_link import ReferralLink
from app.services.referral.config import POINTS_QUANTUM
from app.services.referral.schemas import (
    CamelModel,
    GrowthMultiplierConfig,
    Milestone,
    MilestoneQuestConfig,
    RevenueShareConfig,
    TeamVolumeConfig,
    parse_strategy_type,
    validate_strategy_config,
)
from app.utils.datetime_utils import (
    ensure_utc,
    start_of_month,
    start_of_next_month,
    start_of_week,
)


ZERO = Decimal("0")
ONE = Decimal("1")


def quantize_points(value: Decimal) -> Decimal:
    """Round points to ledger precision."""
    return value.quantize(POINTS_QUANTUM)


def short_address(address: str) -> str:
    """0x1234...abcd form for award reasons."""
    return f"{address[:6]}...{address[-4:]}"


def is_link_expired(
    link: ReferralLink, window_days: int | None, now: datetime
) -> bool:
    """
    Check rolling expiry.

    Args:
        link: Referral link
        window_days: Rolling window, None when the period does not expire links
        now: Evaluation time

    Returns:
        True if the link is older than the window
    """
    if window_days is None:
        return False
    return now - ensure_utc(link.linked_at) > timedelta(days=window_days)


def team_window(
    frequency: TeamResetFrequency, now: datetime
) -> tuple[datetime, datetime]:
    """
    Calendar window containing now.

    Weekly windows start Monday 00:00 UTC, monthly windows on the 1st.

    Returns:
        (start, end) with end exclusive
    """
    if frequency == TeamResetFrequency.MONTHLY:
        return start_of_month(now), start_of_next_month(now)
    start = start_of_week(now)
    return start, start + timedelta(days=7)


@dataclass
class BonusAward:
    """A bonus credited to one wallet."""

    recipient: str
    bonus_type: BonusType
    points: Decimal
    reason: str
    source: str | None = None
    milestone_key: str | None = None


@dataclass
class PointsDelta:
    """
    Point award for one activity event.

    trading_points go to the trader; awards may target the trader,
    its referrer, or both.
    """

    trader: str
    trading_points: Decimal = ZERO
    awards: list[BonusAward] = field(default_factory=list)

    def bonus_for(self, address: str) -> Decimal:
        """Bonus points credited to address."""
        return sum(
            (a.points for a in self.awards if a.recipient == address), ZERO
        )

    @property
    def bonus_points(self) -> Decimal:
        """Bonus points credited to the trader."""
        return self.bonus_for(self.trader)

    def total_for(self, address: str) -> Decimal:
        """Trading plus bonus points credited to address."""
        trading = self.trading_points if address == self.trader else ZERO
        return trading + self.bonus_for(address)


@dataclass
class TradeEvent:
    """A trade as seen by the strategy engine."""

    address: str
    volume: Decimal
    base_points: Decimal
    occurred_at: datetime
    fee: Decimal | None = None


@dataclass
class TeamMember:
    """
    A team member's standing in the current team window.

    Attributes:
        address: Member wallet
        window_base_points: Base points from the member's own trades in the window
        credited_bonus: Team bonus already credited to the member in the window
        own_team_volume: Volume of the team the member leads (None if no team)
        referrer_team_volume: Volume of the referrer's team (None if the
            member is not an active referee)
    """

    address: str
    window_base_points: Decimal = ZERO
    credited_bonus: Decimal = ZERO
    own_team_volume: Decimal | None = None
    referrer_team_volume: Decimal | None = None


@dataclass
class StrategyContext:
    """
    Inputs loaded for a strategy before computing a delta.

    Attributes:
        link: Trader's link as referee (None if not referred or expired)
        trader_links: Trader's links as referrer (growth_multiplier)
        fired_milestone_keys: Keys already awarded for the trader's link
        referral_share_earned: Revenue share already earned from this referral
        monthly_share_earned: Revenue share the referrer earned this month
        team_members: Members of every team the trade touches, trader
            first (team_volume)
    """

    link: ReferralLink | None = None
    trader_links: list[ReferralLink] = field(default_factory=list)
    fired_milestone_keys: set[str] = field(default_factory=set)
    referral_share_earned: Decimal = ZERO
    monthly_share_earned: Decimal = ZERO
    team_members: list[TeamMember] = field(default_factory=list)


class ReferralStrategy:
    """
    Base strategy.

    Subclasses set strategy_type and config_model and override
    compute_delta. `requires` names the StrategyContext fields the
    activity processor must load.
    """

    strategy_type: ClassVar[StrategyType]
    config_model: ClassVar[type[CamelModel]]
    requires: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, config: CamelModel) -> None:
        self.config = config

    def is_active_referral(self, link: ReferralLink, now: datetime) -> bool:
        """A referral is active once the referee has placed a bet."""
        return link.first_bet_at is not None

    def compute_delta(
        self, event: TradeEvent, context: StrategyContext
    ) -> PointsDelta:
        """Base points only."""
        return PointsDelta(trader=event.address, trading_points=event.base_points)

    def signup_awards(
        self, link: ReferralLink, context: StrategyContext, now: datetime
    ) -> list[BonusAward]:
        """Awards fired when a referee signs up."""
        return []

    def ranking_score(self, trading_points: Decimal, bonus_points: Decimal) -> Decimal:
        """Leaderboard score."""
        return trading_points + bonus_points


class GrowthMultiplierStrategy(ReferralStrategy):
    """More active referrals give a higher multiplier on own trading points."""

    strategy_type = StrategyType.GROWTH_MULTIPLIER
    config_model = GrowthMultiplierConfig
    requires = frozenset({"trader_links"})
    config: GrowthMultiplierConfig

    def is_active_referral(self, link: ReferralLink, now: datetime) -> bool:
        definition = self.config.active_definition
        if link.last_bet_at is None:
            return False
        if link.lifetime_volume < definition.min_lifetime_volume:
            return False
        return now - ensure_utc(link.last_bet_at) < timedelta(
            days=definition.bet_within_days
        )

    def multiplier_for(self, active_count: int) -> Decimal:
        """Multiplier of the highest tier reached, 1 if none."""
        multiplier = ONE
        for tier in self.config.tiers:
            if active_count >= tier.referrals:
                multiplier = tier.multiplier
        return multiplier

    def compute_delta(
        self, event: TradeEvent, context: StrategyContext
    ) -> PointsDelta:
        delta = super().compute_delta(event, context)
        active_count = sum(
            1
            for link in context.trader_links
            if self.is_active_referral(link, event.occurred_at)
        )
        multiplier = self.multiplier_for(active_count)
        bonus = quantize_points(event.base_points * (multiplier - ONE))
        if bonus > 0:
            delta.awards.append(
                BonusAward(
                    recipient=event.address,
                    bonus_type=BonusType.GROWTH_MULTIPLIER,
                    points=bonus,
                    reason=f"{multiplier}x multiplier ({active_count} active referrals)",
                )
            )
        return delta


class RevenueShareStrategy(ReferralStrategy):
    """Referrer earns a percentage of each referee trade."""

    strategy_type = StrategyType.REVENUE_SHARE
    config_model = RevenueShareConfig
    requires = frozenset({"share_earned"})
    config: RevenueShareConfig

    def within_duration(self, link: ReferralLink, now: datetime) -> bool:
        """Whether the relationship is still young enough to accrue."""
        if self.config.duration_days is None:
            return True
        return now - ensure_utc(link.linked_at) <= timedelta(
            days=self.config.duration_days
        )

    def compute_delta(
        self, event: TradeEvent, context: StrategyContext
    ) -> PointsDelta:
        delta = super().compute_delta(event, context)
        link = context.link
        if link is None or not self.is_active_referral(link, event.occurred_at):
            return delta
        if not self.within_duration(link, event.occurred_at):
            return delta

        basis = event.fee if event.fee is not None else event.base_points
        share = quantize_points(basis * self.config.share_percentage / 100)

        if self.config.max_per_referral > 0:
            share = min(
                share, self.config.max_per_referral - context.referral_share_earned
            )
        if self.config.max_monthly_total > 0:
            share = min(
                share, self.config.max_monthly_total - context.monthly_share_earned
            )

        if share > 0:
            delta.awards.append(
                BonusAward(
                    recipient=link.referrer_address,
                    bonus_type=BonusType.REVENUE_SHARE,
                    points=share,
                    reason=(
                        f"{self.config.share_percentage}% of "
                        f"{short_address(event.address)}'s trade"
                    ),
                    source=event.address,
                )
            )
        return delta


class MilestoneQuestStrategy(ReferralStrategy):
    """Flat rewards when a referee's volume first crosses a threshold."""

    strategy_type = StrategyType.MILESTONE_QUEST
    config_model = MilestoneQuestConfig
    requires = frozenset({"fired_milestone_keys"})
    config: MilestoneQuestConfig

    def within_duration(self, link: ReferralLink, now: datetime) -> bool:
        """Whether milestones may still fire for this referral."""
        return now - ensure_utc(link.linked_at) <= timedelta(
            days=self.config.duration_days
        )

    def _awards(
        self,
        milestones: list[Milestone],
        role: str,
        recipient: str,
        link: ReferralLink,
        fired: set[str],
    ) -> list[BonusAward]:
        awards = []
        for index, milestone in enumerate(milestones):
            key = f"{role}:{link.referred_address}:{index}"
            if key in fired or link.lifetime_volume < milestone.volume:
                continue
            awards.append(
                BonusAward(
                    recipient=recipient,
                    bonus_type=BonusType.MILESTONE,
                    points=milestone.reward,
                    reason=f"{milestone.label or key} ({short_address(link.referred_address)})",
                    source=link.referred_address,
                    milestone_key=key,
                )
            )
        return awards

    def milestone_awards(
        self, link: ReferralLink, fired: set[str], now: datetime
    ) -> list[BonusAward]:
        """
        Milestones reached by link and not yet fired.

        Args:
            link: Referral link with current lifetime volume
            fired: Milestone keys already awarded
            now: Evaluation time

        Returns:
            New awards (referrer first, then referee)
        """
        if not self.within_duration(link, now):
            return []
        return self._awards(
            self.config.referrer_milestones,
            "referrer",
            link.referrer_address,
            link,
            fired,
        ) + self._awards(
            self.config.referee_milestones,
            "referee",
            link.referred_address,
            link,
            fired,
        )

    def compute_delta(
        self, event: TradeEvent, context: StrategyContext
    ) -> PointsDelta:
        delta = super().compute_delta(event, context)
        if context.link is not None:
            delta.awards.extend(
                self.milestone_awards(
                    context.link, context.fired_milestone_keys, event.occurred_at
                )
            )
        return delta

    def signup_awards(
        self, link: ReferralLink, context: StrategyContext, now: datetime
    ) -> list[BonusAward]:
        return self.milestone_awards(link, context.fired_milestone_keys, now)


class TeamVolumeStrategy(ReferralStrategy):
    """Combined team volume in the current window sets a multiplier."""

    strategy_type = StrategyType.TEAM_VOLUME
    config_model = TeamVolumeConfig
    config: TeamVolumeConfig

    def multiplier_for(self, team_volume: Decimal | None) -> Decimal:
        """Multiplier of the highest tier the volume meets, 1 if none."""
        multiplier = ONE
        if team_volume is None:
            return multiplier
        for tier in self.config.team_tiers:
            if team_volume >= tier.weekly_volume:
                multiplier = tier.multiplier
        return multiplier

    def window(self, now: datetime) -> tuple[datetime, datetime]:
        """Current team volume window."""
        return team_window(self.config.reset_frequency, now)

    def member_multiplier(self, member: TeamMember) -> Decimal:
        """Better of the member's own-team and referrer-team multipliers."""
        return max(
            self.multiplier_for(member.own_team_volume),
            self.multiplier_for(member.referrer_team_volume),
        )

    def window_top_up(self, member: TeamMember) -> Decimal:
        """
        Team bonus still owed to a member for the current window.

        The multiplier covers all of the member's window points, so a
        higher tier pays out on earlier trades too. Never negative.
        """
        owed = quantize_points(
            member.window_base_points * (self.member_multiplier(member) - ONE)
        )
        return max(owed - member.credited_bonus, ZERO)

    def compute_delta(
        self, event: TradeEvent, context: StrategyContext
    ) -> PointsDelta:
        delta = super().compute_delta(event, context)
        for member in context.team_members:
            top_up = self.window_top_up(member)
            if top_up <= 0:
                continue
            delta.awards.append(
                BonusAward(
                    recipient=member.address,
                    bonus_type=BonusType.TEAM_VOLUME,
                    points=top_up,
                    reason=f"{self.member_multiplier(member)}x team multiplier",
                    source=None if member.address == event.address else event.address,
                )
            )
        return delta


STRATEGIES: dict[StrategyType, type[ReferralStrategy]] = {
    cls.strategy_type: cls
    for cls in (
        GrowthMultiplierStrategy,
        RevenueShareStrategy,
        MilestoneQuestStrategy,
        TeamVolumeStrategy,
    )
}


def create_strategy(strategy: str, config: dict[str, Any]) -> ReferralStrategy:
    """
    Build the strategy for a period.

    Args:
        strategy: Strategy tag
        config: Raw camelCase config

    Returns:
        Strategy instance

    Raises:
        UnsupportedStrategyError: If the tag is unknown
        ValidationError: If the config is malformed
    """
    strategy_type = parse_strategy_type(strategy)
    return STRATEGIES[strategy_type](validate_strategy_config(strategy_type, config))
