"""
Unit tests for referral reward strategies.

Strategies are pure, so these tests build links and contexts by hand.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from app.models.enums import BonusType, LinkStatus, StrategyType, TeamResetFrequency
from app.models.referral_link import ReferralLink
from app.services.referral.strategies import (
    STRATEGIES,
    GrowthMultiplierStrategy,
    MilestoneQuestStrategy,
    PointsDelta,
    RevenueShareStrategy,
    StrategyContext,
    TeamMember,
    TeamVolumeStrategy,
    TradeEvent,
    create_strategy,
    is_link_expired,
    team_window,
)
from app.utils.exceptions import UnsupportedStrategyError, ValidationError
from tests.factories import (
    GROWTH_CONFIG,
    MILESTONE_CONFIG,
    REVENUE_SHARE_CONFIG,
    TEAM_CONFIG,
    wallet,
)


NOW = datetime(2026, 1, 7, 10, 0, tzinfo=UTC)
REFERRER = wallet(1)
TRADER = wallet(2)


def make_link(
    referred: str,
    referrer: str = REFERRER,
    linked_at: datetime = NOW - timedelta(days=1),
    last_bet_at: datetime | None = None,
    lifetime_volume: Decimal | int = 0,
) -> ReferralLink:
    return ReferralLink(
        period_id=1,
        referrer_address=referrer,
        referred_address=referred,
        referral_code="ABCDEFGH",
        status=LinkStatus.ACTIVE.value if last_bet_at else LinkStatus.PENDING.value,
        linked_at=linked_at,
        first_bet_at=last_bet_at,
        last_bet_at=last_bet_at,
        lifetime_volume=Decimal(lifetime_volume),
    )


def trade(address: str = TRADER, base_points: int = 100, fee: Decimal | None = None) -> TradeEvent:
    return TradeEvent(
        address=address,
        volume=Decimal(base_points),
        base_points=Decimal(base_points),
        occurred_at=NOW,
        fee=fee,
    )


class TestStrategyRegistry:
    """Test strategy lookup."""

    def test_every_strategy_type_is_registered(self):
        """Each strategy tag maps to an implementation."""
        assert set(STRATEGIES) == set(StrategyType)

    def test_unknown_strategy_rejected(self):
        """An unrecognized tag raises UnsupportedStrategyError."""
        with pytest.raises(UnsupportedStrategyError):
            create_strategy("pyramid", {})

    def test_malformed_config_rejected(self):
        """A config missing required fields raises ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            create_strategy("growth_multiplier", {"tiers": []})

        fields = {issue["field"] for issue in exc_info.value.issues}
        assert "tiers" in fields
        assert "activeDefinition" in fields

    @pytest.mark.parametrize(
        "tag,config,expected",
        [
            ("growth_multiplier", GROWTH_CONFIG, GrowthMultiplierStrategy),
            ("revenue_share", REVENUE_SHARE_CONFIG, RevenueShareStrategy),
            ("milestone_quest", MILESTONE_CONFIG, MilestoneQuestStrategy),
            ("team_volume", TEAM_CONFIG, TeamVolumeStrategy),
        ],
    )
    def test_create_strategy(self, tag, config, expected):
        """create_strategy returns the matching class."""
        assert isinstance(create_strategy(tag, config), expected)


class TestGrowthMultiplier:
    """Test growth_multiplier strategy."""

    @pytest.fixture
    def strategy(self):
        return create_strategy("growth_multiplier", GROWTH_CONFIG)

    def active_links(self, count: int) -> list[ReferralLink]:
        return [
            make_link(wallet(100 + i), referrer=TRADER, last_bet_at=NOW - timedelta(days=1), lifetime_volume=50)
            for i in range(count)
        ]

    @pytest.mark.parametrize(
        "active_count,expected_total",
        [
            (0, Decimal("100")),
            (1, Decimal("110")),
            (2, Decimal("110")),
            (3, Decimal("125")),
            (4, Decimal("125")),
            (5, Decimal("150")),
        ],
    )
    def test_highest_tier_reached_applies(self, strategy, active_count, expected_total):
        """Trader gets the multiplier of the highest tier reached."""
        context = StrategyContext(trader_links=self.active_links(active_count))

        delta = strategy.compute_delta(trade(), context)

        assert delta.trading_points == Decimal("100")
        assert delta.total_for(TRADER) == expected_total

    def test_bonus_credited_to_trader(self, strategy):
        """The multiplier bonus is a growth_multiplier award to the trader."""
        context = StrategyContext(trader_links=self.active_links(3))

        delta = strategy.compute_delta(trade(), context)

        assert len(delta.awards) == 1
        award = delta.awards[0]
        assert award.recipient == TRADER
        assert award.bonus_type == BonusType.GROWTH_MULTIPLIER
        assert award.points == Decimal("25")

    def test_stale_referral_not_active(self, strategy):
        """A referral whose last bet is outside betWithinDays is inactive."""
        link = make_link(wallet(3), last_bet_at=NOW - timedelta(days=8), lifetime_volume=50)
        assert strategy.is_active_referral(link, NOW) is False

    def test_low_volume_referral_not_active(self, strategy):
        """A referral below minLifetimeVolume is inactive."""
        link = make_link(wallet(3), last_bet_at=NOW - timedelta(hours=1), lifetime_volume=5)
        assert strategy.is_active_referral(link, NOW) is False

    def test_pending_referral_not_active(self, strategy):
        """A referral that never traded is inactive."""
        assert strategy.is_active_referral(make_link(wallet(3)), NOW) is False


class TestRevenueShare:
    """Test revenue_share strategy."""

    @pytest.fixture
    def strategy(self):
        return create_strategy("revenue_share", REVENUE_SHARE_CONFIG)

    def traded_link(self, **kwargs) -> ReferralLink:
        kwargs.setdefault("last_bet_at", NOW)
        kwargs.setdefault("lifetime_volume", 100)
        return make_link(TRADER, **kwargs)

    def test_share_of_base_points(self, strategy):
        """Referrer earns sharePercentage of the trade's base points."""
        context = StrategyContext(link=self.traded_link())

        delta = strategy.compute_delta(trade(base_points=200), context)

        assert delta.trading_points == Decimal("200")
        assert delta.bonus_for(REFERRER) == Decimal("20")
        assert delta.bonus_points == Decimal("0")
        award = delta.awards[0]
        assert award.bonus_type == BonusType.REVENUE_SHARE
        assert award.source == TRADER

    def test_fee_used_as_basis_when_given(self, strategy):
        """A reported fee replaces base points as the share basis."""
        context = StrategyContext(link=self.traded_link())

        delta = strategy.compute_delta(trade(base_points=200, fee=Decimal("5")), context)

        assert delta.bonus_for(REFERRER) == Decimal("0.5")

    def test_no_share_without_referrer(self, strategy):
        """Unreferred traders only earn their base points."""
        delta = strategy.compute_delta(trade(), StrategyContext())

        assert delta.awards == []
        assert delta.total_for(TRADER) == Decimal("100")

    def test_no_share_after_duration(self, strategy):
        """Trades after durationDays earn the referrer nothing."""
        link = self.traded_link(linked_at=NOW - timedelta(days=31))

        delta = strategy.compute_delta(trade(), StrategyContext(link=link))

        assert delta.awards == []

    def test_per_referral_cap(self):
        """maxPerReferral limits the share from one referee."""
        strategy = create_strategy(
            "revenue_share", {**REVENUE_SHARE_CONFIG, "maxPerReferral": 25}
        )
        context = StrategyContext(
            link=self.traded_link(), referral_share_earned=Decimal("20")
        )

        delta = strategy.compute_delta(trade(base_points=200), context)

        assert delta.bonus_for(REFERRER) == Decimal("5")

    def test_monthly_cap_exhausted(self):
        """No award once maxMonthlyTotal is reached."""
        strategy = create_strategy(
            "revenue_share", {**REVENUE_SHARE_CONFIG, "maxMonthlyTotal": 50}
        )
        context = StrategyContext(
            link=self.traded_link(), monthly_share_earned=Decimal("50")
        )

        delta = strategy.compute_delta(trade(base_points=200), context)

        assert delta.awards == []


class TestMilestoneQuest:
    """Test milestone_quest strategy."""

    @pytest.fixture
    def strategy(self):
        return create_strategy("milestone_quest", MILESTONE_CONFIG)

    def test_signup_fires_zero_volume_milestone(self, strategy):
        """A volume-0 milestone fires at signup."""
        link = make_link(TRADER, linked_at=NOW)

        awards = strategy.signup_awards(link, StrategyContext(link=link), NOW)

        assert [a.milestone_key for a in awards] == [f"referrer:{TRADER}:0"]
        assert awards[0].recipient == REFERRER
        assert awards[0].points == Decimal("25")

    def test_crossing_threshold_fires_referrer_and_referee(self, strategy):
        """Reaching 50 volume fires both sides' milestones once."""
        link = make_link(TRADER, last_bet_at=NOW, lifetime_volume=60)
        fired = {f"referrer:{TRADER}:0"}

        delta = strategy.compute_delta(
            trade(), StrategyContext(link=link, fired_milestone_keys=fired)
        )

        keys = [a.milestone_key for a in delta.awards]
        assert keys == [
            f"referrer:{TRADER}:1",
            f"referrer:{TRADER}:2",
            f"referee:{TRADER}:0",
        ]
        assert delta.bonus_for(REFERRER) == Decimal("300")
        assert delta.bonus_for(TRADER) == Decimal("50")

    def test_fired_milestones_do_not_repeat(self, strategy):
        """Milestones already awarded are skipped."""
        link = make_link(TRADER, last_bet_at=NOW, lifetime_volume=500)
        fired = {
            f"referrer:{TRADER}:0",
            f"referrer:{TRADER}:1",
            f"referrer:{TRADER}:2",
            f"referee:{TRADER}:0",
        }

        delta = strategy.compute_delta(
            trade(), StrategyContext(link=link, fired_milestone_keys=fired)
        )

        assert delta.awards == []

    def test_no_milestones_after_duration(self, strategy):
        """Milestones stop firing after durationDays."""
        link = make_link(
            TRADER, linked_at=NOW - timedelta(days=31), last_bet_at=NOW, lifetime_volume=60
        )

        assert strategy.milestone_awards(link, set(), NOW) == []


class TestTeamVolume:
    """Test team_volume strategy."""

    @pytest.fixture
    def strategy(self):
        return create_strategy("team_volume", TEAM_CONFIG)

    @pytest.mark.parametrize(
        "volume,expected",
        [
            (None, Decimal("1")),
            (Decimal("99"), Decimal("1")),
            (Decimal("100"), Decimal("1.1")),
            (Decimal("999"), Decimal("1.1")),
            (Decimal("1000"), Decimal("1.25")),
        ],
    )
    def test_multiplier_for_volume(self, strategy, volume, expected):
        """Highest team tier met sets the multiplier."""
        assert strategy.multiplier_for(volume) == expected

    def test_member_uses_best_of_both_teams(self, strategy):
        """A member gets the larger of own-team and referrer-team multipliers."""
        member = TeamMember(
            TRADER,
            window_base_points=Decimal("100"),
            own_team_volume=Decimal("150"),
            referrer_team_volume=Decimal("2000"),
        )

        delta = strategy.compute_delta(trade(), StrategyContext(team_members=[member]))

        assert delta.total_for(TRADER) == Decimal("125")
        assert delta.awards[0].bonus_type == BonusType.TEAM_VOLUME
        assert delta.awards[0].source is None

    def test_tier_upgrade_tops_up_earlier_window_points(self, strategy):
        """Reaching a higher tier pays the difference on the whole window."""
        trader = TeamMember(
            TRADER,
            window_base_points=Decimal("100"),
            credited_bonus=Decimal("0"),
            referrer_team_volume=Decimal("1000"),
        )
        teammate = TeamMember(
            REFERRER,
            window_base_points=Decimal("900"),
            credited_bonus=Decimal("10"),
            own_team_volume=Decimal("1000"),
        )

        delta = strategy.compute_delta(
            trade(), StrategyContext(team_members=[trader, teammate])
        )

        assert delta.bonus_for(TRADER) == Decimal("25")
        assert delta.bonus_for(REFERRER) == Decimal("215")
        assert delta.awards[1].source == TRADER

    def test_top_up_never_negative(self, strategy):
        """A member already credited above the current tier gets nothing more."""
        member = TeamMember(
            TRADER,
            window_base_points=Decimal("100"),
            credited_bonus=Decimal("25"),
            own_team_volume=Decimal("150"),
        )

        assert strategy.window_top_up(member) == Decimal("0")
        assert strategy.compute_delta(trade(), StrategyContext(team_members=[member])).awards == []

    def test_solo_trader_gets_base_points(self, strategy):
        """Without a team there is no bonus."""
        delta = strategy.compute_delta(trade(), StrategyContext())

        assert delta == PointsDelta(trader=TRADER, trading_points=Decimal("100"))

    def test_weekly_window_is_calendar_week(self):
        """Weekly windows run Monday 00:00 to the next Monday."""
        start, end = team_window(TeamResetFrequency.WEEKLY, NOW)

        assert start == datetime(2026, 1, 5, tzinfo=UTC)
        assert end == datetime(2026, 1, 12, tzinfo=UTC)

    def test_monthly_window_is_calendar_month(self):
        """Monthly windows run from the 1st to the next 1st."""
        start, end = team_window(TeamResetFrequency.MONTHLY, datetime(2026, 12, 15, tzinfo=UTC))

        assert start == datetime(2026, 12, 1, tzinfo=UTC)
        assert end == datetime(2027, 1, 1, tzinfo=UTC)


class TestRollingExpiry:
    """Test rolling link expiry."""

    def test_no_window_never_expires(self):
        """Links never expire outside rolling_expiry mode."""
        link = make_link(TRADER, linked_at=NOW - timedelta(days=365))
        assert is_link_expired(link, None, NOW) is False

    def test_link_older_than_window_expires(self):
        """A link older than windowDays is expired."""
        link = make_link(TRADER, linked_at=NOW - timedelta(days=31))
        assert is_link_expired(link, 30, NOW) is True
        assert is_link_expired(link, 45, NOW) is False
