"""
Referral activity processor.

Turns trading-subsystem facts (signups with a code, trades) into ledger
points for the active period. Does not commit: the caller owns the
transaction, and every award re-checks that the period is still active
right before the caller commits.
"""

import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.enums import BonusType, LinkStatus
from app.models.referral_code import ReferralCode
from app.models.referral_link import ReferralLink
from app.models.referral_period import ReferralPeriod
from app.repositories.referral_bonus_repository import ReferralBonusRepository
from app.repositories.referral_code_repository import ReferralCodeRepository
from app.repositories.referral_link_repository import ReferralLinkRepository
from app.repositories.referral_period_repository import ReferralPeriodRepository
from app.repositories.referral_points_repository import ReferralPointsRepository
from app.repositories.referral_trade_repository import ReferralTradeRepository
from app.services.referral.config import (
    REFERRAL_CODE_ALPHABET,
    REFERRAL_CODE_LENGTH,
    REFERRAL_CODE_MAX_ATTEMPTS,
)
from app.services.referral.schemas import RefereeBenefits
from app.services.referral.strategies import (
    BonusAward,
    PointsDelta,
    ReferralStrategy,
    StrategyContext,
    TeamMember,
    TeamVolumeStrategy,
    TradeEvent,
    create_strategy,
    is_link_expired,
    quantize_points,
    short_address,
)
from app.utils.datetime_utils import ensure_utc, start_of_month, start_of_next_month, utc_now
from app.utils.exceptions import (
    ConflictError,
    NotFoundError,
    PeriodClosedError,
    ReferralError,
    ValidationError,
)
from app.utils.validation import normalize_wallet_address, to_decimal, validate_volume


ZERO = Decimal("0")
ONE = Decimal("1")


def generate_referral_code() -> str:
    """Random 8-character code from the unambiguous alphabet."""
    return "".join(
        secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH)
    )


@dataclass
class SignupResult:
    """Result of tracking a signup."""

    link: ReferralLink
    awards: list[BonusAward] = field(default_factory=list)


@dataclass
class TradeResult:
    """Result of processing one trade."""

    period_id: int | None
    delta: PointsDelta | None = None
    first_bet: bool = False

    @property
    def recorded(self) -> bool:
        """Whether the trade was attributed to a period."""
        return self.period_id is not None


@dataclass
class TradeInput:
    """A trade reported by the trading subsystem."""

    wallet: str
    volume: Decimal | int | float | str
    timestamp: datetime | None = None
    fee: Decimal | int | float | str | None = None


@dataclass
class EventResult:
    """Per-event outcome of batch processing."""

    wallet: str
    success: bool
    result: TradeResult | None = None
    error_message: str | None = None
    retryable: bool = False


@dataclass
class ProcessResult:
    """Result of batch trade processing."""

    success: bool
    results: list[EventResult] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success)


class ReferralActivityProcessor:
    """Processes signups and trades for the active period."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] = utc_now,
        points_per_volume: Decimal | None = None,
    ) -> None:
        """
        Initialize activity processor.

        Args:
            session: Async database session
            clock: Returns the current UTC time
            points_per_volume: Base trading points per unit of volume
                (defaults to settings)
        """
        self.session = session
        self.clock = clock
        self.points_per_volume = (
            points_per_volume
            if points_per_volume is not None
            else settings.referral_points_per_volume
        )
        self.period_repo = ReferralPeriodRepository(session)
        self.code_repo = ReferralCodeRepository(session)
        self.link_repo = ReferralLinkRepository(session)
        self.points_repo = ReferralPointsRepository(session)
        self.bonus_repo = ReferralBonusRepository(session)
        self.trade_repo = ReferralTradeRepository(session)

    # ------------------------------------------------------------------
    # Codes and signups
    # ------------------------------------------------------------------

    async def get_or_create_code(self, address: str) -> ReferralCode:
        """
        Get a wallet's referral code, generating one on first request.

        Args:
            address: Wallet address

        Returns:
            ReferralCode

        Raises:
            ValidationError: If the address is invalid
            ReferralError: If no free code was found
        """
        address = normalize_wallet_address(address)
        existing = await self.code_repo.get_by_address(address)
        if existing is not None:
            return existing

        for _ in range(REFERRAL_CODE_MAX_ATTEMPTS):
            code = generate_referral_code()
            if await self.code_repo.exists(code=code):
                continue
            created = await self.code_repo.create(address=address, code=code)
            logger.info(
                "Referral code created",
                extra={"address": address, "code": code},
            )
            return created

        raise ReferralError("Could not generate a unique referral code", address=address)

    async def track_signup(
        self, referee_address: str, code: str
    ) -> SignupResult | None:
        """
        Link a new wallet to the owner of code in the active period.

        Grants the referee's signup bonus and fires signup-level
        milestones.

        Args:
            referee_address: Wallet signing up
            code: Referral code used (any case)

        Returns:
            SignupResult, or None when no period is active

        Raises:
            NotFoundError: If the code does not exist
            ValidationError: If the wallet used its own code
            ConflictError: If the wallet already has a referrer this period
            PeriodClosedError: If the period completed during the signup
        """
        referee = normalize_wallet_address(referee_address)
        referral_code = await self.code_repo.get_by_code(code)
        if referral_code is None:
            raise NotFoundError(f"Referral code {code!r} not found", code=code)
        if referral_code.address == referee:
            raise ValidationError(
                "Cannot refer yourself",
                issues=[{"field": "code", "message": "self-referral"}],
            )

        period = await self.period_repo.get_active(lock=True)
        if period is None:
            logger.debug(
                "Signup ignored, no active period",
                extra={"referee": referee, "code": referral_code.code},
            )
            return None

        if await self.link_repo.get_for_referred(period.id, referee) is not None:
            raise ConflictError(
                "User already has a referrer in this period",
                period_id=period.id,
                referee=referee,
            )

        now = self.clock()
        link = await self.link_repo.create(
            period_id=period.id,
            referrer_address=referral_code.address,
            referred_address=referee,
            referral_code=referral_code.code,
            status=LinkStatus.PENDING.value,
            linked_at=now,
            lifetime_volume=ZERO,
        )
        await self.code_repo.increment_referral_count(referral_code.id)

        awards: list[BonusAward] = []
        benefits = RefereeBenefits.model_validate(period.referee_benefits)
        if benefits.signup_bonus > 0:
            awards.append(
                BonusAward(
                    recipient=referee,
                    bonus_type=BonusType.SIGNUP,
                    points=benefits.signup_bonus,
                    reason="Signup bonus",
                    source=referral_code.address,
                )
            )

        strategy = create_strategy(period.strategy, period.strategy_config)
        context = StrategyContext(
            link=link,
            fired_milestone_keys=await self.bonus_repo.get_milestone_keys(
                period.id, referee
            ),
        )
        awards.extend(strategy.signup_awards(link, context, now))

        await self._apply_awards(period.id, awards, now)
        await self._ensure_still_active(period)

        logger.info(
            "Referral link created",
            extra={
                "period_id": period.id,
                "referrer": referral_code.address,
                "referee": referee,
                "awards": len(awards),
            },
        )
        return SignupResult(link=link, awards=awards)

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    async def record_trade(
        self,
        wallet: str,
        volume: Decimal | int | float | str,
        timestamp: datetime | None = None,
        fee: Decimal | int | float | str | None = None,
    ) -> TradeResult:
        """
        Credit points for one trade in the active period.

        Args:
            wallet: Trader wallet
            volume: Trade size
            timestamp: When the trade happened (defaults to now)
            fee: Fee charged, used as revenue-share basis when given

        Returns:
            TradeResult (period_id None when no period is active)

        Raises:
            ValidationError: If wallet or amounts are invalid
            UnsupportedStrategyError: If the period's strategy is unknown
            PeriodClosedError: If the period completed during processing
        """
        address = normalize_wallet_address(wallet)
        amount = validate_volume(volume)
        fee_amount = to_decimal(fee, "fee") if fee is not None else None
        if fee_amount is not None and fee_amount < 0:
            raise ValidationError(
                "Fee must be non-negative",
                issues=[{"field": "fee", "message": "must be >= 0"}],
            )
        occurred_at = ensure_utc(timestamp) if timestamp else self.clock()

        period = await self.period_repo.get_active(lock=True)
        if period is None:
            logger.debug("Trade ignored, no active period", extra={"address": address})
            return TradeResult(period_id=None)

        strategy = create_strategy(period.strategy, period.strategy_config)

        await self.trade_repo.create(
            period_id=period.id,
            address=address,
            volume=amount,
            fee=fee_amount,
            occurred_at=occurred_at,
        )

        link, first_bet = await self._update_referee_link(
            period, strategy, address, amount, occurred_at
        )

        event = TradeEvent(
            address=address,
            volume=amount,
            base_points=quantize_points(amount * self.points_per_volume),
            occurred_at=occurred_at,
            fee=fee_amount,
        )
        context = await self._build_context(period, strategy, event, link)
        delta = strategy.compute_delta(event, context)

        if first_bet and link is not None:
            first_bet_award = self._first_bet_award(period, event, link)
            if first_bet_award is not None:
                delta.awards.insert(0, first_bet_award)

        if delta.trading_points > 0:
            await self.points_repo.add_points(
                period.id, address, trading_points=delta.trading_points
            )
        await self._apply_awards(period.id, delta.awards, occurred_at)
        await self._ensure_still_active(period)

        logger.debug(
            "Trade processed",
            extra={
                "period_id": period.id,
                "address": address,
                "trading_points": str(delta.trading_points),
                "awards": len(delta.awards),
            },
        )
        return TradeResult(period_id=period.id, delta=delta, first_bet=first_bet)

    async def _update_referee_link(
        self,
        period: ReferralPeriod,
        strategy: ReferralStrategy,
        address: str,
        amount: Decimal,
        occurred_at: datetime,
    ) -> tuple[ReferralLink | None, bool]:
        link = await self.link_repo.get_for_referred(period.id, address)
        if link is None:
            return None, False

        first_bet = link.first_bet_at is None
        link.lifetime_volume = (link.lifetime_volume or ZERO) + amount
        link.last_bet_at = occurred_at
        if first_bet:
            link.first_bet_at = occurred_at
        if link.status == LinkStatus.PENDING and strategy.is_active_referral(
            link, occurred_at
        ):
            link.status = LinkStatus.ACTIVE.value
            logger.info(
                "Referral became active",
                extra={"period_id": period.id, "referee": address},
            )
        await self.session.flush()

        if is_link_expired(link, period.rolling_window_days, occurred_at):
            return None, first_bet
        return link, first_bet

    def _first_bet_award(
        self, period: ReferralPeriod, event: TradeEvent, link: ReferralLink
    ) -> BonusAward | None:
        benefits = RefereeBenefits.model_validate(period.referee_benefits)
        eligible = min(event.volume, benefits.max_stake)
        bonus = quantize_points(
            eligible * self.points_per_volume * (benefits.first_bet_multiplier - ONE)
        )
        if bonus <= 0:
            return None
        return BonusAward(
            recipient=event.address,
            bonus_type=BonusType.FIRST_BET,
            points=bonus,
            reason=f"{benefits.first_bet_multiplier}x first bet bonus",
            source=link.referrer_address,
        )

    async def _build_context(
        self,
        period: ReferralPeriod,
        strategy: ReferralStrategy,
        event: TradeEvent,
        link: ReferralLink | None,
    ) -> StrategyContext:
        context = StrategyContext(link=link)

        if "trader_links" in strategy.requires:
            context.trader_links = await self._live_links(
                period, event.address, event.occurred_at
            )

        if "fired_milestone_keys" in strategy.requires and link is not None:
            context.fired_milestone_keys = await self.bonus_repo.get_milestone_keys(
                period.id, link.referred_address
            )

        if "share_earned" in strategy.requires and link is not None:
            context.referral_share_earned = await self.bonus_repo.sum_points(
                period.id,
                link.referrer_address,
                BonusType.REVENUE_SHARE,
                source_address=link.referred_address,
            )
            context.monthly_share_earned = await self.bonus_repo.sum_points(
                period.id,
                link.referrer_address,
                BonusType.REVENUE_SHARE,
                since=start_of_month(event.occurred_at),
                until=start_of_next_month(event.occurred_at),
            )

        if isinstance(strategy, TeamVolumeStrategy):
            context.team_members = await self._team_members(
                period, strategy, event, link
            )

        return context

    async def _live_links(
        self, period: ReferralPeriod, referrer: str, now: datetime
    ) -> list[ReferralLink]:
        links = await self.link_repo.get_for_referrer(period.id, referrer)
        return [
            link
            for link in links
            if not is_link_expired(link, period.rolling_window_days, now)
        ]

    async def _active_referees(
        self,
        period: ReferralPeriod,
        strategy: ReferralStrategy,
        leader: str,
        now: datetime,
    ) -> list[str]:
        return [
            link.referred_address
            for link in await self._live_links(period, leader, now)
            if strategy.is_active_referral(link, now)
        ]

    async def _team_volume(
        self,
        period: ReferralPeriod,
        strategy: ReferralStrategy,
        leader: str,
        since: datetime,
        until: datetime,
        now: datetime,
    ) -> Decimal | None:
        members = await self._active_referees(period, strategy, leader, now)
        if not members:
            return None
        return await self.trade_repo.sum_volume(
            period.id, [leader, *members], since, until
        )

    async def _team_members(
        self,
        period: ReferralPeriod,
        strategy: TeamVolumeStrategy,
        event: TradeEvent,
        link: ReferralLink | None,
    ) -> list[TeamMember]:
        """
        Window standing of everyone on a team the trade counts toward.

        That is the trader's own team and, when the trader is an active
        referee, the referrer's team. The trader comes first.
        """
        now = event.occurred_at
        since, until = strategy.window(now)

        leaders = [event.address]
        if link is not None and strategy.is_active_referral(link, now):
            leaders.append(link.referrer_address)

        addresses: list[str] = []
        for leader in leaders:
            team = [leader, *await self._active_referees(period, strategy, leader, now)]
            addresses.extend(a for a in team if a not in addresses)

        members = []
        for address in addresses:
            member_link = await self.link_repo.get_for_referred(period.id, address)
            referrer_team_volume = None
            if (
                member_link is not None
                and not is_link_expired(member_link, period.rolling_window_days, now)
                and strategy.is_active_referral(member_link, now)
            ):
                referrer_team_volume = await self._team_volume(
                    period, strategy, member_link.referrer_address, since, until, now
                )

            volume = await self.trade_repo.sum_volume(period.id, [address], since, until)
            members.append(
                TeamMember(
                    address=address,
                    window_base_points=quantize_points(volume * self.points_per_volume),
                    credited_bonus=await self.bonus_repo.sum_points(
                        period.id,
                        address,
                        BonusType.TEAM_VOLUME,
                        since=since,
                        until=until,
                    ),
                    own_team_volume=await self._team_volume(
                        period, strategy, address, since, until, now
                    ),
                    referrer_team_volume=referrer_team_volume,
                )
            )
        return members

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _apply_awards(
        self, period_id: int, awards: list[BonusAward], awarded_at: datetime
    ) -> None:
        for award in awards:
            await self.points_repo.add_points(
                period_id, award.recipient, bonus_points=award.points
            )
            await self.bonus_repo.create(
                period_id=period_id,
                recipient_address=award.recipient,
                source_address=award.source,
                bonus_type=award.bonus_type.value,
                points=award.points,
                reason=award.reason,
                milestone_key=award.milestone_key,
                awarded_at=awarded_at,
            )
            logger.debug(
                "Bonus awarded",
                extra={
                    "period_id": period_id,
                    "recipient": short_address(award.recipient),
                    "bonus_type": award.bonus_type.value,
                    "points": str(award.points),
                },
            )

    async def _ensure_still_active(self, period: ReferralPeriod) -> None:
        if not await self.period_repo.is_active(period.id):
            logger.warning(
                "Period closed while awarding points",
                extra={"period_id": period.id},
            )
            raise PeriodClosedError(
                f"Period {period.id} is no longer active",
                period_id=period.id,
            )
