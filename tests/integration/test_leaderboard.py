"""
Integration tests for live leaderboards and archives.
"""

from decimal import Decimal

import pytest

from app.services.referral_service import ReferralService
from app.utils.exceptions import NotFoundError
from tests.factories import wallet


REFERRER = wallet(1)
REFEREE = wallet(2)


class TestLiveLeaderboard:
    """Test live rankings."""

    @pytest.mark.asyncio
    async def test_sorted_by_total_points(self, service, make_period):
        """Higher totals rank first and ranks have no gaps."""
        await make_period()
        for n, volume in ((30, 5), (31, 50), (32, 20)):
            await service.record_trade(wallet(n), volume)

        board = await service.get_leaderboard()

        assert [e.address for e in board] == [wallet(31), wallet(32), wallet(30)]
        assert [e.rank for e in board] == [1, 2, 3]
        assert board[0].total_points == Decimal("50")

    @pytest.mark.asyncio
    async def test_tie_earlier_referee_first(self, service, make_period, make_referral, clock):
        """On equal points the referee who linked first ranks higher."""
        await make_period()
        early, late = wallet(10), wallet(11)
        await make_referral(REFERRER, early)
        clock.advance(minutes=1)
        await make_referral(REFERRER, late)

        await service.record_trade(late, 10)
        await service.record_trade(early, 10)
        board = await service.get_leaderboard()

        assert [e.address for e in board] == [early, late, REFERRER]
        assert [e.rank for e in board] == [1, 2, 3]
        assert board[2].total_points == Decimal("0")
        assert board[2].referral_count == 2

    @pytest.mark.asyncio
    async def test_tie_earlier_code_first(self, service, make_period):
        """Unreferred wallets tie-break on who created a code first."""
        await make_period()
        first, second = wallet(20), wallet(21)
        await service.get_or_create_referral_code(first)
        await service.get_or_create_referral_code(second)

        await service.record_trade(second, 10)
        await service.record_trade(first, 10)
        board = await service.get_leaderboard()

        assert [e.address for e in board] == [first, second]

    @pytest.mark.asyncio
    async def test_tie_earlier_ledger_entry_first(self, service, make_period):
        """Without links or codes the first wallet to score ranks higher."""
        await make_period()

        await service.record_trade(wallet(41), 10)
        await service.record_trade(wallet(40), 10)
        board = await service.get_leaderboard()

        assert [e.address for e in board] == [wallet(41), wallet(40)]

    @pytest.mark.asyncio
    async def test_limit(self, service, make_period):
        """limit caps the number of entries."""
        await make_period()
        for n in range(50, 55):
            await service.record_trade(wallet(n), n)

        board = await service.get_leaderboard(limit=2)

        assert [e.rank for e in board] == [1, 2]
        assert board[0].address == wallet(54)

    @pytest.mark.asyncio
    async def test_zero_limit(self, service, make_period):
        """An explicit limit of 0 returns no entries rather than the default size."""
        period = await make_period()
        await service.record_trade(wallet(60), 10)

        assert await service.get_leaderboard(limit=0) == []
        assert await service.get_period_leaderboard(period.id, limit=0) == []

    @pytest.mark.asyncio
    async def test_no_active_period(self, service):
        """Without an active period there is no live leaderboard."""
        with pytest.raises(NotFoundError):
            await service.get_leaderboard()


class TestArchive:
    """Test archives written on completion."""

    async def play_season(self, service, make_period, make_referral):
        period = await make_period()
        await make_referral(REFERRER, REFEREE)
        await service.record_trade(REFEREE, 20)
        await service.record_trade(REFERRER, 100)
        return period

    @pytest.mark.asyncio
    async def test_archive_snapshot(self, service, make_period, make_referral, clock):
        """The archive freezes rankings and aggregate stats."""
        period = await self.play_season(service, make_period, make_referral)
        period_started = period.starts_at
        clock.advance(days=1)

        result = await service.complete_period(period.id)

        archive = result.archive
        assert archive.period_start == period_started
        assert archive.period_end == clock()
        assert archive.reset_mode == "manual"
        assert archive.rankings == [
            {
                "rank": 1,
                "address": REFERRER,
                "points": "110",
                "referrals": 1,
                "bonusPoints": "10",
            },
            {
                "rank": 2,
                "address": REFEREE,
                "points": "20",
                "referrals": 0,
                "bonusPoints": "0",
            },
        ]
        assert archive.stats == {
            "totalUsers": 2,
            "totalReferrals": 1,
            "totalBonusAwarded": "10",
            "topReferrer": REFERRER,
        }

    @pytest.mark.asyncio
    async def test_archive_is_write_once(self, service, make_period, make_referral):
        """Re-archiving returns the existing snapshot untouched."""
        period = await self.play_season(service, make_period, make_referral)
        result = await service.complete_period(period.id)

        again = await service.leaderboard.archive_period(result.period, result.period.ends_at)

        assert again.id == result.archive.id
        assert len(await service.list_archives()) == 1

    @pytest.mark.asyncio
    async def test_activity_after_completion_ignored(self, service, make_period, make_referral):
        """Trades after completion never reach the archived period."""
        period = await self.play_season(service, make_period, make_referral)
        await service.complete_period(period.id)

        trade = await service.record_trade(REFEREE, 1000)

        assert trade.recorded is False
        rankings = await service.get_period_leaderboard(period.id)
        assert rankings[0]["address"] == REFERRER
        assert rankings[1]["points"] == "20"
        assert await service.get_period_leaderboard(period.id, limit=0) == []

    @pytest.mark.asyncio
    async def test_archive_frozen_while_successor_trades(
        self, service, make_period, make_referral, session_maker
    ):
        """Trades in the chained successor leave the old archive untouched."""
        period = await self.play_season(service, make_period, make_referral)
        period_id = period.id
        result = await service.reset_period(period_id)
        rankings = list(result.archive.rankings)
        stats = dict(result.archive.stats)

        await make_referral(REFERRER, wallet(3))
        for address, volume in ((REFEREE, 500), (wallet(3), 900), (REFERRER, 10)):
            trade = await service.record_trade(address, volume)
            assert trade.period_id == result.next_period.id

        async with session_maker() as fresh:
            archive = await ReferralService(fresh).get_archive(period_id)
        assert archive.rankings == rankings
        assert archive.stats == stats
        assert await service.get_period_leaderboard(period_id) == rankings

    @pytest.mark.asyncio
    async def test_period_leaderboard_live_for_active(self, service, make_period, make_referral):
        """Active periods return live rows in archive shape."""
        period = await self.play_season(service, make_period, make_referral)

        rankings = await service.get_period_leaderboard(period.id, limit=1)

        assert rankings == [
            {
                "rank": 1,
                "address": REFERRER,
                "points": "110",
                "referrals": 1,
                "bonusPoints": "10",
            }
        ]

    @pytest.mark.asyncio
    async def test_archives_newest_first(self, service, make_period, clock):
        """list_archives returns the latest season first."""
        first = await make_period()
        chained = await service.reset_period(first.id)
        clock.advance(days=7)
        await service.complete_period(chained.next_period.id)

        archives = await service.list_archives()

        assert [a.period_id for a in archives] == [chained.next_period.id, first.id]

    @pytest.mark.asyncio
    async def test_missing_archive(self, service):
        """Unknown periods have no archive."""
        with pytest.raises(NotFoundError):
            await service.get_archive(999)

    @pytest.mark.asyncio
    async def test_missing_period_leaderboard(self, service):
        """Unknown periods have no leaderboard."""
        with pytest.raises(NotFoundError):
            await service.get_period_leaderboard(999)
