"""
Referral period repository.

Data access layer for ReferralPeriod, including the compare-and-swap
status transition every lifecycle change goes through.
"""

from typing import Any

from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PeriodStatus
from app.models.referral_period import ReferralPeriod
from app.repositories.base import BaseRepository
from app.utils.datetime_utils import utc_now


class ReferralPeriodRepository(BaseRepository[ReferralPeriod]):
    """Referral period repository with lifecycle queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral period repository."""
        super().__init__(ReferralPeriod, session)

    async def get_active(self, lock: bool = False) -> ReferralPeriod | None:
        """
        Get the active period.

        Args:
            lock: Take a shared row lock (FOR SHARE) so a concurrent
                completion waits until the caller's transaction ends

        Returns:
            Active period or None
        """
        stmt = (
            select(ReferralPeriod)
            .where(ReferralPeriod.status == PeriodStatus.ACTIVE)
            .limit(1)
        )
        if lock:
            stmt = stmt.with_for_update(read=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def is_active(self, period_id: int) -> bool:
        """
        Re-read a period's status, locking the row for share.

        Args:
            period_id: Period ID

        Returns:
            True if the period is still active
        """
        stmt = (
            select(ReferralPeriod.status)
            .where(ReferralPeriod.id == period_id)
            .with_for_update(read=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() == PeriodStatus.ACTIVE

    async def list_all(
        self, status: PeriodStatus | None = None
    ) -> list[ReferralPeriod]:
        """
        List periods, newest first.

        Args:
            status: Optional status filter

        Returns:
            List of periods
        """
        stmt = select(ReferralPeriod).order_by(
            ReferralPeriod.created_at.desc(), ReferralPeriod.id.desc()
        )
        if status is not None:
            stmt = stmt.where(ReferralPeriod.status == status)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def transition_status(
        self,
        period_id: int,
        expected: PeriodStatus,
        new: PeriodStatus,
        **values: Any,
    ) -> ReferralPeriod | None:
        """
        Atomically move a period from one status to another.

        Issues UPDATE ... WHERE id = :id AND status = :expected, so of two
        concurrent callers only one observes a changed row.

        Args:
            period_id: Period ID
            expected: Status the row must currently have
            new: Status to set
            **values: Extra columns to set in the same statement

        Returns:
            Refreshed period, or None if the precondition did not hold
        """
        stmt = (
            update(ReferralPeriod)
            .where(
                ReferralPeriod.id == period_id,
                ReferralPeriod.status == expected,
            )
            .values(status=new.value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)

        if result.rowcount != 1:
            logger.debug(
                "Period status transition rejected",
                extra={
                    "period_id": period_id,
                    "expected": expected.value,
                    "new": new.value,
                },
            )
            return None

        return await self.get_by_id(period_id, refresh=True)

    async def delete_unstarted(self, period_id: int) -> bool:
        """
        Hard-delete a period that never started.

        Args:
            period_id: Period ID

        Returns:
            True if a draft/cancelled row was deleted
        """
        stmt = (
            delete(ReferralPeriod)
            .where(
                ReferralPeriod.id == period_id,
                ReferralPeriod.status.in_(
                    [PeriodStatus.DRAFT.value, PeriodStatus.CANCELLED.value]
                ),
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
