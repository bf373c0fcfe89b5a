"""
Investment repository — data-access layer for the ``investments`` table.

Besides the per-campaign / per-investor listings it owns the funding
aggregate query behind the campaign read model.
"""

from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import distinct, func
from sqlalchemy.future import select

from fundry.domain.funding import COUNTED_STATUSES
from fundry.models.investment import Investment
from fundry.repositories.base import BaseRepository


class InvestmentRepository(BaseRepository[Investment]):
    """Concrete repository for :class:`Investment` entities."""

    async def get_by_campaign(
        self, campaign_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Investment]:
        """Investments in a campaign, most recent first."""

        async def _get() -> List[Investment]:
            stmt = (
                select(self.model)
                .where(self.model.campaign_id == campaign_id)
                .order_by(self.model.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_get)

    async def get_by_investor(
        self, investor_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Investment]:
        async def _get() -> List[Investment]:
            stmt = (
                select(self.model)
                .where(self.model.investor_id == investor_id)
                .order_by(self.model.created_at.desc())
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_get)

    async def get_by_submission(
        self, investor_id: UUID, idempotency_key: str
    ) -> Optional[Investment]:
        """The investment an earlier submission with this key created, if any."""

        async def _get() -> Optional[Investment]:
            stmt = select(self.model).where(
                self.model.investor_id == investor_id,
                self.model.idempotency_key == idempotency_key,
            )
            result = await self.db.execute(stmt)
            return result.scalars().first()

        return await self._execute_with_circuit_breaker(_get)

    async def funding_totals(self, campaign_id: UUID) -> Tuple[Decimal, int]:
        """
        ``(sum(amount), count(distinct investor_id))`` over counted statuses.

        Served by ``ix_investments_campaign_status``.
        """

        async def _totals() -> Tuple[Decimal, int]:
            stmt = select(
                func.coalesce(func.sum(self.model.amount), 0),
                func.count(distinct(self.model.investor_id)),
            ).where(
                self.model.campaign_id == campaign_id,
                self.model.status.in_(list(COUNTED_STATUSES)),
            )
            result = await self.db.execute(stmt)
            total, investors = result.one()
            return Decimal(str(total or 0)), int(investors or 0)

        return await self._execute_with_circuit_breaker(_totals)
