"""
Campaign repository — data-access layer for the ``campaigns`` table.
"""

from typing import List, Optional

from sqlalchemy.future import select

from fundry.models.campaign import Campaign, CampaignStatus
from fundry.repositories.base import BaseRepository


class CampaignRepository(BaseRepository[Campaign]):
    """Concrete repository for :class:`Campaign` entities."""

    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Campaign]:
        """Campaigns newest first, optionally filtered by status."""

        async def _list() -> List[Campaign]:
            stmt = select(self.model)
            if status is not None:
                stmt = stmt.where(self.model.status == status)
            stmt = stmt.order_by(self.model.created_at.desc()).offset(skip).limit(limit)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_list)
