"""
SAFE agreement repository — data-access layer for ``safe_agreements``.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.future import select

from fundry.models.safe_agreement import SafeAgreement
from fundry.repositories.base import BaseRepository


class SafeAgreementRepository(BaseRepository[SafeAgreement]):
    """Concrete repository for :class:`SafeAgreement` entities."""

    async def get_by_investment(self, investment_id: UUID) -> Optional[SafeAgreement]:
        async def _get() -> Optional[SafeAgreement]:
            stmt = select(self.model).where(self.model.investment_id == investment_id)
            result = await self.db.execute(stmt)
            return result.scalars().first()

        return await self._execute_with_circuit_breaker(_get)
