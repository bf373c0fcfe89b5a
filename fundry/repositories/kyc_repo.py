"""
KYC repository — read access to ``kyc_verifications``.

Rows are written by the external review workflow; the engine only reads.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.future import select

from fundry.models.kyc import KycVerification
from fundry.repositories.base import BaseRepository


class KycRepository(BaseRepository[KycVerification]):
    """Concrete repository for :class:`KycVerification` entities."""

    async def get_by_user(self, user_id: UUID) -> Optional[KycVerification]:
        async def _get() -> Optional[KycVerification]:
            stmt = select(self.model).where(self.model.user_id == user_id)
            result = await self.db.execute(stmt)
            return result.scalars().first()

        return await self._execute_with_circuit_breaker(_get)
