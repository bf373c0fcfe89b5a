"""
KYC service — reads an investor's verification outcome and applies the
campaign's tier gate.
"""

import logging
from typing import Optional
from uuid import UUID

from fundry.domain import kyc
from fundry.domain.kyc import KycRequirement
from fundry.models.campaign import Campaign
from fundry.repositories.kyc_repo import KycRepository

logger = logging.getLogger(__name__)


class KycService:
    def __init__(self, kyc_repo: KycRepository):
        self._kyc_repo = kyc_repo

    async def requirement_for(
        self, campaign: Campaign, user_id: Optional[UUID]
    ) -> KycRequirement:
        """
        The tier ``campaign`` requires and whether ``user_id`` meets it.

        Anonymous callers get the requirement with ``satisfied=False``.
        """
        if user_id is None:
            return kyc.evaluate(campaign.funding_goal, None, None)
        record = await self._kyc_repo.get_by_user(user_id)
        if record is None:
            return kyc.evaluate(campaign.funding_goal, None, None)
        return kyc.evaluate(campaign.funding_goal, record.status, record.approved_tier)

    async def authorize(self, campaign: Campaign, user_id: UUID) -> KycRequirement:
        """Raise :class:`AuthorizationError` unless the investor passes the gate."""
        requirement = await self.requirement_for(campaign, user_id)
        if not requirement.satisfied:
            logger.info(
                "KYC gate blocked user %s: %s required, status %s",
                user_id,
                requirement.required_tier.value,
                requirement.investor_status.value,
                extra={"campaign_id": str(campaign.id)},
            )
        kyc.enforce(requirement)
        return requirement
