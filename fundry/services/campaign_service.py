"""
Campaign service — business logic for the founder's campaign edit path and
the campaign read endpoints.

Every read is merged with the funding read model so callers see
``total_raised``, ``investor_count`` and ``progress_percent`` alongside
the campaign fields.  Create and edit both revalidate the entire
use-of-funds list and team data; there is no partially valid campaign.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from fundry.core.config import settings
from fundry.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolation,
    NotFoundException,
    ValidationError,
)
from fundry.domain.allocations import validate_allocations, validate_team
from fundry.domain.kyc import KycRequirement
from fundry.domain.terms import format_money
from fundry.models.campaign import Campaign, CampaignStatus
from fundry.models.investment import Investment
from fundry.repositories.campaign_repo import CampaignRepository
from fundry.repositories.investment_repo import InvestmentRepository
from fundry.schemas.campaign import CampaignBase, CampaignCreate, CampaignResponse, CampaignUpdate
from fundry.schemas.identity import CurrentUser
from fundry.services.funding_service import FundingService
from fundry.services.kyc_service import KycService

logger = logging.getLogger(__name__)


class CampaignService:
    """Encapsulates CRUD + business rules for :class:`Campaign`."""

    def __init__(
        self,
        campaign_repo: CampaignRepository,
        invest_repo: InvestmentRepository,
        funding: FundingService,
        kyc: KycService,
    ):
        self._repo = campaign_repo
        self._invest_repo = invest_repo
        self._funding = funding
        self._kyc = kyc

    # ── Queries ──

    async def get_campaign(self, campaign_id: UUID) -> CampaignResponse:
        campaign = await self._load(campaign_id)
        return await self._with_stats(campaign)

    async def list_campaigns(
        self,
        status: Optional[CampaignStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[CampaignResponse]:
        campaigns = await self._repo.list_campaigns(status=status, skip=skip, limit=limit)
        return [await self._with_stats(c) for c in campaigns]

    async def list_investments(
        self, user: CurrentUser, campaign_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Investment]:
        """Investments in a campaign; visible to its founder only."""
        campaign = await self._load(campaign_id)
        self._ensure_founder(user, campaign)
        return await self._invest_repo.get_by_campaign(campaign_id, skip=skip, limit=limit)

    async def kyc_requirement(
        self, user: Optional[CurrentUser], campaign_id: UUID
    ) -> KycRequirement:
        campaign = await self._load(campaign_id)
        return await self._kyc.requirement_for(campaign, user.user_id if user else None)

    # ── Commands ──

    async def create_campaign(
        self, user: CurrentUser, campaign_in: CampaignCreate
    ) -> CampaignResponse:
        """
        Create a campaign owned by ``user``.

        Allocations and team data are validated before anything is written;
        DB-level CHECK violations surface as a 422.
        """
        _validate_composition(campaign_in)
        campaign = Campaign(founder_id=user.user_id, **_campaign_fields(campaign_in))
        try:
            created = await self._repo.create(campaign)
        except IntegrityError as exc:
            await self._repo.db.rollback()
            logger.warning("IntegrityError creating campaign: %s", exc)
            raise BusinessRuleViolation(
                "Campaign data violates a database constraint. Check all fields."
            )
        logger.info(
            "Created campaign %s (%s)",
            created.id,
            created.title,
            extra={"campaign_id": str(created.id)},
        )
        return await self._with_stats(created)

    async def update_campaign(
        self, user: CurrentUser, campaign_id: UUID, campaign_in: CampaignUpdate
    ) -> CampaignResponse:
        """
        Full replacement edit by the campaign's founder.

        The whole allocation list is revalidated, and the status change must
        follow the campaign lifecycle.
        """
        campaign = await self._load(campaign_id)
        self._ensure_founder(user, campaign)
        _validate_status_transition(campaign.status, campaign_in.status)
        _validate_composition(campaign_in)

        for key, value in _campaign_fields(campaign_in).items():
            setattr(campaign, key, value)
        campaign.updated_at = datetime.now(timezone.utc)

        try:
            updated = await self._repo.update(campaign)
        except IntegrityError as exc:
            await self._repo.db.rollback()
            logger.warning("IntegrityError updating campaign %s: %s", campaign_id, exc)
            raise BusinessRuleViolation(
                "Campaign update violates a database constraint. Check all fields."
            )
        # Progress is relative to the goal, which may just have changed.
        self._funding.invalidate(campaign_id)
        logger.info("Updated campaign %s", updated.id, extra={"campaign_id": str(updated.id)})
        return await self._with_stats(updated)

    # ── Helpers ──

    async def _load(self, campaign_id: UUID) -> Campaign:
        campaign = await self._repo.get(campaign_id)
        if not campaign:
            raise NotFoundException("Campaign", campaign_id)
        return campaign

    @staticmethod
    def _ensure_founder(user: CurrentUser, campaign: Campaign) -> None:
        if campaign.founder_id != user.user_id:
            raise AuthorizationError("Only the campaign's founder can do this")

    async def _with_stats(self, campaign: Campaign) -> CampaignResponse:
        stats = await self._funding.stats(campaign)
        return CampaignResponse.model_validate(
            {**campaign.model_dump(), **stats.model_dump()}
        )


def _validate_composition(campaign_in: CampaignBase) -> None:
    ceiling = settings.PLATFORM_MAX_INVESTMENT
    if campaign_in.minimum_investment > ceiling:
        raise ValidationError(
            f"Minimum investment cannot exceed the platform maximum of {format_money(ceiling)}",
            field="minimum_investment",
        )
    if campaign_in.use_of_funds is not None:
        validate_allocations(campaign_in.use_of_funds)
    validate_team(campaign_in.team_structure, campaign_in.team_members)


def _campaign_fields(campaign_in: CampaignBase) -> dict:
    """Schema → column values; JSON columns hold plain dicts."""
    data = campaign_in.model_dump(exclude={"use_of_funds", "team_members", "team_structure"})
    data["team_structure"] = campaign_in.team_structure.value
    data["use_of_funds"] = (
        [a.model_dump(mode="json") for a in campaign_in.use_of_funds]
        if campaign_in.use_of_funds is not None
        else None
    )
    data["team_members"] = (
        [m.model_dump(mode="json") for m in campaign_in.team_members]
        if campaign_in.team_members is not None
        else None
    )
    return data


# ── Status transition rules ──

_ALLOWED_TRANSITIONS: dict[CampaignStatus, set[CampaignStatus]] = {
    CampaignStatus.DRAFT: {CampaignStatus.DRAFT, CampaignStatus.ACTIVE, CampaignStatus.CANCELLED},
    CampaignStatus.ACTIVE: {
        CampaignStatus.ACTIVE,
        CampaignStatus.PAUSED,
        CampaignStatus.FUNDED,
        CampaignStatus.CLOSED,
        CampaignStatus.CANCELLED,
    },
    CampaignStatus.PAUSED: {
        CampaignStatus.PAUSED,
        CampaignStatus.ACTIVE,
        CampaignStatus.CLOSED,
        CampaignStatus.CANCELLED,
    },
    CampaignStatus.FUNDED: {CampaignStatus.FUNDED, CampaignStatus.CLOSED},
    CampaignStatus.CLOSED: {CampaignStatus.CLOSED},  # terminal
    CampaignStatus.CANCELLED: {CampaignStatus.CANCELLED},  # terminal
}


def _validate_status_transition(current: CampaignStatus, requested: CampaignStatus) -> None:
    if requested not in _ALLOWED_TRANSITIONS.get(current, set()):
        raise BusinessRuleViolation(
            f"Invalid status transition: '{current.value}' → '{requested.value}'"
        )
