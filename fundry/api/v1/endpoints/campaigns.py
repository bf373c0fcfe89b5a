"""
Campaign API endpoints.

- POST   /campaigns                       — Create a campaign (founder)
- GET    /campaigns                       — List campaigns with funding stats
- GET    /campaigns/{id}                  — Campaign + funding stats
- PUT    /campaigns/{id}                  — Full edit (founder only)
- GET    /campaigns/{id}/investments      — Investments (founder only)
- GET    /campaigns/{id}/kyc-requirement  — KYC tier the campaign requires
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fundry.api.deps import get_current_user, get_optional_user
from fundry.db.session import get_db
from fundry.domain.kyc import KycRequirement
from fundry.models.campaign import Campaign, CampaignStatus
from fundry.models.investment import Investment
from fundry.models.kyc import KycVerification
from fundry.repositories.campaign_repo import CampaignRepository
from fundry.repositories.investment_repo import InvestmentRepository
from fundry.repositories.kyc_repo import KycRepository
from fundry.schemas.campaign import CampaignCreate, CampaignResponse, CampaignUpdate
from fundry.schemas.common import ErrorResponse, ValidationErrorResponse
from fundry.schemas.identity import CurrentUser
from fundry.schemas.investment import InvestmentResponse
from fundry.services.campaign_service import CampaignService
from fundry.services.funding_service import FundingService
from fundry.services.kyc_service import KycService

router = APIRouter()


# ── Dependency injection ──


def _get_campaign_service(db: AsyncSession = Depends(get_db)) -> CampaignService:
    """Build a CampaignService wired to the current request's DB session."""
    invest_repo = InvestmentRepository(Investment, db)
    return CampaignService(
        campaign_repo=CampaignRepository(Campaign, db),
        invest_repo=invest_repo,
        funding=FundingService(invest_repo),
        kyc=KycService(KycRepository(KycVerification, db)),
    )


# ── Endpoints ──


@router.post(
    "",
    response_model=CampaignResponse,
    status_code=201,
    summary="Create a campaign",
    description=(
        "Creates a campaign owned by the caller.  When ``use_of_funds`` is "
        "given, the percentages must sum to exactly 100."
    ),
    responses={
        401: {"model": ErrorResponse, "description": "No identity supplied"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_campaign(
    campaign: CampaignCreate,
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(_get_campaign_service),
) -> CampaignResponse:
    return await service.create_campaign(user, campaign)


@router.get(
    "",
    response_model=List[CampaignResponse],
    summary="List campaigns",
)
async def list_campaigns(
    status: Optional[CampaignStatus] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    service: CampaignService = Depends(_get_campaign_service),
) -> List[CampaignResponse]:
    return await service.list_campaigns(status=status, skip=skip, limit=limit)


@router.get(
    "/{campaign_id}",
    response_model=CampaignResponse,
    summary="Get a campaign with its funding progress",
    responses={404: {"model": ErrorResponse, "description": "Campaign not found"}},
)
async def get_campaign(
    campaign_id: UUID,
    service: CampaignService = Depends(_get_campaign_service),
) -> CampaignResponse:
    return await service.get_campaign(campaign_id)


@router.put(
    "/{campaign_id}",
    response_model=CampaignResponse,
    summary="Update a campaign",
    description="Full replacement; the whole use-of-funds list is revalidated.",
    responses={
        403: {"model": ErrorResponse, "description": "Caller is not the founder"},
        404: {"model": ErrorResponse, "description": "Campaign not found"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def update_campaign(
    campaign_id: UUID,
    campaign: CampaignUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(_get_campaign_service),
) -> CampaignResponse:
    return await service.update_campaign(user, campaign_id, campaign)


@router.get(
    "/{campaign_id}/investments",
    response_model=List[InvestmentResponse],
    summary="List a campaign's investments (founder only)",
    responses={
        403: {"model": ErrorResponse, "description": "Caller is not the founder"},
        404: {"model": ErrorResponse, "description": "Campaign not found"},
    },
)
async def list_campaign_investments(
    campaign_id: UUID,
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    user: CurrentUser = Depends(get_current_user),
    service: CampaignService = Depends(_get_campaign_service),
) -> List[InvestmentResponse]:
    return await service.list_investments(user, campaign_id, skip=skip, limit=limit)


@router.get(
    "/{campaign_id}/kyc-requirement",
    response_model=KycRequirement,
    summary="KYC tier required to invest",
    responses={404: {"model": ErrorResponse, "description": "Campaign not found"}},
)
async def get_kyc_requirement(
    campaign_id: UUID,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    service: CampaignService = Depends(_get_campaign_service),
) -> KycRequirement:
    return await service.kyc_requirement(user, campaign_id)
