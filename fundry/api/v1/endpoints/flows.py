"""
Investment-flow API endpoints.

The state machine runs statelessly: the client sends back the snapshot it
was given and receives the next one.

- POST  /investment-flows          — Start a flow for a campaign
- POST  /investment-flows/advance  — One validated forward move
- POST  /investment-flows/back     — Navigate back to a visited step
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fundry.api.deps import get_investment_service, get_optional_user
from fundry.db.session import get_db
from fundry.models.campaign import Campaign
from fundry.models.kyc import KycVerification
from fundry.repositories.campaign_repo import CampaignRepository
from fundry.repositories.kyc_repo import KycRepository
from fundry.schemas.common import ErrorResponse, ValidationErrorResponse
from fundry.schemas.flow import (
    FlowAdvanceRequest,
    FlowBackRequest,
    FlowResponse,
    FlowStartRequest,
)
from fundry.schemas.identity import CurrentUser
from fundry.services.flow_service import FlowService
from fundry.services.investment_service import InvestmentService
from fundry.services.kyc_service import KycService

router = APIRouter()


# ── Dependency injection ──


def _get_flow_service(
    db: AsyncSession = Depends(get_db),
    investments: InvestmentService = Depends(get_investment_service),
) -> FlowService:
    return FlowService(
        campaign_repo=CampaignRepository(Campaign, db),
        investments=investments,
        kyc=KycService(KycRepository(KycVerification, db)),
    )


# ── Endpoints ──


@router.post(
    "",
    response_model=FlowResponse,
    status_code=201,
    summary="Start an investment flow",
    description="The first step is ``investor-details`` when authenticated, otherwise ``auth``.",
    responses={404: {"model": ErrorResponse, "description": "Campaign not found"}},
)
async def start_flow(
    body: FlowStartRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    service: FlowService = Depends(_get_flow_service),
) -> FlowResponse:
    return await service.start(user, body.campaign_id)


@router.post(
    "/advance",
    response_model=FlowResponse,
    summary="Advance the flow one step",
    responses={
        401: {"model": ErrorResponse, "description": "Sign-in required for this step"},
        403: {"model": ErrorResponse, "description": "KYC tier insufficient"},
        422: {"model": ValidationErrorResponse, "description": "Step input rejected"},
        502: {"model": ErrorResponse, "description": "Payment gateway failure"},
    },
)
async def advance_flow(
    body: FlowAdvanceRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    service: FlowService = Depends(_get_flow_service),
) -> FlowResponse:
    return await service.advance(user, body.flow, body.input)


@router.post(
    "/back",
    response_model=FlowResponse,
    summary="Go back to a visited step",
)
async def back_flow(
    body: FlowBackRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    service: FlowService = Depends(_get_flow_service),
) -> FlowResponse:
    return await service.back(user, body.flow, body.target)
