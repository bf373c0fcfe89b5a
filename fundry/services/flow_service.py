"""
Flow service — runs the investment state machine over HTTP.

The flow snapshot is held by the client and sent back on every call; the
service plans the move with :func:`fundry.domain.investment_flow.plan`,
performs the move's side effect through :class:`InvestmentService`, and
only then commits the move with ``apply``.  A failed side effect leaves
the snapshot on its current step.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fundry.core.config import settings
from fundry.core.exceptions import AuthenticationRequired, BusinessRuleViolation, NotFoundException
from fundry.domain import investment_flow as fsm
from fundry.domain.investment_flow import (
    FlowContext,
    FlowEffect,
    InvestmentFlow,
    InvestmentStep,
    StepInput,
)
from fundry.models.campaign import Campaign
from fundry.repositories.campaign_repo import CampaignRepository
from fundry.schemas.flow import FlowResponse
from fundry.schemas.identity import CurrentUser
from fundry.schemas.investment import (
    InvestmentCreate,
    InvestmentResponse,
    SafeAgreementResponse,
)
from fundry.services.investment_service import InvestmentService
from fundry.services.kyc_service import KycService

logger = logging.getLogger(__name__)


def new_submission_id() -> str:
    return secrets.token_urlsafe(16)


def cooling_off_notice() -> str:
    return fsm.COOLING_OFF_NOTICE.format(hours=settings.COOLING_OFF_HOURS)


class FlowService:
    def __init__(
        self,
        campaign_repo: CampaignRepository,
        investments: InvestmentService,
        kyc: KycService,
    ):
        self._campaign_repo = campaign_repo
        self._investments = investments
        self._kyc = kyc

    async def start(self, user: Optional[CurrentUser], campaign_id: UUID) -> FlowResponse:
        campaign = await self._load_campaign(campaign_id)
        if not campaign.accepts_investments(datetime.now(timezone.utc)):
            raise BusinessRuleViolation(
                f"Campaign '{campaign.title}' is not accepting investments"
            )
        flow = InvestmentFlow.start(campaign.id, new_submission_id(), authenticated=user is not None)
        return await self._respond(flow, campaign, user)

    async def advance(
        self, user: Optional[CurrentUser], flow: InvestmentFlow, data: StepInput
    ) -> FlowResponse:
        """Validate and commit one forward move, running its side effect."""
        campaign = await self._load_campaign(flow.campaign_id)
        ctx = FlowContext(
            authenticated=user is not None,
            minimum_investment=campaign.minimum_investment,
            maximum_investment=settings.PLATFORM_MAX_INVESTMENT,
        )
        transition = fsm.plan(flow, data, ctx)

        investment = agreement = None
        if transition.effect != FlowEffect.NONE and user is None:
            raise AuthenticationRequired()

        if transition.effect == FlowEffect.CREATE_INVESTMENT:
            planned = transition.flow
            command = InvestmentCreate(
                campaign_id=planned.campaign_id,
                amount=planned.amount,
                payment_method=planned.payment_method,
                digital_signature=planned.signature,
                terms_accepted=planned.terms_accepted,
                risk_disclosure_accepted=planned.risk_disclosure_accepted,
                submission_id=planned.submission_id,
            )
            investment, agreement = await self._investments.create_investment(user, command)
            transition = transition.model_copy(
                update={
                    "flow": planned.model_copy(
                        update={
                            "investment_id": investment.id,
                            "agreement_id": agreement.agreement_id if agreement else None,
                        }
                    )
                }
            )
        elif transition.effect == FlowEffect.COLLECT_PAYMENT:
            investment = await self._investments.collect_payment(
                user, transition.flow.investment_id, transition.flow.payment_method
            )

        advanced = fsm.apply(transition)
        logger.info(
            "Flow %s: %s → %s",
            flow.submission_id,
            transition.source.value,
            transition.target.value,
            extra={"campaign_id": str(campaign.id)},
        )
        return await self._respond(advanced, campaign, user, investment, agreement)

    async def back(
        self, user: Optional[CurrentUser], flow: InvestmentFlow, target: InvestmentStep
    ) -> FlowResponse:
        campaign = await self._load_campaign(flow.campaign_id)
        return await self._respond(fsm.go_back(flow, target), campaign, user)

    # ── Helpers ──

    async def _load_campaign(self, campaign_id: UUID) -> Campaign:
        campaign = await self._campaign_repo.get(campaign_id)
        if not campaign:
            raise NotFoundException("Campaign", campaign_id)
        return campaign

    async def _respond(
        self,
        flow: InvestmentFlow,
        campaign: Campaign,
        user: Optional[CurrentUser],
        investment=None,
        agreement=None,
    ) -> FlowResponse:
        requirement = await self._kyc.requirement_for(campaign, user.user_id if user else None)
        return FlowResponse(
            flow=flow,
            cooling_off_notice=cooling_off_notice(),
            kyc=requirement,
            investment=InvestmentResponse.model_validate(investment) if investment else None,
            safe_agreement=SafeAgreementResponse.model_validate(agreement) if agreement else None,
        )
