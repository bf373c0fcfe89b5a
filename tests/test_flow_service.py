"""
Unit tests for FlowService: state machine moves paired with their side
effects on InvestmentService.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from fundry.core.exceptions import (
    AuthenticationRequired,
    BusinessRuleViolation,
    ExternalServiceError,
)
from fundry.domain.investment_flow import InvestmentFlow, InvestmentStep, StepInput
from fundry.domain.kyc import KycTier
from fundry.models.campaign import CampaignStatus
from fundry.models.investment import InvestmentStatus, PaymentMethod
from fundry.services.flow_service import FlowService
from fundry.services.kyc_service import KycService

from .conftest import (
    CAMPAIGN_ID,
    INVESTMENT_ID,
    INVESTOR,
    make_agreement,
    make_campaign,
    make_investment,
    make_kyc,
)


@pytest.fixture()
def campaign_repo():
    repo = AsyncMock()
    repo.get.return_value = make_campaign()
    return repo


@pytest.fixture()
def investments():
    svc = AsyncMock()
    svc.create_investment.return_value = (make_investment(), make_agreement())
    svc.collect_payment.return_value = make_investment(status=InvestmentStatus.PAID)
    return svc


@pytest.fixture()
def kyc_repo():
    repo = AsyncMock()
    repo.get_by_user.return_value = make_kyc()
    return repo


@pytest.fixture()
def service(campaign_repo, investments, kyc_repo):
    return FlowService(campaign_repo, investments, KycService(kyc_repo))


def _at_signature(method: PaymentMethod = PaymentMethod.CARD) -> InvestmentFlow:
    return InvestmentFlow(
        campaign_id=CAMPAIGN_ID,
        submission_id="submission-0001",
        step=InvestmentStep.SIGNATURE,
        visited=[
            InvestmentStep.INVESTOR_DETAILS,
            InvestmentStep.AMOUNT,
            InvestmentStep.SAFE_REVIEW,
            InvestmentStep.TERMS,
            InvestmentStep.SIGNATURE,
        ],
        investor_details={
            "full_name": "Ada Lovelace",
            "email": "ada@example.com",
            "phone": "555-0100",
            "address": "1 Analytical Way",
            "city": "London",
            "state": "LDN",
            "zip_code": "SW1",
        },
        amount=Decimal("1500.00"),
        payment_method=method,
        terms_accepted=True,
        risk_disclosure_accepted=True,
    )


class TestStart:
    @pytest.mark.asyncio
    async def test_signed_in_investor_starts_at_details(self, service):
        resp = await service.start(INVESTOR, CAMPAIGN_ID)
        assert resp.flow.step == InvestmentStep.INVESTOR_DETAILS
        assert len(resp.flow.submission_id) >= 8
        assert "48 hours" in resp.cooling_off_notice
        assert resp.kyc.required_tier == KycTier.TIER2
        assert resp.kyc.satisfied

    @pytest.mark.asyncio
    async def test_anonymous_starts_at_auth(self, service):
        resp = await service.start(None, CAMPAIGN_ID)
        assert resp.flow.step == InvestmentStep.AUTH
        assert not resp.kyc.satisfied

    @pytest.mark.asyncio
    async def test_inactive_campaign_refused(self, service, campaign_repo):
        campaign_repo.get.return_value = make_campaign(status=CampaignStatus.PAUSED)
        with pytest.raises(BusinessRuleViolation, match="not accepting"):
            await service.start(INVESTOR, CAMPAIGN_ID)


class TestAdvance:
    @pytest.mark.asyncio
    async def test_plain_step_has_no_side_effects(self, service, investments):
        flow = InvestmentFlow.start(CAMPAIGN_ID, "submission-0001", authenticated=True)
        flow = flow.model_copy(
            update={"step": InvestmentStep.SAFE_REVIEW, "visited": [InvestmentStep.SAFE_REVIEW]}
        )
        resp = await service.advance(INVESTOR, flow, StepInput())
        assert resp.flow.step == InvestmentStep.TERMS
        investments.create_investment.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signature_creates_investment_with_submission_key(self, service, investments):
        resp = await service.advance(INVESTOR, _at_signature(), StepInput(signature="Ada Lovelace"))

        command = investments.create_investment.await_args.args[1]
        assert command.submission_id == "submission-0001"
        assert command.digital_signature == "Ada Lovelace"
        assert command.amount == Decimal("1500.00")
        assert resp.flow.step == InvestmentStep.PAYMENT
        assert resp.flow.investment_id == INVESTMENT_ID
        assert resp.flow.agreement_id == "SAFE-AB12CD34"
        assert resp.safe_agreement.agreement_id == "SAFE-AB12CD34"

    @pytest.mark.asyncio
    async def test_commitment_goes_straight_to_confirmation(self, service):
        resp = await service.advance(
            INVESTOR, _at_signature(PaymentMethod.COMMITMENT), StepInput(signature="Ada")
        )
        assert resp.flow.step == InvestmentStep.CONFIRMATION

    @pytest.mark.asyncio
    async def test_failed_side_effect_leaves_flow_in_place(self, service, investments):
        flow = _at_signature().model_copy(
            update={"step": InvestmentStep.PAYMENT, "investment_id": INVESTMENT_ID}
        )
        investments.collect_payment.side_effect = ExternalServiceError(
            "payment-gateway", "Payment failed: card_declined"
        )
        with pytest.raises(ExternalServiceError):
            await service.advance(INVESTOR, flow, StepInput())
        assert flow.step == InvestmentStep.PAYMENT

    @pytest.mark.asyncio
    async def test_payment_step_collects_for_recorded_investment(self, service, investments):
        flow = _at_signature().model_copy(
            update={"step": InvestmentStep.PAYMENT, "investment_id": INVESTMENT_ID}
        )
        resp = await service.advance(INVESTOR, flow, StepInput())
        investments.collect_payment.assert_awaited_once_with(
            INVESTOR, INVESTMENT_ID, PaymentMethod.CARD
        )
        assert resp.flow.is_complete
        assert resp.investment.status == InvestmentStatus.PAID

    @pytest.mark.asyncio
    async def test_side_effects_need_a_signed_in_investor(self, service, investments):
        with pytest.raises(AuthenticationRequired):
            await service.advance(None, _at_signature(), StepInput(signature="Ada"))
        investments.create_investment.assert_not_awaited()


class TestBack:
    @pytest.mark.asyncio
    async def test_back_to_amount(self, service):
        resp = await service.back(INVESTOR, _at_signature(), InvestmentStep.AMOUNT)
        assert resp.flow.step == InvestmentStep.AMOUNT
        assert resp.flow.amount == Decimal("1500.00")
