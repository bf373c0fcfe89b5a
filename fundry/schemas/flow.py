"""
Pydantic schemas for the investment-flow endpoints.

The flow snapshot itself (:class:`~fundry.domain.investment_flow.InvestmentFlow`)
travels verbatim between client and server.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fundry.domain.investment_flow import InvestmentFlow, InvestmentStep, StepInput
from fundry.domain.kyc import KycRequirement
from fundry.schemas.investment import InvestmentResponse, SafeAgreementResponse


class FlowStartRequest(BaseModel):
    campaign_id: UUID


class FlowAdvanceRequest(BaseModel):
    flow: InvestmentFlow
    input: StepInput = Field(default_factory=StepInput)


class FlowBackRequest(BaseModel):
    flow: InvestmentFlow
    target: InvestmentStep


class FlowResponse(BaseModel):
    flow: InvestmentFlow
    cooling_off_notice: str
    kyc: Optional[KycRequirement] = None
    investment: Optional[InvestmentResponse] = None
    safe_agreement: Optional[SafeAgreementResponse] = None
