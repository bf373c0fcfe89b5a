"""
Pydantic schemas for Investment and SAFE agreement serialisation.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from fundry.models.investment import InvestmentStatus, PaymentMethod, PaymentStatus
from fundry.models.safe_agreement import AgreementStatus


class InvestmentCreate(BaseModel):
    """
    Schema for ``POST /investments``.

    ``digital_signature`` is the investor's typed full legal name.  The
    range / acknowledgement / signature rules are checked by the service so
    each rejection names its rule.
    """

    campaign_id: UUID
    amount: Decimal = Field(..., gt=0, examples=[1500])
    payment_method: PaymentMethod = PaymentMethod.COMMITMENT
    digital_signature: str = Field(default="", max_length=255, examples=["Ada Lovelace"])
    terms_accepted: bool = False
    risk_disclosure_accepted: bool = False
    submission_id: Optional[str] = Field(
        default=None,
        min_length=8,
        max_length=100,
        description="Idempotency key; repeating a submission returns the original records",
    )


class SignRequest(BaseModel):
    """Schema for ``PUT /investments/{id}/sign``."""

    signature: str = Field(..., max_length=255, examples=["Ada Lovelace"])


class PaymentRequest(BaseModel):
    """Schema for ``POST /investments/{id}/payment``."""

    payment_method: Optional[PaymentMethod] = Field(
        default=None, description="Switch method before retrying (card / bank_transfer)"
    )


class SettlementStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentConfirmation(BaseModel):
    """Gateway callback body for ``POST /investments/{id}/payment-confirmation``."""

    payment_intent_id: str = Field(..., min_length=1, max_length=255)
    status: SettlementStatus


class InvestmentResponse(BaseModel):
    id: UUID
    campaign_id: UUID
    investor_id: UUID
    amount: Decimal
    platform_fee: Decimal
    total_amount: Decimal
    status: InvestmentStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    agreement_signed: bool
    signed_at: Optional[datetime] = None
    needs_founder_review: bool = False
    created_at: datetime

    @field_serializer("amount", "platform_fee", "total_amount")
    @classmethod
    def serialize_decimal_as_number(cls, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class SafeAgreementResponse(BaseModel):
    id: UUID
    investment_id: UUID
    agreement_id: str
    terms: dict
    investor_signature: Optional[str] = None
    founder_signature: Optional[str] = None
    signed_at: Optional[datetime] = None
    status: AgreementStatus

    model_config = ConfigDict(from_attributes=True)


class InvestmentWithAgreement(BaseModel):
    investment: InvestmentResponse
    safe_agreement: Optional[SafeAgreementResponse] = None
