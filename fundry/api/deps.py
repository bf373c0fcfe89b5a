"""
Shared FastAPI dependencies.

Identity is forwarded by the authenticating gateway in front of this
service as ``X-User-ID`` (and optionally ``X-User-Email``); these
dependencies turn the headers into an explicit :class:`CurrentUser`.
"""

import secrets
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from fundry.core.config import settings
from fundry.core.exceptions import AuthenticationRequired
from fundry.db.session import get_db
from fundry.integrations.payments import PaymentGateway, get_payment_gateway
from fundry.models.campaign import Campaign
from fundry.models.investment import Investment
from fundry.models.kyc import KycVerification
from fundry.models.safe_agreement import SafeAgreement
from fundry.repositories.campaign_repo import CampaignRepository
from fundry.repositories.investment_repo import InvestmentRepository
from fundry.repositories.kyc_repo import KycRepository
from fundry.repositories.safe_agreement_repo import SafeAgreementRepository
from fundry.schemas.identity import CurrentUser
from fundry.services.funding_service import FundingService
from fundry.services.investment_service import InvestmentService
from fundry.services.kyc_service import KycService

# ── Identity ──


def get_optional_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> Optional[CurrentUser]:
    """The caller's identity, or ``None`` for anonymous requests."""
    if not x_user_id:
        return None
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise AuthenticationRequired("Invalid X-User-ID header")
    return CurrentUser(user_id=user_id, email=x_user_email)


def get_current_user(
    user: Optional[CurrentUser] = Depends(get_optional_user),
) -> CurrentUser:
    if user is None:
        raise AuthenticationRequired()
    return user


def verify_webhook_secret(x_webhook_secret: Optional[str] = Header(default=None)) -> None:
    """Authenticate the payment gateway's settlement callback."""
    expected = settings.PAYMENT_WEBHOOK_SECRET
    if not expected or not x_webhook_secret:
        raise AuthenticationRequired("Invalid webhook credentials")
    if not secrets.compare_digest(x_webhook_secret, expected):
        raise AuthenticationRequired("Invalid webhook credentials")


# ── Service wiring ──


def get_investment_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> InvestmentService:
    """Build an InvestmentService wired to the current request's DB session."""
    invest_repo = InvestmentRepository(Investment, db)
    return InvestmentService(
        invest_repo=invest_repo,
        campaign_repo=CampaignRepository(Campaign, db),
        agreement_repo=SafeAgreementRepository(SafeAgreement, db),
        funding=FundingService(invest_repo),
        kyc=KycService(KycRepository(KycVerification, db)),
        gateway=gateway,
    )
