"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true`` and mocked dependencies so that
no real database or network I/O is needed.  The one exception is the
repository aggregate test, which uses an in-memory SQLite engine.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import List, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from fundry.core.cache import FundingStatsCache  # noqa: E402
from fundry.domain.kyc import KycStatus, KycTier  # noqa: E402
from fundry.models.campaign import Campaign, CampaignStatus  # noqa: E402
from fundry.models.investment import (  # noqa: E402
    Investment,
    InvestmentStatus,
    PaymentMethod,
    PaymentStatus,
)
from fundry.models.kyc import KycVerification  # noqa: E402
from fundry.models.safe_agreement import AgreementStatus, SafeAgreement  # noqa: E402
from fundry.schemas.identity import CurrentUser  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers: create domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

CAMPAIGN_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
INVESTOR_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
INVESTMENT_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
FOUNDER_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
OTHER_USER_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

INVESTOR = CurrentUser(user_id=INVESTOR_ID, email="ada@example.com")
FOUNDER = CurrentUser(user_id=FOUNDER_ID, email="founder@example.com")
OTHER_USER = CurrentUser(user_id=OTHER_USER_ID)


def make_campaign(
    *,
    id: uuid.UUID = CAMPAIGN_ID,
    founder_id: uuid.UUID = FOUNDER_ID,
    title: str = "SolarGrid Co-op",
    company_name: Optional[str] = "SolarGrid Inc.",
    short_pitch: str = "Community-owned solar storage for rural towns.",
    funding_goal: Decimal = Decimal("5000.00"),
    minimum_investment: Decimal = Decimal("25.00"),
    discount_rate: Decimal = Decimal("20.00"),
    valuation_cap: Optional[Decimal] = Decimal("2000000.00"),
    deadline: Optional[datetime] = None,
    status: CampaignStatus = CampaignStatus.ACTIVE,
    use_of_funds: Optional[List[dict]] = None,
    team_structure: str = "solo",
    team_members: Optional[List[dict]] = None,
) -> Campaign:
    """Create a Campaign domain object with sensible test defaults."""
    return Campaign(
        id=id,
        founder_id=founder_id,
        title=title,
        company_name=company_name,
        short_pitch=short_pitch,
        funding_goal=funding_goal,
        minimum_investment=minimum_investment,
        discount_rate=discount_rate,
        valuation_cap=valuation_cap,
        deadline=deadline,
        status=status,
        use_of_funds=use_of_funds,
        team_structure=team_structure,
        team_members=team_members,
        created_at=NOW - timedelta(days=10),
        updated_at=NOW - timedelta(days=10),
    )


def make_investment(
    *,
    id: uuid.UUID = INVESTMENT_ID,
    campaign_id: uuid.UUID = CAMPAIGN_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    amount: Decimal = Decimal("1500.00"),
    platform_fee: Decimal = Decimal("75.00"),
    status: InvestmentStatus = InvestmentStatus.PENDING,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    payment_method: PaymentMethod = PaymentMethod.CARD,
    payment_intent_id: Optional[str] = None,
    agreement_signed: bool = True,
    idempotency_key: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Investment:
    """Create an Investment domain object with sensible test defaults."""
    return Investment(
        id=id,
        campaign_id=campaign_id,
        investor_id=investor_id,
        amount=amount,
        platform_fee=platform_fee,
        total_amount=amount + platform_fee,
        status=status,
        payment_status=payment_status,
        payment_method=payment_method,
        payment_intent_id=payment_intent_id,
        agreement_signed=agreement_signed,
        signed_at=NOW if agreement_signed else None,
        idempotency_key=idempotency_key,
        created_at=created_at or NOW - timedelta(hours=1),
        updated_at=created_at or NOW - timedelta(hours=1),
    )


def make_agreement(
    *,
    investment_id: uuid.UUID = INVESTMENT_ID,
    agreement_id: str = "SAFE-AB12CD34",
    status: AgreementStatus = AgreementStatus.DRAFT,
    document_text: str = "SAFE AGREEMENT\n",
) -> SafeAgreement:
    return SafeAgreement(
        investment_id=investment_id,
        agreement_id=agreement_id,
        terms={"investment_amount": "1500.00"},
        document_text=document_text,
        status=status,
        created_at=NOW,
    )


def make_kyc(
    *,
    user_id: uuid.UUID = INVESTOR_ID,
    status: KycStatus = KycStatus.VERIFIED,
    approved_tier: Optional[KycTier] = KycTier.TIER3,
) -> KycVerification:
    return KycVerification(user_id=user_id, status=status, approved_tier=approved_tier)


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    return session


@pytest.fixture()
def test_cache():
    """A fresh funding-stats cache for test isolation."""
    return FundingStatsCache(ttl=30.0, max_size=100, enabled=True)


@pytest.fixture()
def disabled_cache():
    """A disabled funding-stats cache: nothing is stored."""
    return FundingStatsCache(ttl=30.0, max_size=100, enabled=False)


@pytest.fixture(autouse=True)
def _clear_global_cache():
    """Clear the global funding-stats cache before and after each test."""
    from fundry.core.cache import funding_cache

    funding_cache.clear()
    yield
    funding_cache.clear()


@pytest.fixture(autouse=True)
def _reset_circuit_breakers():
    """A test that trips a breaker must not leak an open circuit."""
    from fundry.core.resilience import BREAKERS

    for breaker in BREAKERS.values():
        breaker.reset()
    yield
