"""
Unit tests for the campaign funding aggregator.

The repository test runs the real aggregate query against an in-memory
SQLite database; everything else works on plain values or mocks.
"""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import fundry.db.base  # noqa: F401  (registers every table on the metadata)
from fundry.core.config import OverfundingPolicy
from fundry.core.exceptions import BusinessRuleViolation
from fundry.domain import funding
from fundry.domain.funding import FundingStats
from fundry.models.investment import Investment, InvestmentStatus
from fundry.repositories.investment_repo import InvestmentRepository
from fundry.services.funding_service import FundingService

from .conftest import CAMPAIGN_ID, INVESTOR_ID, OTHER_USER_ID, make_campaign, make_investment


class TestSummarize:
    def test_only_counted_statuses_contribute(self):
        rows = [
            (Decimal("100"), INVESTOR_ID, InvestmentStatus.COMPLETED),
            (Decimal("50"), OTHER_USER_ID, InvestmentStatus.PENDING),
            (Decimal("999"), OTHER_USER_ID, InvestmentStatus.CANCELLED),
        ]
        stats = funding.summarize(rows, Decimal("200"))
        assert stats.total_raised == Decimal("100.00")
        assert stats.investor_count == 1
        assert stats.progress_percent == 50

    def test_investor_counted_once(self):
        rows = [
            (Decimal("100"), INVESTOR_ID, InvestmentStatus.COMMITTED),
            (Decimal("100"), INVESTOR_ID, InvestmentStatus.PAID),
        ]
        stats = funding.summarize(rows, Decimal("1000"))
        assert stats.investor_count == 1
        assert stats.total_raised == Decimal("200.00")

    def test_no_investments(self):
        stats = funding.summarize([], Decimal("1000"))
        assert stats == FundingStats(
            total_raised=Decimal("0.00"), investor_count=0, progress_percent=0
        )


class TestProgress:
    def test_zero_goal_is_zero_progress(self):
        assert funding.progress_percent(Decimal("500"), Decimal("0")) == 0

    def test_missing_goal_is_zero_progress(self):
        assert funding.progress_percent(Decimal("500"), None) == 0

    def test_rounds_half_up(self):
        assert funding.progress_percent(Decimal("1"), Decimal("200")) == 1

    def test_can_exceed_hundred(self):
        assert funding.progress_percent(Decimal("300"), Decimal("200")) == 150


class TestCheckOverfunding:
    stats = FundingStats(total_raised=Decimal("4900.00"), investor_count=3, progress_percent=98)

    def test_within_goal_never_flagged(self):
        for policy in OverfundingPolicy:
            assert not funding.check_overfunding(
                self.stats, Decimal("5000"), Decimal("100"), policy
            )

    def test_reject_names_remaining_capacity(self):
        with pytest.raises(BusinessRuleViolation, match=r"\$100\.00"):
            funding.check_overfunding(
                self.stats, Decimal("5000"), Decimal("100.01"), OverfundingPolicy.REJECT
            )

    def test_reject_when_goal_already_reached(self):
        full = FundingStats(total_raised=Decimal("5000.00"), investor_count=9, progress_percent=100)
        with pytest.raises(BusinessRuleViolation, match="reached its funding goal"):
            funding.check_overfunding(full, Decimal("5000"), Decimal("25"), OverfundingPolicy.REJECT)

    def test_flag_marks_for_review(self):
        assert funding.check_overfunding(
            self.stats, Decimal("5000"), Decimal("500"), OverfundingPolicy.FLAG
        )

    def test_allow_ignores_goal(self):
        assert not funding.check_overfunding(
            self.stats, Decimal("5000"), Decimal("500"), OverfundingPolicy.ALLOW
        )


# ────────────────────────────────────────────────────────────────────────────
# Repository aggregate (real SQL)
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
async def session():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s
    await engine.dispose()


class TestFundingTotalsQuery:
    @pytest.mark.asyncio
    async def test_aggregates_counted_investments(self, session):
        session.add(make_campaign(funding_goal=Decimal("200.00")))
        await session.commit()
        session.add_all(
            [
                make_investment(
                    id=uuid.uuid4(),
                    amount=Decimal("100.00"),
                    platform_fee=Decimal("0.00"),
                    status=InvestmentStatus.COMPLETED,
                ),
                make_investment(
                    id=uuid.uuid4(),
                    investor_id=OTHER_USER_ID,
                    amount=Decimal("50.00"),
                    platform_fee=Decimal("0.00"),
                    status=InvestmentStatus.PENDING,
                ),
                make_investment(
                    id=uuid.uuid4(),
                    investor_id=OTHER_USER_ID,
                    amount=Decimal("999.00"),
                    platform_fee=Decimal("0.00"),
                    status=InvestmentStatus.CANCELLED,
                ),
            ]
        )
        await session.commit()

        repo = InvestmentRepository(Investment, session)
        total, investors = await repo.funding_totals(CAMPAIGN_ID)

        assert total == Decimal("100")
        assert investors == 1
        stats = funding.build_stats(total, investors, Decimal("200"))
        assert stats.progress_percent == 50

    @pytest.mark.asyncio
    async def test_empty_campaign(self, session):
        session.add(make_campaign())
        await session.commit()
        repo = InvestmentRepository(Investment, session)
        assert await repo.funding_totals(CAMPAIGN_ID) == (Decimal("0"), 0)


class TestFundingService:
    @pytest.mark.asyncio
    async def test_stats_are_cached_until_invalidated(self):
        repo = AsyncMock()
        repo.funding_totals.return_value = (Decimal("1500"), 2)
        service = FundingService(repo)
        campaign = make_campaign()

        first = await service.stats(campaign)
        second = await service.stats(campaign)
        assert first == second
        assert first.progress_percent == 30
        repo.funding_totals.assert_awaited_once_with(CAMPAIGN_ID)

        FundingService.invalidate(CAMPAIGN_ID)
        await service.stats(campaign)
        assert repo.funding_totals.await_count == 2
