"""
Funding service — the campaign funding read model.

``stats()`` is recomputed from the investments table on every cache miss;
nothing stores a running total.

Caching:
    Results are memoised per campaign id in ``funding_cache``.  The
    investment and campaign services call :meth:`FundingService.invalidate`
    whenever an investment for that campaign is created or changes status,
    or the campaign's goal is edited.
"""

import logging
from uuid import UUID

from fundry.core.cache import funding_cache
from fundry.domain.funding import FundingStats, build_stats
from fundry.models.campaign import Campaign
from fundry.repositories.investment_repo import InvestmentRepository

logger = logging.getLogger(__name__)


class FundingService:
    def __init__(self, invest_repo: InvestmentRepository):
        self._invest_repo = invest_repo

    async def stats(self, campaign: Campaign) -> FundingStats:
        """Total raised, distinct investors and progress for ``campaign``."""
        cached = funding_cache.get(campaign.id)
        if cached is not None:
            logger.debug("Funding stats cache hit for campaign %s", campaign.id)
            return cached

        total, investors = await self._invest_repo.funding_totals(campaign.id)
        stats = build_stats(total, investors, campaign.funding_goal)
        funding_cache.put(campaign.id, stats)
        return stats

    @staticmethod
    def invalidate(campaign_id: UUID) -> None:
        funding_cache.discard(campaign_id)
