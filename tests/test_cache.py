"""
Unit tests for the funding-stats cache behind the campaign read model.
"""

import time
import uuid

from fundry.core.cache import FundingStatsCache
from fundry.domain.funding import FundingStats

from .conftest import CAMPAIGN_ID

STATS = FundingStats(total_raised=0, investor_count=0, progress_percent=0)


class TestFundingStatsCache:
    def test_put_then_get_keeps_identity(self, test_cache: FundingStatsCache):
        test_cache.put(CAMPAIGN_ID, STATS)
        assert test_cache.get(CAMPAIGN_ID) is STATS

    def test_unknown_campaign_is_a_miss(self, test_cache: FundingStatsCache):
        assert test_cache.get(uuid.uuid4()) is None
        assert test_cache.get_stats()["misses"] == 1

    def test_expired_entry_is_a_miss_and_dropped(self, test_cache: FundingStatsCache):
        test_cache.put(CAMPAIGN_ID, STATS)
        _, stats = test_cache._entries[CAMPAIGN_ID]
        test_cache._entries[CAMPAIGN_ID] = (time.monotonic() - 1, stats)
        assert test_cache.get(CAMPAIGN_ID) is None
        assert len(test_cache) == 0

    def test_least_recently_read_campaign_is_evicted(self):
        small = FundingStatsCache(ttl=30.0, max_size=2)
        first, second, third = (uuid.uuid4() for _ in range(3))
        small.put(first, STATS)
        small.put(second, STATS)
        small.get(first)
        small.put(third, STATS)
        assert small.get(second) is None
        assert small.get(first) is STATS
        assert small.get(third) is STATS

    def test_refreshing_a_campaign_at_capacity_evicts_nothing(self):
        small = FundingStatsCache(ttl=30.0, max_size=1)
        small.put(CAMPAIGN_ID, STATS)
        small.put(CAMPAIGN_ID, STATS)
        assert len(small) == 1

    def test_discard_drops_only_that_campaign(self, test_cache: FundingStatsCache):
        other = uuid.uuid4()
        test_cache.put(CAMPAIGN_ID, STATS)
        test_cache.put(other, STATS)

        assert test_cache.discard(CAMPAIGN_ID) is True
        assert test_cache.get(CAMPAIGN_ID) is None
        assert test_cache.get(other) is STATS
        assert test_cache.get_stats()["invalidations"] == 1

    def test_discard_of_uncached_campaign(self, test_cache: FundingStatsCache):
        assert test_cache.discard(CAMPAIGN_ID) is False
        assert test_cache.get_stats()["invalidations"] == 0

    def test_stats_report_hit_rate(self, test_cache: FundingStatsCache):
        test_cache.put(CAMPAIGN_ID, STATS)
        test_cache.get(CAMPAIGN_ID)
        test_cache.get(uuid.uuid4())
        stats = test_cache.get_stats()
        assert stats["campaigns"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.0%"

    def test_empty_stats(self, test_cache: FundingStatsCache):
        assert test_cache.get_stats()["hit_rate"] == "N/A"


class TestDisabledCache:
    def test_nothing_is_stored(self, disabled_cache: FundingStatsCache):
        disabled_cache.put(CAMPAIGN_ID, STATS)
        assert disabled_cache.get(CAMPAIGN_ID) is None
        assert disabled_cache.discard(CAMPAIGN_ID) is False
        stats = disabled_cache.get_stats()
        assert stats["enabled"] is False
        assert stats["hits"] == 0 and stats["misses"] == 0
