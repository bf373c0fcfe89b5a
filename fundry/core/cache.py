"""
In-memory TTL cache for the campaign funding read model.

``FundingService.stats()`` memoises one :class:`FundingStats` per campaign
id, and every write that changes an investment's amount or status for that
campaign drops exactly that campaign's entry.  The cache only ever holds a
copy of what the aggregate query returned; the investments table stays the
single source of truth.

Entries also expire after ``ttl`` seconds, bounding staleness when a write
happens on another replica.  At ``max_size`` the least recently read
campaign is evicted, so the campaigns people are browsing stay warm.
"""

import logging
import time
from collections import OrderedDict
from typing import Optional, Tuple
from uuid import UUID

from fundry.core.config import settings
from fundry.domain.funding import FundingStats

logger = logging.getLogger(__name__)


class FundingStatsCache:
    """
    Per-campaign funding stats with TTL expiry and LRU eviction.

    Parameters
    ----------
    ttl : float
        Seconds a campaign's stats stay valid after being stored.
    max_size : int
        Number of campaigns kept.  When exceeded, the least recently read
        campaign is evicted.
    enabled : bool
        When False, nothing is stored and every lookup misses.
    """

    def __init__(self, ttl: float = 30.0, max_size: int = 1000, enabled: bool = True):
        # campaign id -> (monotonic expiry, stats)
        self._entries: "OrderedDict[UUID, Tuple[float, FundingStats]]" = OrderedDict()
        self._ttl = ttl
        self._max_size = max_size
        self._enabled = enabled
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, campaign_id: UUID) -> Optional[FundingStats]:
        """Cached stats for ``campaign_id``, or ``None`` on miss / expiry."""
        if not self._enabled:
            return None

        entry = self._entries.get(campaign_id)
        if entry is None:
            self._misses += 1
            return None

        expires_at, stats = entry
        if time.monotonic() >= expires_at:
            del self._entries[campaign_id]
            self._misses += 1
            logger.debug("Funding stats for campaign %s expired", campaign_id)
            return None

        self._entries.move_to_end(campaign_id)
        self._hits += 1
        return stats

    def put(self, campaign_id: UUID, stats: FundingStats) -> None:
        if not self._enabled:
            return

        self._entries[campaign_id] = (time.monotonic() + self._ttl, stats)
        self._entries.move_to_end(campaign_id)
        while len(self._entries) > self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Funding stats for campaign %s evicted (max_size)", evicted)

    def discard(self, campaign_id: UUID) -> bool:
        """Drop one campaign's stats; ``True`` if anything was cached."""
        if self._entries.pop(campaign_id, None) is None:
            return False
        self._invalidations += 1
        logger.debug("Funding stats for campaign %s invalidated", campaign_id)
        return True

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict:
        """Return cache statistics for the health-check endpoint."""
        total = self._hits + self._misses
        return {
            "enabled": self._enabled,
            "campaigns": len(self._entries),
            "max_size": self._max_size,
            "ttl_seconds": self._ttl,
            "hits": self._hits,
            "misses": self._misses,
            "invalidations": self._invalidations,
            "hit_rate": f"{(self._hits / total * 100):.1f}%" if total > 0 else "N/A",
        }


# ── Global cache instance ──
funding_cache = FundingStatsCache(
    ttl=settings.CACHE_TTL,
    max_size=settings.CACHE_MAX_SIZE,
    enabled=settings.CACHE_ENABLED,
)
