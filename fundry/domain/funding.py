"""
Campaign funding read model.

The aggregate is derived, never stored: total raised is the sum of
``amount`` over investments whose status is in :data:`COUNTED_STATUSES`,
investor count is the number of distinct investors among them, and
progress is ``round(total / goal * 100)`` (0 when there is no goal).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from fundry.core.config import OverfundingPolicy
from fundry.core.exceptions import BusinessRuleViolation
from fundry.domain.terms import format_money, to_money
from fundry.models.investment import InvestmentStatus

COUNTED_STATUSES = frozenset(
    {
        InvestmentStatus.COMMITTED,
        InvestmentStatus.PAID,
        InvestmentStatus.COMPLETED,
    }
)


class FundingStats(BaseModel):
    total_raised: Decimal
    investor_count: int
    progress_percent: int


def progress_percent(total_raised: Decimal, funding_goal: Optional[Decimal]) -> int:
    if not funding_goal:
        return 0
    ratio = Decimal(total_raised) / Decimal(funding_goal) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_stats(
    total_raised: Decimal, investor_count: int, funding_goal: Optional[Decimal]
) -> FundingStats:
    total = to_money(total_raised or 0)
    return FundingStats(
        total_raised=total,
        investor_count=investor_count or 0,
        progress_percent=progress_percent(total, funding_goal),
    )


def summarize(
    investments: Iterable[Tuple[Decimal, UUID, InvestmentStatus]],
    funding_goal: Optional[Decimal],
) -> FundingStats:
    """Aggregate ``(amount, investor_id, status)`` rows held in memory."""
    total = Decimal("0")
    investors = set()
    for amount, investor_id, status in investments:
        if status in COUNTED_STATUSES:
            total += amount
            investors.add(investor_id)
    return build_stats(total, len(investors), funding_goal)


def check_overfunding(
    stats: FundingStats,
    funding_goal: Decimal,
    amount: Decimal,
    policy: OverfundingPolicy,
) -> bool:
    """
    Apply the over-funding policy to a new commitment of ``amount``.

    Returns ``True`` when the commitment should be flagged for founder
    review.  Under ``REJECT`` a commitment that would take the counted
    total past the goal raises :class:`BusinessRuleViolation`.  The stats
    are a point-in-time snapshot; concurrent commitments may still overshoot.
    """
    if policy == OverfundingPolicy.ALLOW or not funding_goal:
        return False
    remaining = to_money(funding_goal) - stats.total_raised
    if to_money(amount) <= remaining:
        return False
    if policy == OverfundingPolicy.REJECT:
        if remaining <= 0:
            raise BusinessRuleViolation("This campaign has reached its funding goal")
        raise BusinessRuleViolation(
            f"This investment would exceed the campaign's funding goal; "
            f"at most {format_money(remaining)} can still be committed"
        )
    return True
