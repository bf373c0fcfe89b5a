"""
KYC tier gate.

A campaign's funding goal decides how strong the identity verification of
its investors must be:

    goal <  $1,000             → tier1
    $1,000 <= goal <= $50,000  → tier2
    goal >  $50,000            → tier3

Review and approval happen in an external workflow.  This module only reads
the outcome (status + approved tier) and refuses to let an investment
proceed when it falls short.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from fundry.core.exceptions import AuthorizationError

TIER2_FLOOR = Decimal("1000")
TIER3_FLOOR = Decimal("50000")


class KycTier(str, Enum):
    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


class KycStatus(str, Enum):
    NOT_STARTED = "not_started"
    UNDER_REVIEW = "under_review"
    VERIFIED = "verified"
    REJECTED = "rejected"


_TIER_RANK = {KycTier.TIER1: 1, KycTier.TIER2: 2, KycTier.TIER3: 3}

RECOMMENDED_DOCUMENTS = {
    KycTier.TIER1: ["Government ID"],
    KycTier.TIER2: ["Government ID", "Utility bill"],
    KycTier.TIER3: [
        "Government ID",
        "Utility bill",
        "Bank statement",
        "Professional references",
    ],
}


class KycRequirement(BaseModel):
    """What a campaign demands and whether a given investor meets it."""

    required_tier: KycTier
    recommended_documents: List[str]
    investor_status: KycStatus = KycStatus.NOT_STARTED
    investor_tier: Optional[KycTier] = None
    satisfied: bool = False


def required_tier(funding_goal: Decimal) -> KycTier:
    if funding_goal < TIER2_FLOOR:
        return KycTier.TIER1
    if funding_goal <= TIER3_FLOOR:
        return KycTier.TIER2
    return KycTier.TIER3


def evaluate(
    funding_goal: Decimal,
    status: Optional[KycStatus],
    approved_tier: Optional[KycTier],
) -> KycRequirement:
    """Compare an investor's verification outcome against a campaign's tier."""
    tier = required_tier(funding_goal)
    status = status or KycStatus.NOT_STARTED
    satisfied = (
        status == KycStatus.VERIFIED
        and approved_tier is not None
        and approved_tier.rank >= tier.rank
    )
    return KycRequirement(
        required_tier=tier,
        recommended_documents=RECOMMENDED_DOCUMENTS[tier],
        investor_status=status,
        investor_tier=approved_tier,
        satisfied=satisfied,
    )


def enforce(requirement: KycRequirement) -> None:
    """Raise :class:`AuthorizationError` unless ``requirement`` is satisfied."""
    if requirement.satisfied:
        return
    documents = ", ".join(requirement.recommended_documents)
    if requirement.investor_status == KycStatus.VERIFIED:
        reason = (
            f"your verification is approved at {requirement.investor_tier.value}"
            if requirement.investor_tier
            else "your verification has no approved tier"
        )
    else:
        reason = f"your verification status is '{requirement.investor_status.value}'"
    raise AuthorizationError(
        f"This campaign requires KYC {requirement.required_tier.value} "
        f"verification, but {reason}. Recommended documents: {documents}",
        details=requirement.model_dump(mode="json"),
    )
