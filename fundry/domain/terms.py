"""
Terms calculator — platform fee, total charge and SAFE economic terms.

The platform fee is a **step function**, not a flat percentage::

    fee(a) = 0                       if a <= threshold
    fee(a) = round(rate * a, 2)      if a >  threshold

An amount sitting exactly on the threshold is fee-free.  Callers must not
assume linearity across the threshold: ``fee(1000) == 0`` but
``fee(1000.01) == 50.00``.

All arithmetic uses :class:`~decimal.Decimal` and rounds half-up to the
cent, matching how the amounts are stored (``NUMERIC(12, 2)``).
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from fundry.core.config import settings
from fundry.core.exceptions import ValidationError

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce ``value`` to a Decimal rounded half-up to whole cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    """``Decimal("1500")`` → ``"$1,500.00"``."""
    return f"${to_money(value):,.2f}"


def compute_fee(
    amount: Decimal,
    rate: Optional[Decimal] = None,
    threshold: Optional[Decimal] = None,
) -> Decimal:
    """Platform fee for ``amount``; zero unless strictly above the threshold."""
    rate = settings.PLATFORM_FEE_RATE if rate is None else rate
    threshold = settings.PLATFORM_FEE_THRESHOLD if threshold is None else threshold
    amount = to_money(amount)
    if amount > threshold:
        return to_money(amount * rate)
    return to_money(0)


def compute_total(
    amount: Decimal,
    rate: Optional[Decimal] = None,
    threshold: Optional[Decimal] = None,
) -> Decimal:
    """Total charged to the investor: ``amount + fee(amount)``."""
    return to_money(amount) + compute_fee(amount, rate=rate, threshold=threshold)


def check_amount_bounds(
    amount: Decimal,
    minimum: Decimal,
    maximum: Optional[Decimal] = None,
) -> Decimal:
    """
    Validate ``minimum <= amount <= maximum`` and return the rounded amount.

    ``maximum`` is the platform-wide per-investment ceiling (not the
    campaign's funding goal) and defaults to ``PLATFORM_MAX_INVESTMENT``.
    Raises :class:`ValidationError` naming the violated bound.
    """
    maximum = settings.PLATFORM_MAX_INVESTMENT if maximum is None else maximum
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Investment amount must be positive", field="amount")
    if amount < minimum:
        raise ValidationError(
            f"Minimum investment is {format_money(minimum)}", field="amount"
        )
    if amount > maximum:
        raise ValidationError(
            f"Maximum investment is {format_money(maximum)}", field="amount"
        )
    return amount


class SafeTerms(BaseModel):
    """Snapshot of the economic terms a SAFE was issued under."""

    investment_amount: Decimal
    discount_rate: Decimal
    valuation_cap: Decimal
    issue_date: date

    model_config = ConfigDict(frozen=True)

    def as_snapshot(self) -> dict:
        """JSON-safe dict stored on ``safe_agreements.terms``."""
        return {
            "investment_amount": str(self.investment_amount),
            "discount_rate": str(self.discount_rate),
            "valuation_cap": str(self.valuation_cap),
            "issue_date": self.issue_date.isoformat(),
        }


def compute_safe_terms(
    amount: Decimal,
    discount_rate: Decimal,
    valuation_cap: Optional[Decimal],
    issue_date: date,
) -> SafeTerms:
    """
    Economic terms for a SAFE purchase.

    A campaign without a valuation cap is issued at ``DEFAULT_VALUATION_CAP``.
    """
    cap = valuation_cap if valuation_cap else settings.DEFAULT_VALUATION_CAP
    return SafeTerms(
        investment_amount=to_money(amount),
        discount_rate=to_money(discount_rate),
        valuation_cap=to_money(cap),
        issue_date=issue_date,
    )
