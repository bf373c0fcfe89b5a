"""
SAFE agreement generator.

Renders the agreement body for one investment.  The output depends only on
the arguments (the issue date is passed in, never read from the clock), so
regenerating a document for an audit yields byte-identical text.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol

from fundry.domain.terms import compute_safe_terms, format_money, to_money

PITCH_EXCERPT_CHARS = 240

_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")

_TEMPLATE = """\
SIMPLE AGREEMENT FOR FUTURE EQUITY (SAFE)

Company: {company}
Campaign: {title}
Issue Date: {issue_date}

About the Company:
{excerpt}

THIS CERTIFIES THAT in exchange for the payment by the undersigned investor
(the "Investor") of {amount} (the "Purchase Amount") on or about
{issue_date}, {company} (the "Company") issues to the Investor the right to
certain shares of the Company's capital stock, subject to the terms below.

1. KEY TERMS
   Purchase Amount: {amount}
   Discount Rate:   {discount}%
   Valuation Cap:   {cap}

2. CONVERSION EVENTS
   (a) Equity Financing. If there is a next qualifying equity financing round
       before this instrument terminates, this SAFE converts into shares of
       the financing's preferred stock at the lower of (i) the price per share
       paid by new investors less the Discount Rate, or (ii) the price per
       share implied by the Valuation Cap.
   (b) Liquidity Event. If there is a liquidity event (change of control or
       initial public offering) before this instrument terminates, the
       Investor receives the greater of the Purchase Amount or the amount
       payable on the shares implied by the Valuation Cap.
   (c) Dissolution Event. If there is a dissolution event before this
       instrument terminates, the Investor is entitled to the Purchase
       Amount, ahead of payments to holders of common stock.

3. INVESTOR RIGHTS
   (a) Discount Conversion. The Discount Rate above applies on conversion in
       an equity financing.
   (b) Pro-Rata Rights. The Investor may purchase its pro-rata share of the
       securities offered in the equity financing that converts this SAFE.
   (c) Information Rights. The Company will provide the Investor with annual
       financial statements and material updates on the Company's progress.

4. TERMINATION
   This instrument terminates upon the issuance of shares to the Investor
   under Section 2(a), or the payment of amounts due under Section 2(b) or
   2(c).

This is a legally binding agreement. Investing in early-stage companies is
risky and may result in the total loss of the Purchase Amount. Please
consult legal counsel before signing.
"""


class SafeCampaign(Protocol):
    """The campaign attributes the generator reads."""

    title: str
    short_pitch: str
    company_name: Optional[str]
    discount_rate: Decimal
    valuation_cap: Optional[Decimal]


def company_display_name(campaign: SafeCampaign) -> str:
    return (campaign.company_name or "").strip() or campaign.title.strip()


def pitch_excerpt(pitch: str, limit: int = PITCH_EXCERPT_CHARS) -> str:
    """First ``limit`` characters of the pitch, cut on a word boundary."""
    text = " ".join(pitch.split())
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0]
    return cut.rstrip(",.;:") + "..."


def generate(campaign: SafeCampaign, investment_amount: Decimal, issue_date: date) -> str:
    """Render the SAFE document text for ``investment_amount`` in ``campaign``."""
    terms = compute_safe_terms(
        investment_amount,
        discount_rate=campaign.discount_rate,
        valuation_cap=campaign.valuation_cap,
        issue_date=issue_date,
    )
    return _TEMPLATE.format(
        company=company_display_name(campaign),
        title=campaign.title.strip(),
        issue_date=terms.issue_date.isoformat(),
        excerpt=pitch_excerpt(campaign.short_pitch),
        amount=format_money(terms.investment_amount),
        discount=f"{terms.discount_rate.normalize():f}",
        cap=format_money(terms.valuation_cap),
    )


def export_filename(campaign: SafeCampaign, investment_amount: Decimal) -> str:
    """``SAFE_Agreement_<CompanyName>_<Amount>.txt`` with a filesystem-safe name."""
    company = _FILENAME_UNSAFE.sub("_", company_display_name(campaign)).strip("_")
    return f"SAFE_Agreement_{company or 'Company'}_{to_money(investment_amount)}.txt"
