"""
Investment state machine.

The ordered steps an investor walks through::

    auth → investor-details → amount → safe-review → terms → signature
         → payment → confirmation

``auth`` is skipped when the caller is already authenticated, and
``signature`` jumps straight to ``confirmation`` for the ``commitment``
payment method (nothing is charged today).

Forward moves are looked up in :data:`TRANSITIONS`, keyed by
``(current step, next step)``.  A move that is not in the table is refused
outright; a move that is in the table runs its guard, which either raises
a :class:`ValidationError` naming the missing/invalid input or returns the
updated flow.  Some moves carry a side effect (:class:`FlowEffect`) that
the calling service must perform *before* committing the move with
:func:`apply`; a failed effect leaves the flow where it was.

Backward moves are plain navigation to an already visited step and never
touch persisted state.  ``confirmation`` is terminal.

The flow itself is a value object the client holds between requests; the
server keeps no session.  Because the snapshot comes back from the client,
the guard on ``signature`` re-checks every earlier input before records are
created.
"""

from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, Field

from fundry.core.exceptions import BusinessRuleViolation, ValidationError
from fundry.domain.terms import check_amount_bounds, compute_fee, compute_total
from fundry.models.investment import PaymentMethod

COOLING_OFF_NOTICE = (
    "You may cancel this investment within {hours} hours of committing "
    "without penalty."
)


class InvestmentStep(str, Enum):
    AUTH = "auth"
    INVESTOR_DETAILS = "investor-details"
    AMOUNT = "amount"
    SAFE_REVIEW = "safe-review"
    TERMS = "terms"
    SIGNATURE = "signature"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


STEP_ORDER: List[InvestmentStep] = list(InvestmentStep)


class FlowEffect(str, Enum):
    """Side effect the service must perform before a move is committed."""

    NONE = "none"
    CREATE_INVESTMENT = "create_investment"
    COLLECT_PAYMENT = "collect_payment"


REQUIRED_INVESTOR_FIELDS = (
    "full_name",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
)


class InvestorDetails(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""

    def missing_fields(self) -> List[str]:
        return [f for f in REQUIRED_INVESTOR_FIELDS if not getattr(self, f).strip()]


class StepInput(BaseModel):
    """Whatever the investor submitted on the current step."""

    investor_details: Optional[InvestorDetails] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    terms_accepted: bool = False
    risk_disclosure_accepted: bool = False
    signature: Optional[str] = Field(default=None, max_length=255)


class FlowContext(BaseModel):
    """Request-scoped facts the guards need but the client must not supply."""

    authenticated: bool
    minimum_investment: Decimal
    maximum_investment: Decimal


class InvestmentFlow(BaseModel):
    """Client-held snapshot of one investor's progress through the steps."""

    campaign_id: UUID
    submission_id: str = Field(..., min_length=8, max_length=100)
    step: InvestmentStep
    visited: List[InvestmentStep] = Field(default_factory=list)
    investor_details: Optional[InvestorDetails] = None
    amount: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    terms_accepted: bool = False
    risk_disclosure_accepted: bool = False
    signature: Optional[str] = Field(default=None, max_length=255)
    investment_id: Optional[UUID] = None
    agreement_id: Optional[str] = None

    @classmethod
    def start(
        cls, campaign_id: UUID, submission_id: str, authenticated: bool
    ) -> "InvestmentFlow":
        first = InvestmentStep.INVESTOR_DETAILS if authenticated else InvestmentStep.AUTH
        return cls(
            campaign_id=campaign_id,
            submission_id=submission_id,
            step=first,
            visited=[first],
        )

    @property
    def is_complete(self) -> bool:
        return self.step == InvestmentStep.CONFIRMATION


class Transition(BaseModel):
    """A validated, not yet committed, forward move."""

    source: InvestmentStep
    target: InvestmentStep
    effect: FlowEffect
    flow: InvestmentFlow


# ────────────────────────────────────────────────────────────────────────────
# Guards
# ────────────────────────────────────────────────────────────────────────────

_Guard = Callable[[InvestmentFlow, StepInput, FlowContext], InvestmentFlow]


def _require_authenticated(
    flow: InvestmentFlow, data: StepInput, ctx: FlowContext
) -> InvestmentFlow:
    if not ctx.authenticated:
        raise ValidationError("Please sign in to continue", field="auth")
    return flow


def _check_investor_details(details: Optional[InvestorDetails]) -> InvestorDetails:
    if details is None:
        raise ValidationError("Investor details are required", field="investor_details")
    missing = details.missing_fields()
    if missing:
        raise ValidationError(
            f"Missing required investor field(s): {', '.join(missing)}",
            field=f"investor_details.{missing[0]}",
        )
    return details


def _require_investor_details(
    flow: InvestmentFlow, data: StepInput, ctx: FlowContext
) -> InvestmentFlow:
    details = _check_investor_details(data.investor_details or flow.investor_details)
    return flow.model_copy(update={"investor_details": details})


def _check_amount(amount: Optional[Decimal], ctx: FlowContext) -> Decimal:
    if amount is None:
        raise ValidationError("Investment amount is required", field="amount")
    return check_amount_bounds(amount, ctx.minimum_investment, ctx.maximum_investment)


def _require_amount_in_bounds(
    flow: InvestmentFlow, data: StepInput, ctx: FlowContext
) -> InvestmentFlow:
    amount = _check_amount(data.amount if data.amount is not None else flow.amount, ctx)
    return flow.model_copy(
        update={
            "amount": amount,
            "platform_fee": compute_fee(amount),
            "total_amount": compute_total(amount),
            "payment_method": data.payment_method or flow.payment_method,
        }
    )


def _review_seen(
    flow: InvestmentFlow, data: StepInput, ctx: FlowContext
) -> InvestmentFlow:
    return flow


def _check_acknowledgements(terms_accepted: bool, risk_accepted: bool) -> None:
    if not terms_accepted:
        raise ValidationError("You must accept the terms of service", field="terms_accepted")
    if not risk_accepted:
        raise ValidationError(
            "You must acknowledge the risk disclosure", field="risk_disclosure_accepted"
        )


def _require_acknowledgements(
    flow: InvestmentFlow, data: StepInput, ctx: FlowContext
) -> InvestmentFlow:
    _check_acknowledgements(data.terms_accepted, data.risk_disclosure_accepted)
    return flow.model_copy(update={"terms_accepted": True, "risk_disclosure_accepted": True})


def _require_signature(
    flow: InvestmentFlow, data: StepInput, ctx: FlowContext
) -> InvestmentFlow:
    signature = (data.signature or "").strip()
    if not signature:
        raise ValidationError("Signature required", field="signature")
    payment_method = data.payment_method or flow.payment_method
    if payment_method is None:
        raise ValidationError("Please choose a payment method", field="payment_method")

    # The snapshot came back from the client: re-check everything the
    # earlier steps accepted before anything is persisted.
    _check_investor_details(flow.investor_details)
    amount = _check_amount(flow.amount, ctx)
    _check_acknowledgements(flow.terms_accepted, flow.risk_disclosure_accepted)

    return flow.model_copy(
        update={
            "signature": signature,
            "payment_method": payment_method,
            "amount": amount,
            "platform_fee": compute_fee(amount),
            "total_amount": compute_total(amount),
        }
    )


def _require_recorded_investment(
    flow: InvestmentFlow, data: StepInput, ctx: FlowContext
) -> InvestmentFlow:
    if flow.investment_id is None:
        raise BusinessRuleViolation("No investment has been recorded for this flow yet")
    if flow.payment_method == PaymentMethod.COMMITMENT:
        raise BusinessRuleViolation("Commitments are not charged at this time")
    return flow


_S = InvestmentStep

TRANSITIONS: Dict[Tuple[InvestmentStep, InvestmentStep], Tuple[_Guard, FlowEffect]] = {
    (_S.AUTH, _S.INVESTOR_DETAILS): (_require_authenticated, FlowEffect.NONE),
    (_S.INVESTOR_DETAILS, _S.AMOUNT): (_require_investor_details, FlowEffect.NONE),
    (_S.AMOUNT, _S.SAFE_REVIEW): (_require_amount_in_bounds, FlowEffect.NONE),
    (_S.SAFE_REVIEW, _S.TERMS): (_review_seen, FlowEffect.NONE),
    (_S.TERMS, _S.SIGNATURE): (_require_acknowledgements, FlowEffect.NONE),
    (_S.SIGNATURE, _S.PAYMENT): (_require_signature, FlowEffect.CREATE_INVESTMENT),
    (_S.SIGNATURE, _S.CONFIRMATION): (_require_signature, FlowEffect.CREATE_INVESTMENT),
    (_S.PAYMENT, _S.CONFIRMATION): (_require_recorded_investment, FlowEffect.COLLECT_PAYMENT),
}


# ────────────────────────────────────────────────────────────────────────────
# Navigation
# ────────────────────────────────────────────────────────────────────────────


def _next_step(flow: InvestmentFlow, data: StepInput) -> InvestmentStep:
    if flow.step == InvestmentStep.CONFIRMATION:
        raise BusinessRuleViolation("This investment flow is already complete")
    if flow.step == InvestmentStep.SIGNATURE:
        method = data.payment_method or flow.payment_method
        if method == PaymentMethod.COMMITMENT:
            return InvestmentStep.CONFIRMATION
        return InvestmentStep.PAYMENT
    return STEP_ORDER[STEP_ORDER.index(flow.step) + 1]


def plan(flow: InvestmentFlow, data: StepInput, ctx: FlowContext) -> Transition:
    """
    Validate the forward move from ``flow.step`` given ``data``.

    Returns the :class:`Transition` to perform; nothing is committed until
    :func:`apply` is called with it.
    """
    target = _next_step(flow, data)
    rule = TRANSITIONS.get((flow.step, target))
    if rule is None:
        raise BusinessRuleViolation(
            f"Cannot move from '{flow.step.value}' to '{target.value}'"
        )
    guard, effect = rule
    updated = guard(flow, data, ctx)
    return Transition(source=flow.step, target=target, effect=effect, flow=updated)


def apply(transition: Transition) -> InvestmentFlow:
    """Commit a planned move."""
    flow = transition.flow
    visited = list(flow.visited)
    if transition.target not in visited:
        visited.append(transition.target)
    return flow.model_copy(update={"step": transition.target, "visited": visited})


def go_back(flow: InvestmentFlow, target: InvestmentStep) -> InvestmentFlow:
    """Navigate back to a previously visited step (no persisted side effects)."""
    if flow.step == InvestmentStep.CONFIRMATION:
        raise BusinessRuleViolation("A confirmed investment flow cannot go back")
    if target not in flow.visited or STEP_ORDER.index(target) >= STEP_ORDER.index(flow.step):
        raise BusinessRuleViolation(
            f"Cannot go back to '{target.value}' from '{flow.step.value}'"
        )
    return flow.model_copy(update={"step": target})
