"""
Investment service — business logic for investment commitments.

This is where the engine's persisted side effects happen:

* **create** — one Investment plus its draft SAFE agreement, written as a
  single unit of work.  A submission key (``Idempotency-Key`` header or
  the flow's ``submission_id``) makes a repeated submission return the
  original pair instead of a second row.
* **sign** — captures the typed legal name as the e-signature; the KYC
  tier gate runs first.
* **payment** — charges the external gateway.  A failed charge leaves the
  investment and agreement in place (``payment_status=failed``) so the
  investor can retry the same step.
* **settlement callback** — the gateway reports the final outcome.
* **cancel** — out-of-band, inside the cooling-off window only.

Caching:
    Every write that creates an investment or changes its status
    drops the campaign's cached funding stats.
"""

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from fundry.core.config import settings
from fundry.core.exceptions import (
    AuthorizationError,
    BusinessRuleViolation,
    ConflictException,
    ExternalServiceError,
    NotFoundException,
    ValidationError,
)
from fundry.core.resilience import CircuitBreakerError
from fundry.domain import safe_document
from fundry.domain.funding import check_overfunding
from fundry.domain.terms import (
    check_amount_bounds,
    compute_fee,
    compute_safe_terms,
    to_money,
)
from fundry.integrations.payments import SERVICE_NAME, PaymentGateway
from fundry.models.campaign import Campaign
from fundry.models.investment import (
    Investment,
    InvestmentStatus,
    PaymentMethod,
    PaymentStatus,
)
from fundry.models.safe_agreement import AgreementStatus, SafeAgreement
from fundry.repositories.campaign_repo import CampaignRepository
from fundry.repositories.investment_repo import InvestmentRepository
from fundry.repositories.safe_agreement_repo import SafeAgreementRepository
from fundry.schemas.identity import CurrentUser
from fundry.schemas.investment import InvestmentCreate, PaymentConfirmation, SettlementStatus
from fundry.services.funding_service import FundingService
from fundry.services.kyc_service import KycService

logger = logging.getLogger(__name__)

AGREEMENT_ID_PREFIX = "SAFE-"
AGREEMENT_ID_ALPHABET = string.ascii_uppercase + string.digits
AGREEMENT_ID_LENGTH = 8

InvestmentPair = Tuple[Investment, Optional[SafeAgreement]]


def new_agreement_id() -> str:
    """Public agreement reference, e.g. ``SAFE-4F7K2QXA``."""
    suffix = "".join(secrets.choice(AGREEMENT_ID_ALPHABET) for _ in range(AGREEMENT_ID_LENGTH))
    return f"{AGREEMENT_ID_PREFIX}{suffix}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class InvestmentService:
    """
    Encapsulates the investment lifecycle.

    ``clock`` is injectable so the cooling-off window and SAFE issue dates
    are testable without patching ``datetime``.
    """

    def __init__(
        self,
        invest_repo: InvestmentRepository,
        campaign_repo: CampaignRepository,
        agreement_repo: SafeAgreementRepository,
        funding: FundingService,
        kyc: KycService,
        gateway: PaymentGateway,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._invest_repo = invest_repo
        self._campaign_repo = campaign_repo
        self._agreement_repo = agreement_repo
        self._funding = funding
        self._kyc = kyc
        self._gateway = gateway
        self._clock = clock

    # ── Queries ──

    async def get_investment(self, user: CurrentUser, investment_id: UUID) -> InvestmentPair:
        investment = await self._load_owned(user, investment_id)
        agreement = await self._agreement_repo.get_by_investment(investment.id)
        return investment, agreement

    async def list_mine(
        self, user: CurrentUser, skip: int = 0, limit: int = 100
    ) -> List[Investment]:
        return await self._invest_repo.get_by_investor(user.user_id, skip=skip, limit=limit)

    async def export_agreement(
        self, user: CurrentUser, investment_id: UUID
    ) -> Tuple[str, str]:
        """``(filename, text)`` of the stored SAFE document for download."""
        investment = await self._load_owned(user, investment_id)
        agreement = await self._agreement_repo.get_by_investment(investment.id)
        if agreement is None:
            raise NotFoundException("SAFE agreement for investment", investment_id)
        campaign = await self._load_campaign(investment.campaign_id)
        return safe_document.export_filename(campaign, investment.amount), agreement.document_text

    # ── Commands ──

    async def create_investment(
        self,
        user: CurrentUser,
        command: InvestmentCreate,
        idempotency_key: Optional[str] = None,
    ) -> InvestmentPair:
        """
        Record an investment and its draft SAFE agreement.

        Validation sequence:
        1. The campaign must exist (404) and be accepting investments.
        2. A replayed submission key returns the original pair.
        3. Amount within ``[minimum_investment, PLATFORM_MAX_INVESTMENT]``.
        4. Terms and risk disclosure both acknowledged.
        5. With a signature, the KYC tier gate.
        6. The over-funding policy against the current funding snapshot.

        A non-empty ``digital_signature`` signs the agreement in the same
        unit of work.
        """
        key = idempotency_key or command.submission_id
        campaign = await self._load_campaign(command.campaign_id)

        if key:
            replay = await self._replay(user, command, key)
            if replay is not None:
                return replay

        now = self._clock()
        if not campaign.accepts_investments(now):
            raise BusinessRuleViolation(
                f"Campaign '{campaign.title}' is not accepting investments"
            )

        amount = check_amount_bounds(command.amount, campaign.minimum_investment)
        if not command.terms_accepted:
            raise ValidationError("You must accept the terms of service", field="terms_accepted")
        if not command.risk_disclosure_accepted:
            raise ValidationError(
                "You must acknowledge the risk disclosure", field="risk_disclosure_accepted"
            )

        signature = command.digital_signature.strip()
        if signature:
            await self._kyc.authorize(campaign, user.user_id)

        stats = await self._funding.stats(campaign)
        flagged = check_overfunding(
            stats, campaign.funding_goal, amount, settings.OVERFUNDING_POLICY
        )

        fee = compute_fee(amount)
        investment = Investment(
            campaign_id=campaign.id,
            investor_id=user.user_id,
            amount=amount,
            platform_fee=fee,
            total_amount=amount + fee,
            payment_method=command.payment_method,
            needs_founder_review=flagged,
            idempotency_key=key,
            created_at=now,
            updated_at=now,
        )
        terms = compute_safe_terms(
            amount, campaign.discount_rate, campaign.valuation_cap, now.date()
        )
        agreement = SafeAgreement(
            investment_id=investment.id,
            agreement_id=new_agreement_id(),
            terms=terms.as_snapshot(),
            document_text=safe_document.generate(campaign, amount, now.date()),
            created_at=now,
        )
        if signature:
            self._apply_signature(investment, agreement, signature, now)

        try:
            await self._invest_repo.create_together([investment, agreement])
        except IntegrityError as exc:
            await self._invest_repo.db.rollback()
            logger.warning(
                "IntegrityError creating investment (campaign=%s, investor=%s): %s",
                campaign.id,
                user.user_id,
                exc,
                extra={"campaign_id": str(campaign.id)},
            )
            # A concurrent double-submit may have won the unique key.
            if key:
                replay = await self._replay(user, command, key)
                if replay is not None:
                    return replay
            raise ConflictException(
                "Investment could not be recorded because a conflicting record "
                "was written at the same time; please retry."
            )

        self._funding.invalidate(campaign.id)
        logger.info(
            "Created investment %s: investor %s → campaign %s ($%s + $%s fee)%s",
            investment.id,
            investment.investor_id,
            campaign.id,
            investment.amount,
            investment.platform_fee,
            " [needs founder review]" if flagged else "",
            extra={"campaign_id": str(campaign.id), "investment_id": str(investment.id)},
        )
        return investment, agreement

    async def sign_investment(
        self, user: CurrentUser, investment_id: UUID, signature: str
    ) -> InvestmentPair:
        """Capture the investor's e-signature on an existing investment."""
        investment = await self._load_owned(user, investment_id)
        self._ensure_mutable(investment)
        if investment.status == InvestmentStatus.CANCELLED:
            raise BusinessRuleViolation("A cancelled investment cannot be signed")
        if investment.agreement_signed:
            raise BusinessRuleViolation("This investment has already been signed")

        signature = (signature or "").strip()
        if not signature:
            raise ValidationError("Signature required", field="signature")

        campaign = await self._load_campaign(investment.campaign_id)
        await self._kyc.authorize(campaign, user.user_id)

        agreement = await self._agreement_repo.get_by_investment(investment.id)
        if agreement is None:
            raise NotFoundException("SAFE agreement for investment", investment_id)

        previous_status = investment.status
        self._apply_signature(investment, agreement, signature, self._clock())
        await self._invest_repo.update_together([investment, agreement])
        if investment.status != previous_status:
            self._funding.invalidate(investment.campaign_id)

        logger.info(
            "Investment %s signed (agreement %s)",
            investment.id,
            agreement.agreement_id,
            extra={"investment_id": str(investment.id)},
        )
        return investment, agreement

    async def collect_payment(
        self,
        user: CurrentUser,
        investment_id: UUID,
        payment_method: Optional[PaymentMethod] = None,
    ) -> Investment:
        """
        Collect payment for a signed investment.

        Retry-safe: never creates a new investment.  ``commitment`` records
        the pledge without calling the gateway.
        """
        investment = await self._load_owned(user, investment_id)
        self._ensure_mutable(investment)
        if investment.status == InvestmentStatus.CANCELLED:
            raise BusinessRuleViolation("A cancelled investment cannot be paid")
        if investment.status == InvestmentStatus.PAID:
            raise BusinessRuleViolation("This investment has already been paid")
        if not investment.agreement_signed:
            raise BusinessRuleViolation("The SAFE agreement must be signed before payment")
        if investment.payment_status == PaymentStatus.PROCESSING:
            raise BusinessRuleViolation("A payment for this investment is already in progress")

        campaign = await self._load_campaign(investment.campaign_id)
        await self._kyc.authorize(campaign, user.user_id)

        method = payment_method or investment.payment_method
        investment.payment_method = method
        if method == PaymentMethod.COMMITMENT:
            return await self._record_commitment(investment)

        prior_status = investment.status
        investment.payment_status = PaymentStatus.PROCESSING
        investment.updated_at = self._clock()
        investment = await self._invest_repo.update(investment)

        # Whatever goes wrong past this point, the row must leave PROCESSING
        # so the investor can retry; the gateway de-duplicates on the id.
        try:
            result = await self._gateway.charge(
                investment.id,
                investment.total_amount,
                method,
                f"SAFE investment in {safe_document.company_display_name(campaign)}",
            )
            investment.payment_intent_id = result.payment_intent_id or None
            if result.succeeded:
                investment.status = InvestmentStatus.PAID
                investment.payment_status = PaymentStatus.COMPLETED
                investment.updated_at = self._clock()
                investment = await self._invest_repo.update(investment)
        except Exception as exc:
            investment.status = prior_status
            await self._mark_payment_failed(investment)
            if isinstance(exc, (ExternalServiceError, CircuitBreakerError)):
                raise
            raise ExternalServiceError(
                SERVICE_NAME, "Payment could not be completed, please try again"
            ) from exc

        if not result.succeeded:
            await self._mark_payment_failed(investment)
            reason = result.failure_reason or "the payment was declined"
            raise ExternalServiceError(SERVICE_NAME, f"Payment failed: {reason}")

        self._funding.invalidate(investment.campaign_id)
        logger.info(
            "Payment collected for investment %s (%s, intent %s)",
            investment.id,
            method.value,
            investment.payment_intent_id,
            extra={"investment_id": str(investment.id)},
        )
        return investment

    async def confirm_payment(
        self, investment_id: UUID, confirmation: PaymentConfirmation
    ) -> Investment:
        """
        Apply the gateway's settlement callback.

        ``completed`` finalises the investment (and its agreement);
        ``failed`` returns it to ``pending`` so the investor can pay again.
        Repeated callbacks for an already applied outcome are no-ops.
        """
        investment = await self._invest_repo.get(investment_id)
        if not investment:
            raise NotFoundException("Investment", investment_id)
        if investment.payment_intent_id != confirmation.payment_intent_id:
            raise BusinessRuleViolation("Payment reference does not match this investment")

        completed = confirmation.status == SettlementStatus.COMPLETED
        if investment.status == InvestmentStatus.COMPLETED:
            if completed:
                return investment
            self._ensure_mutable(investment)
        if investment.status not in (InvestmentStatus.PAID, InvestmentStatus.PENDING):
            raise BusinessRuleViolation(
                f"Investment in status '{investment.status.value}' is not awaiting settlement"
            )

        agreement = await self._agreement_repo.get_by_investment(investment.id)
        if completed:
            investment.status = InvestmentStatus.COMPLETED
            investment.payment_status = PaymentStatus.COMPLETED
            if agreement is not None:
                agreement.status = AgreementStatus.COMPLETED
        else:
            investment.status = InvestmentStatus.PENDING
            investment.payment_status = PaymentStatus.FAILED
        investment.updated_at = self._clock()

        entities = [investment] if agreement is None else [investment, agreement]
        await self._invest_repo.update_together(entities)
        self._funding.invalidate(investment.campaign_id)
        logger.info(
            "Settlement %s for investment %s",
            confirmation.status.value,
            investment.id,
            extra={"investment_id": str(investment.id)},
        )
        return investment

    async def cancel_investment(self, user: CurrentUser, investment_id: UUID) -> Investment:
        """Cancel within the cooling-off window; completed investments are final."""
        investment = await self._load_owned(user, investment_id)
        if investment.status == InvestmentStatus.COMPLETED:
            raise BusinessRuleViolation("A completed investment cannot be cancelled")
        if investment.status == InvestmentStatus.CANCELLED:
            return investment

        hours = settings.COOLING_OFF_HOURS
        now = self._clock()
        if now - _as_utc(investment.created_at) > timedelta(hours=hours):
            raise BusinessRuleViolation(
                f"The {hours}-hour cooling-off period for this investment has ended"
            )

        investment.status = InvestmentStatus.CANCELLED
        investment.updated_at = now
        investment = await self._invest_repo.update(investment)
        self._funding.invalidate(investment.campaign_id)
        logger.info(
            "Investment %s cancelled by investor",
            investment.id,
            extra={"investment_id": str(investment.id)},
        )
        return investment

    # ── Helpers ──

    async def _load_campaign(self, campaign_id: UUID) -> Campaign:
        campaign = await self._campaign_repo.get(campaign_id)
        if not campaign:
            raise NotFoundException("Campaign", campaign_id)
        return campaign

    async def _load_owned(self, user: CurrentUser, investment_id: UUID) -> Investment:
        investment = await self._invest_repo.get(investment_id)
        if not investment:
            raise NotFoundException("Investment", investment_id)
        if investment.investor_id != user.user_id:
            raise AuthorizationError("You do not have access to this investment")
        return investment

    async def _replay(
        self, user: CurrentUser, command: InvestmentCreate, key: str
    ) -> Optional[InvestmentPair]:
        existing = await self._invest_repo.get_by_submission(user.user_id, key)
        if existing is None:
            return None
        same_details = (
            existing.campaign_id == command.campaign_id
            and existing.amount == to_money(command.amount)
        )
        if not same_details:
            raise ConflictException(
                "This submission was already recorded with different details"
            )
        logger.info(
            "Replayed submission %s → investment %s",
            key,
            existing.id,
            extra={"investment_id": str(existing.id)},
        )
        agreement = await self._agreement_repo.get_by_investment(existing.id)
        return existing, agreement

    async def _record_commitment(self, investment: Investment) -> Investment:
        previous_status = investment.status
        investment.status = InvestmentStatus.COMMITTED
        investment.payment_status = PaymentStatus.PENDING
        investment.updated_at = self._clock()
        investment = await self._invest_repo.update(investment)
        if previous_status != investment.status:
            self._funding.invalidate(investment.campaign_id)
        logger.info(
            "Investment %s recorded as a commitment (capital due on call)",
            investment.id,
            extra={"investment_id": str(investment.id)},
        )
        return investment

    async def _mark_payment_failed(self, investment: Investment) -> None:
        investment.payment_status = PaymentStatus.FAILED
        investment.updated_at = self._clock()
        await self._invest_repo.update(investment)
        logger.warning(
            "Payment failed for investment %s",
            investment.id,
            extra={"investment_id": str(investment.id)},
        )

    @staticmethod
    def _apply_signature(
        investment: Investment, agreement: SafeAgreement, signature: str, now: datetime
    ) -> None:
        investment.agreement_signed = True
        investment.signed_at = now
        investment.updated_at = now
        agreement.investor_signature = signature
        agreement.signed_at = now
        agreement.status = AgreementStatus.SIGNED
        if (
            investment.payment_method == PaymentMethod.COMMITMENT
            and investment.status == InvestmentStatus.PENDING
        ):
            investment.status = InvestmentStatus.COMMITTED

    @staticmethod
    def _ensure_mutable(investment: Investment) -> None:
        if investment.status == InvestmentStatus.COMPLETED:
            raise BusinessRuleViolation(
                f"Investment {investment.id} is completed and can no longer be modified"
            )
