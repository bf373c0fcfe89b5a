"""
Investment API endpoints.

- POST  /investments                              — Record an investment + draft SAFE
- GET   /investments/mine                         — The caller's investments
- GET   /investments/{id}                         — One investment with its SAFE
- PUT   /investments/{id}/sign                    — Capture the e-signature
- POST  /investments/{id}/payment                 — Collect payment
- POST  /investments/{id}/cancel                  — Cancel within the cooling-off window
- POST  /investments/{id}/payment-confirmation    — Gateway settlement callback
- GET   /investments/{id}/agreement.txt           — Plain-text SAFE export
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import PlainTextResponse

from fundry.api.deps import get_current_user, get_investment_service, verify_webhook_secret
from fundry.schemas.common import ErrorResponse, ValidationErrorResponse
from fundry.schemas.identity import CurrentUser
from fundry.schemas.investment import (
    InvestmentCreate,
    InvestmentResponse,
    InvestmentWithAgreement,
    PaymentConfirmation,
    PaymentRequest,
    SignRequest,
)
from fundry.services.investment_service import InvestmentService

router = APIRouter()


def _pair(investment, agreement) -> InvestmentWithAgreement:
    return InvestmentWithAgreement.model_validate(
        {"investment": investment, "safe_agreement": agreement}, from_attributes=True
    )


@router.post(
    "",
    response_model=InvestmentWithAgreement,
    status_code=201,
    summary="Create an investment",
    description=(
        "Records an investment and its draft SAFE agreement in one unit of "
        "work.  A repeated submission with the same ``Idempotency-Key`` "
        "header (or ``submission_id``) returns the original records."
    ),
    responses={
        401: {"model": ErrorResponse, "description": "No identity supplied"},
        403: {"model": ErrorResponse, "description": "KYC tier insufficient"},
        404: {"model": ErrorResponse, "description": "Campaign not found"},
        409: {"model": ErrorResponse, "description": "Submission conflict"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_investment(
    investment: InvestmentCreate,
    idempotency_key: Optional[str] = Header(default=None, max_length=100),
    user: CurrentUser = Depends(get_current_user),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentWithAgreement:
    created, agreement = await service.create_investment(
        user, investment, idempotency_key=idempotency_key
    )
    return _pair(created, agreement)


@router.get(
    "/mine",
    response_model=List[InvestmentResponse],
    summary="List my investments",
)
async def list_my_investments(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    user: CurrentUser = Depends(get_current_user),
    service: InvestmentService = Depends(get_investment_service),
) -> List[InvestmentResponse]:
    return await service.list_mine(user, skip=skip, limit=limit)


@router.get(
    "/{investment_id}",
    response_model=InvestmentWithAgreement,
    summary="Get an investment",
    responses={
        403: {"model": ErrorResponse, "description": "Not your investment"},
        404: {"model": ErrorResponse, "description": "Investment not found"},
    },
)
async def get_investment(
    investment_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentWithAgreement:
    investment, agreement = await service.get_investment(user, investment_id)
    return _pair(investment, agreement)


@router.put(
    "/{investment_id}/sign",
    response_model=InvestmentWithAgreement,
    summary="Sign the SAFE agreement",
    responses={
        403: {"model": ErrorResponse, "description": "Not your investment, or KYC insufficient"},
        404: {"model": ErrorResponse, "description": "Investment not found"},
        422: {"model": ErrorResponse, "description": "Signature required"},
    },
)
async def sign_investment(
    investment_id: UUID,
    body: SignRequest,
    user: CurrentUser = Depends(get_current_user),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentWithAgreement:
    investment, agreement = await service.sign_investment(user, investment_id, body.signature)
    return _pair(investment, agreement)


@router.post(
    "/{investment_id}/payment",
    response_model=InvestmentResponse,
    summary="Collect payment",
    description="Retry-safe: a failed attempt may be repeated; no new investment is created.",
    responses={
        403: {"model": ErrorResponse, "description": "Not your investment, or KYC insufficient"},
        422: {"model": ErrorResponse, "description": "Investment not payable"},
        502: {"model": ErrorResponse, "description": "Payment gateway failure"},
        503: {"model": ErrorResponse, "description": "Payment gateway circuit open"},
    },
)
async def collect_payment(
    investment_id: UUID,
    body: Optional[PaymentRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    method = body.payment_method if body else None
    return await service.collect_payment(user, investment_id, method)


@router.post(
    "/{investment_id}/cancel",
    response_model=InvestmentResponse,
    summary="Cancel an investment",
    description="Allowed within the cooling-off window only; completed investments are final.",
)
async def cancel_investment(
    investment_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.cancel_investment(user, investment_id)


@router.post(
    "/{investment_id}/payment-confirmation",
    response_model=InvestmentResponse,
    summary="Payment settlement callback",
    dependencies=[Depends(verify_webhook_secret)],
    responses={401: {"model": ErrorResponse, "description": "Invalid webhook credentials"}},
)
async def confirm_payment(
    investment_id: UUID,
    body: PaymentConfirmation,
    service: InvestmentService = Depends(get_investment_service),
) -> InvestmentResponse:
    return await service.confirm_payment(investment_id, body)


@router.get(
    "/{investment_id}/agreement.txt",
    response_class=PlainTextResponse,
    summary="Download the SAFE agreement",
)
async def export_agreement(
    investment_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    service: InvestmentService = Depends(get_investment_service),
) -> PlainTextResponse:
    filename, text = await service.export_agreement(user, investment_id)
    return PlainTextResponse(
        text, headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
