"""
Payment gateway client.

The gateway is an external collaborator: the engine sends one charge
request per payment attempt and awaits the answer.  Nothing here retries;
a failure surfaces to the investor, who may retry the payment step.  The
charge carries the investment id as its idempotency reference so a retried
attempt cannot be double-charged by the gateway.

Transport errors are translated to ``ConnectionError`` / ``TimeoutError``
inside the circuit breaker (so repeated outages open it) and then to
:class:`ExternalServiceError` for the caller.
"""

import logging
from decimal import Decimal
from typing import Optional, Protocol
from uuid import UUID

import httpx
from pydantic import BaseModel

from fundry.core.config import settings
from fundry.core.exceptions import ExternalServiceError
from fundry.core.resilience import payment_circuit_breaker
from fundry.models.investment import PaymentMethod

logger = logging.getLogger(__name__)

SERVICE_NAME = "payment-gateway"


class ChargeResult(BaseModel):
    payment_intent_id: str
    succeeded: bool
    failure_reason: Optional[str] = None


class PaymentGateway(Protocol):
    async def charge(
        self,
        investment_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        description: str,
    ) -> ChargeResult: ...


class HttpPaymentGateway:
    """Talks to the gateway's REST API: ``POST {base_url}/charges``."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def _post_charge(self, payload: dict) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Authorization": f"Bearer {self._api_key}"},
            ) as client:
                return await client.post(
                    "/charges",
                    json=payload,
                    headers={"Idempotency-Key": payload["reference"]},
                )
        except httpx.TimeoutException as exc:
            raise TimeoutError(f"payment gateway timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise ConnectionError(f"payment gateway unreachable: {exc}") from exc

    async def charge(
        self,
        investment_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        description: str,
    ) -> ChargeResult:
        if not self._base_url:
            raise ExternalServiceError(SERVICE_NAME, "Payment gateway is not configured")

        payload = {
            "reference": str(investment_id),
            "amount": str(amount),
            "currency": "USD",
            "method": method.value,
            "description": description,
        }
        try:
            response = await payment_circuit_breaker.call(self._post_charge, payload)
        except (ConnectionError, TimeoutError) as exc:
            logger.warning(
                "Charge for investment %s failed: %s",
                investment_id,
                exc,
                extra={"investment_id": str(investment_id)},
            )
            raise ExternalServiceError(
                SERVICE_NAME, "Payment could not be processed, please try again"
            ) from exc

        if response.status_code >= 500:
            raise ExternalServiceError(
                SERVICE_NAME,
                f"Payment gateway error (HTTP {response.status_code}), please try again",
            )

        try:
            body = response.json()
        except ValueError as exc:
            logger.warning(
                "Unreadable gateway reply for investment %s (HTTP %d)",
                investment_id,
                response.status_code,
                extra={"investment_id": str(investment_id)},
            )
            raise ExternalServiceError(
                SERVICE_NAME,
                f"Payment gateway sent an unreadable reply (HTTP {response.status_code}), "
                "please try again",
            ) from exc
        if not isinstance(body, dict):
            raise ExternalServiceError(
                SERVICE_NAME,
                f"Payment gateway sent an unexpected reply (HTTP {response.status_code}), "
                "please try again",
            )

        status = body.get("status")
        return ChargeResult(
            payment_intent_id=str(body.get("id", "")),
            succeeded=response.status_code < 300 and status == "succeeded",
            failure_reason=body.get("failure_reason") or body.get("message"),
        )


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the configured gateway client."""
    return HttpPaymentGateway(
        base_url=settings.PAYMENT_GATEWAY_URL,
        api_key=settings.PAYMENT_GATEWAY_API_KEY,
        timeout=settings.PAYMENT_GATEWAY_TIMEOUT,
    )
