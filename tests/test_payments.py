"""
Unit tests for the HTTP payment gateway client, using httpx.MockTransport
in place of the real gateway.
"""

import json
from decimal import Decimal

import httpx
import pytest

from fundry.core.exceptions import ExternalServiceError
from fundry.core.resilience import CircuitBreakerError, CircuitState, payment_circuit_breaker
from fundry.integrations.payments import HttpPaymentGateway
from fundry.models.investment import PaymentMethod

from .conftest import INVESTMENT_ID


def _gateway(handler) -> HttpPaymentGateway:
    return HttpPaymentGateway(
        base_url="https://pay.test/v1/",
        api_key="sk_test",
        transport=httpx.MockTransport(handler),
    )


async def _charge(gateway: HttpPaymentGateway):
    return await gateway.charge(
        INVESTMENT_ID, Decimal("1575.00"), PaymentMethod.CARD, "SAFE investment in SolarGrid Inc."
    )


class TestCharge:
    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["key"] = request.headers["Idempotency-Key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pi_123", "status": "succeeded"})

        result = await _charge(_gateway(handler))

        assert result.succeeded
        assert result.payment_intent_id == "pi_123"
        assert seen["url"] == "https://pay.test/v1/charges"
        assert seen["auth"] == "Bearer sk_test"
        assert seen["key"] == str(INVESTMENT_ID)
        assert seen["body"]["amount"] == "1575.00"
        assert seen["body"]["method"] == "card"

    @pytest.mark.asyncio
    async def test_declined(self):
        def handler(request):
            return httpx.Response(
                402, json={"id": "pi_9", "status": "failed", "failure_reason": "card_declined"}
            )

        result = await _charge(_gateway(handler))
        assert not result.succeeded
        assert result.failure_reason == "card_declined"

    @pytest.mark.asyncio
    async def test_server_error_is_external_service_error(self):
        result = _gateway(lambda request: httpx.Response(503, json={}))
        with pytest.raises(ExternalServiceError, match="HTTP 503"):
            await _charge(result)

    @pytest.mark.asyncio
    async def test_timeout_is_external_service_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ExternalServiceError, match="try again"):
            await _charge(_gateway(handler))

    @pytest.mark.asyncio
    async def test_not_configured(self):
        gateway = HttpPaymentGateway(base_url="", api_key="")
        with pytest.raises(ExternalServiceError, match="not configured"):
            await _charge(gateway)

    @pytest.mark.asyncio
    async def test_repeated_outages_open_the_breaker(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        gateway = _gateway(handler)
        for _ in range(payment_circuit_breaker.failure_threshold):
            with pytest.raises(ExternalServiceError):
                await _charge(gateway)

        assert payment_circuit_breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerError):
            await _charge(gateway)

    @pytest.mark.asyncio
    async def test_html_error_page_is_external_service_error(self):
        def handler(request):
            return httpx.Response(404, text="<html>Not Found</html>")

        with pytest.raises(ExternalServiceError, match="unreadable reply \\(HTTP 404\\)"):
            await _charge(_gateway(handler))

    @pytest.mark.asyncio
    async def test_non_object_body_is_external_service_error(self):
        def handler(request):
            return httpx.Response(200, json=["succeeded"])

        with pytest.raises(ExternalServiceError, match="unexpected reply"):
            await _charge(_gateway(handler))
