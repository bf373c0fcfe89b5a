"""
Global exception handlers for the FastAPI application.

Centralises error formatting so every error response follows a consistent
JSON structure::

    {
        "error": true,
        "message": "<human-readable description>",
        "field": "<offending input, when known>"
    }

This module also defines the domain exceptions that the domain and service
layers raise without importing FastAPI's HTTPException, keeping business
logic framework-agnostic.  Every rejection names the rule it violated
("minimum investment is $25.00", "total percentage must equal 100%")
rather than a generic failure message.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fundry.core.resilience import CircuitBreakerError

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain exceptions  (raised by domain / service layer, caught by handlers)
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class ConflictException(AppException):
    """Resource already exists / unique-constraint violation (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class BusinessRuleViolation(AppException):
    """Business rule was violated (422)."""

    def __init__(self, message: str):
        super().__init__(status_code=422, message=message)


class ValidationError(AppException):
    """
    Malformed or out-of-range input (422).

    Always recoverable: the caller fixes ``field`` and resubmits.  Never
    retried automatically.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(status_code=422, message=message)


class AuthenticationRequired(AppException):
    """No authenticated identity was supplied (401)."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(status_code=401, message=message)


class AuthorizationError(AppException):
    """
    Caller is not allowed to perform the operation (403).

    Raised for an insufficient KYC tier or when touching another user's
    investment / campaign.  Not retryable without an out-of-band change.
    """

    def __init__(self, message: str, details: Any = None):
        super().__init__(status_code=403, message=message, details=details)


class ExternalServiceError(AppException):
    """
    An external collaborator (payment gateway, persistence) failed (502).

    Recoverable: the caller may retry the same step.
    """

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(status_code=502, message=message)


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        """Handle domain-specific exceptions raised by the service layer."""
        content: dict = {"error": True, "message": exc.message}
        field = getattr(exc, "field", None)
        if field:
            content["field"] = field
        if exc.details is not None:
            content["details"] = exc.details
        if exc.status_code >= 500:
            logger.warning(
                "%s %s failed: %s",
                request.method,
                request.url.path,
                exc.message,
            )
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(CircuitBreakerError)
    async def circuit_breaker_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """A dependency is failing fast; tell the client when to come back."""
        return JSONResponse(
            status_code=503,
            headers={"Retry-After": str(int(exc.retry_after) + 1)},
            content={
                "error": True,
                "message": f"Service '{exc.name}' is temporarily unavailable",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Handle Pydantic / FastAPI request-validation errors.

        Returns a 422 with a concise list of validation issues so the caller
        knows exactly which fields failed and why.
        """
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={"error": True, "message": "Validation failed", "details": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected exceptions."""
        logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "message": "Internal Server Error. Please contact support.",
            },
        )
