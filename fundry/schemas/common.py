"""
Shared Pydantic schemas used across endpoints.

Error envelopes are declared so the OpenAPI document shows the error
contract, not just the happy path.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error envelope returned by all non-schema error handlers."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable description naming the violated rule",
        examples=["Minimum investment is $25.00"],
    )
    field: Optional[str] = Field(
        default=None,
        description="Input the error refers to, when there is one",
        examples=["amount"],
    )


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(..., examples=["body -> amount"])
    message: str = Field(..., examples=["Input should be greater than 0"])


class ValidationErrorResponse(BaseModel):
    """Response body for request-schema failures (422)."""

    error: bool = Field(default=True)
    message: str = Field(default="Validation failed")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field failures")
