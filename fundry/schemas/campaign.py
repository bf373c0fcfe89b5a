"""
Pydantic schemas for Campaign API request / response serialisation.

Schema-level checks cover single fields (positive goal, discount range);
the cross-field rules (allocations summing to 100, team composition) run in
the service through :mod:`fundry.domain.allocations` so create and edit
share exactly one implementation.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from fundry.domain.allocations import FundAllocation, TeamMember, TeamStructure
from fundry.models.campaign import CampaignStatus


class CampaignBase(BaseModel):
    """Fields common to campaign creation and update payloads."""

    title: str = Field(..., min_length=1, max_length=255, examples=["SolarGrid Co-op"])
    company_name: Optional[str] = Field(default=None, max_length=255)
    short_pitch: str = Field(default="", max_length=2000)
    funding_goal: Decimal = Field(..., gt=0, examples=[5000])
    minimum_investment: Decimal = Field(default=Decimal("25"), gt=0, examples=[25])
    discount_rate: Decimal = Field(default=Decimal("20"), ge=0, le=50, examples=[20])
    valuation_cap: Optional[Decimal] = Field(default=None, gt=0, examples=[1_000_000])
    deadline: Optional[datetime] = None
    team_structure: TeamStructure = TeamStructure.SOLO
    team_members: Optional[List[TeamMember]] = None
    use_of_funds: Optional[List[FundAllocation]] = None

    @field_validator("title")
    @classmethod
    def validate_title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()


class CampaignCreate(CampaignBase):
    """Schema for ``POST /campaigns``; new campaigns start as drafts."""

    status: CampaignStatus = CampaignStatus.DRAFT


class CampaignUpdate(CampaignBase):
    """
    Schema for ``PUT /campaigns/{id}`` — full replacement.

    ``use_of_funds`` is the complete breakdown; it is revalidated as a
    whole on every edit.
    """

    status: CampaignStatus


class CampaignResponse(CampaignBase):
    """Campaign fields merged with the funding read model."""

    id: UUID
    founder_id: UUID
    status: CampaignStatus
    created_at: datetime
    updated_at: datetime
    total_raised: Decimal = Decimal("0")
    investor_count: int = 0
    progress_percent: int = 0

    @field_serializer(
        "funding_goal", "minimum_investment", "discount_rate", "valuation_cap", "total_raised"
    )
    @classmethod
    def serialize_decimal_as_number(cls, v: Optional[Decimal]) -> Optional[float]:
        """Money goes out as JSON numbers, not Pydantic's default strings."""
        return float(v) if v is not None else None

    model_config = ConfigDict(from_attributes=True)
