"""
Allocation validator — "use of funds" breakdowns and team structure.

Both checks run on campaign creation **and** on every edit, always over the
complete list supplied.  There is no partial-validity state: an edit that
changes one allocation is re-checked together with all the others.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

from pydantic import BaseModel, EmailStr, Field

from fundry.core.exceptions import ValidationError

FULL_ALLOCATION = Decimal("100")


class FundAllocation(BaseModel):
    """One line of a campaign's use-of-funds breakdown."""

    category: str = Field(..., max_length=100, examples=["Product development"])
    percentage: Decimal = Field(..., examples=[40])
    description: str = Field(default="", max_length=1000)


class TeamStructure(str, Enum):
    SOLO = "solo"
    TEAM = "team"


class TeamMember(BaseModel):
    name: str = Field(..., max_length=255)
    role: str = Field(..., max_length=255)
    email: Optional[EmailStr] = None
    bio: str = Field(default="", max_length=2000)
    linkedin_url: Optional[str] = Field(default=None, max_length=500)


def _format_pct(value: Decimal) -> str:
    return f"{value.normalize():f}%"


def validate_allocations(allocations: Sequence[FundAllocation]) -> None:
    """
    Accept the breakdown only if every share is in range and they sum to 100.

    Raises :class:`ValidationError` naming the first violated rule.  For a
    wrong total the message carries the delta, e.g. "5% remaining" or
    "10% over".
    """
    if not allocations:
        raise ValidationError(
            "At least one use-of-funds allocation is required", field="use_of_funds"
        )

    for index, allocation in enumerate(allocations):
        field = f"use_of_funds[{index}]"
        category = allocation.category.strip()
        if not category:
            raise ValidationError("Allocation category must not be blank", field=field)
        if allocation.percentage < 1 or allocation.percentage > FULL_ALLOCATION:
            raise ValidationError(
                f"Allocation '{category}' must be between 1% and 100% "
                f"(got {_format_pct(allocation.percentage)})",
                field=field,
            )

    total = sum((a.percentage for a in allocations), Decimal("0"))
    if total < FULL_ALLOCATION:
        raise ValidationError(
            f"Total percentage must equal 100% "
            f"({_format_pct(FULL_ALLOCATION - total)} remaining)",
            field="use_of_funds",
        )
    if total > FULL_ALLOCATION:
        raise ValidationError(
            f"Total percentage must equal 100% "
            f"({_format_pct(total - FULL_ALLOCATION)} over)",
            field="use_of_funds",
        )


def validate_team(structure: TeamStructure, members: Optional[Sequence[TeamMember]]) -> None:
    """
    A ``team`` campaign lists at least one member, each with a name and role.

    A ``solo`` founder may still list advisors, so members are optional there
    but are held to the same per-member rules when present.
    """
    members = members or []
    if structure == TeamStructure.TEAM and not members:
        raise ValidationError(
            "A team campaign must list at least one team member", field="team_members"
        )
    for index, member in enumerate(members):
        if not member.name.strip():
            raise ValidationError(
                "Team member name is required", field=f"team_members[{index}].name"
            )
        if not member.role.strip():
            raise ValidationError(
                f"Role is required for team member '{member.name.strip()}'",
                field=f"team_members[{index}].role",
            )
