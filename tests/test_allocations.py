"""
Unit tests for the use-of-funds and team-structure validators.
"""

from decimal import Decimal

import pytest

from fundry.core.exceptions import ValidationError
from fundry.domain.allocations import (
    FundAllocation,
    TeamMember,
    TeamStructure,
    validate_allocations,
    validate_team,
)


def _allocs(*percentages, categories=None):
    categories = categories or [f"Category {i}" for i in range(len(percentages))]
    return [
        FundAllocation(category=c, percentage=Decimal(str(p)))
        for c, p in zip(categories, percentages)
    ]


class TestValidateAllocations:
    def test_accepts_exact_hundred(self):
        validate_allocations(_allocs(40, 30, 20, 10))

    def test_reports_remaining(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_allocations(_allocs(40, 30, 20, 5))
        assert exc_info.value.message == "Total percentage must equal 100% (5% remaining)"
        assert exc_info.value.field == "use_of_funds"

    def test_reports_over(self):
        with pytest.raises(ValidationError, match=r"\(10% over\)"):
            validate_allocations(_allocs(50, 30, 30))

    def test_accepts_fractional_shares(self):
        validate_allocations(_allocs("33.5", "33.25", "33.25"))

    @pytest.mark.parametrize("shares", [[100], [1] * 100, [25, 25, 25, 25], [99, 1]])
    def test_any_partition_of_hundred_is_accepted(self, shares):
        validate_allocations(_allocs(*shares))

    def test_rejects_empty_list(self):
        with pytest.raises(ValidationError, match="At least one"):
            validate_allocations([])

    def test_rejects_share_out_of_range(self):
        with pytest.raises(ValidationError, match="between 1% and 100%") as exc_info:
            validate_allocations(_allocs(0, 100))
        assert exc_info.value.field == "use_of_funds[0]"

    def test_rejects_blank_category(self):
        with pytest.raises(ValidationError, match="must not be blank"):
            validate_allocations(_allocs(50, 50, categories=["Marketing", "  "]))

    def test_repeated_category_lines_are_accepted(self):
        validate_allocations(_allocs(50, 50, categories=["Hiring", "Hiring"]))


class TestValidateTeam:
    def test_solo_without_members_is_fine(self):
        validate_team(TeamStructure.SOLO, None)

    def test_team_requires_a_member(self):
        with pytest.raises(ValidationError, match="at least one team member"):
            validate_team(TeamStructure.TEAM, [])

    def test_team_with_named_members(self):
        validate_team(TeamStructure.TEAM, [TeamMember(name="Grace", role="CTO")])

    def test_member_needs_role(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_team(TeamStructure.TEAM, [TeamMember(name="Grace", role=" ")])
        assert exc_info.value.field == "team_members[0].role"

    def test_member_needs_name(self):
        with pytest.raises(ValidationError, match="name is required"):
            validate_team(TeamStructure.SOLO, [TeamMember(name="", role="Advisor")])

    def test_member_email_is_validated(self):
        with pytest.raises(Exception):
            TeamMember(name="Grace", role="CTO", email="not-an-email")
