"""
Campaign domain model.

A founder's fundraising campaign, persisted in the ``campaigns`` table.
From the investment engine's point of view the row is read-only; only the
founder's edit path mutates it.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, CheckConstraint, Column, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from fundry.models.investment import Investment


class CampaignStatus(str, Enum):
    """Allowed lifecycle states for a Campaign."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"
    FUNDED = "funded"
    CANCELLED = "cancelled"


class Campaign(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for campaigns.

    ``use_of_funds`` and ``team_members`` are JSON arrays validated as a
    whole by :mod:`fundry.domain.allocations` before every write.
    """

    __tablename__ = "campaigns"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("funding_goal > 0", name="ck_campaigns_goal_positive"),
        CheckConstraint(
            "minimum_investment > 0", name="ck_campaigns_minimum_positive"
        ),
        CheckConstraint(
            "discount_rate >= 0 AND discount_rate <= 50",
            name="ck_campaigns_discount_range",
        ),
        CheckConstraint("length(title) > 0", name="ck_campaigns_title_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    founder_id: uuid.UUID = Field(index=True)
    title: str = Field(max_length=255)
    company_name: Optional[str] = Field(default=None, max_length=255)
    short_pitch: str = Field(default="", max_length=2000)
    funding_goal: Decimal = Field(max_digits=12, decimal_places=2)
    minimum_investment: Decimal = Field(
        default=Decimal("25"), max_digits=12, decimal_places=2
    )
    discount_rate: Decimal = Field(default=Decimal("20"), max_digits=5, decimal_places=2)
    valuation_cap: Optional[Decimal] = Field(
        default=None, max_digits=15, decimal_places=2
    )
    deadline: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    status: CampaignStatus = Field(default=CampaignStatus.DRAFT, index=True)
    team_structure: str = Field(default="solo", max_length=10)
    use_of_funds: Optional[List[dict]] = Field(default=None, sa_column=Column(JSON))
    team_members: Optional[List[dict]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    # ── Relationships ──
    investments: List["Investment"] = Relationship(back_populates="campaign")

    def accepts_investments(self, now: datetime) -> bool:
        """Active and, when a deadline is set, not yet past it."""
        if self.status != CampaignStatus.ACTIVE:
            return False
        if self.deadline is None:
            return True
        deadline = self.deadline
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        return now <= deadline

    def __repr__(self) -> str:
        return f"<Campaign id={self.id} title='{self.title}' status={self.status.value}>"
