"""
Investment domain model.

A single investor commitment into a campaign.  The row is a transactional
record: referenced by both campaign and investor but owned by neither.
Each investment owns exactly one :class:`SafeAgreement` (1:1, cascading).
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Index, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from fundry.models.campaign import Campaign
    from fundry.models.safe_agreement import SafeAgreement


class InvestmentStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    # Capital is pledged now and called later; nothing is charged today.
    COMMITMENT = "commitment"


class Investment(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for investments.

    Design notes:
    - ``total_amount == amount + platform_fee`` is enforced by a CHECK.
    - ``(investor_id, idempotency_key)`` is unique so a double-submitted
      signature step cannot create a second row.
    - ``ix_investments_campaign_status`` covers the funding aggregate
      (``WHERE campaign_id = ? AND status IN (...)``).
    """

    __tablename__ = "investments"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_investments_campaign_status", "campaign_id", "status"),
        UniqueConstraint(
            "investor_id", "idempotency_key", name="uq_investments_submission"
        ),
        CheckConstraint("amount > 0", name="ck_investments_amount_positive"),
        CheckConstraint("platform_fee >= 0", name="ck_investments_fee_non_negative"),
        CheckConstraint(
            "total_amount = amount + platform_fee", name="ck_investments_total"
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    campaign_id: uuid.UUID = Field(
        foreign_key="campaigns.id", index=True, ondelete="RESTRICT"
    )
    investor_id: uuid.UUID = Field(index=True)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    platform_fee: Decimal = Field(max_digits=12, decimal_places=2)
    total_amount: Decimal = Field(max_digits=12, decimal_places=2)
    status: InvestmentStatus = Field(default=InvestmentStatus.PENDING)
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    payment_method: PaymentMethod = Field(default=PaymentMethod.COMMITMENT)
    payment_intent_id: Optional[str] = Field(default=None, max_length=255)
    agreement_signed: bool = Field(default=False)
    signed_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    needs_founder_review: bool = Field(default=False)
    idempotency_key: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    # ── Relationships ──
    campaign: Optional["Campaign"] = Relationship(back_populates="investments")
    safe_agreement: Optional["SafeAgreement"] = Relationship(
        back_populates="investment",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "uselist": False},
    )

    def __repr__(self) -> str:
        return (
            f"<Investment id={self.id} campaign={self.campaign_id} "
            f"investor={self.investor_id} amount=${self.amount} status={self.status.value}>"
        )
