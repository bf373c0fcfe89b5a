"""
SAFE agreement model.

Owned by its investment (1:1).  Created as ``draft`` in the same unit of
work as the investment, moved to ``signed`` when the investor's signature
is captured, independent of payment.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, Column, DateTime, Text
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from fundry.models.investment import Investment


class AgreementStatus(str, Enum):
    DRAFT = "draft"
    SIGNED = "signed"
    COMPLETED = "completed"


class SafeAgreement(SQLModel, table=True):
    """SQLModel / SQLAlchemy table definition for SAFE agreements."""

    __tablename__ = "safe_agreements"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investment_id: uuid.UUID = Field(
        foreign_key="investments.id", unique=True, index=True, ondelete="CASCADE"
    )
    # Public reference quoted to investors, e.g. "SAFE-4F7K2QXA".
    agreement_id: str = Field(unique=True, index=True, max_length=20)
    terms: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    document_text: str = Field(default="", sa_column=Column(Text, nullable=False))
    investor_signature: Optional[str] = Field(default=None, max_length=255)
    founder_signature: Optional[str] = Field(default=None, max_length=255)
    signed_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    status: AgreementStatus = Field(default=AgreementStatus.DRAFT)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    # ── Relationships ──
    investment: Optional["Investment"] = Relationship(back_populates="safe_agreement")

    def __repr__(self) -> str:
        return f"<SafeAgreement {self.agreement_id} status={self.status.value}>"
