"""
KYC verification model.

Written by the external review workflow; the investment engine only reads
``status`` and ``approved_tier``.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from fundry.domain.kyc import KycStatus, KycTier


class KycVerification(SQLModel, table=True):
    """One verification record per user."""

    __tablename__ = "kyc_verifications"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(unique=True, index=True)
    status: KycStatus = Field(default=KycStatus.NOT_STARTED)
    approved_tier: Optional[KycTier] = Field(default=None)
    reviewed_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
