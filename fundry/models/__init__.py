"""SQLModel table models — import here so metadata is populated."""

from fundry.models.campaign import Campaign  # noqa: F401
from fundry.models.investment import Investment  # noqa: F401
from fundry.models.kyc import KycVerification  # noqa: F401
from fundry.models.safe_agreement import SafeAgreement  # noqa: F401
