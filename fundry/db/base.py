"""
Database model registry.

Importing this module ensures all table models are registered with
SQLModel's metadata before ``create_all()`` runs.
"""

from fundry.models.campaign import Campaign  # noqa: F401
from fundry.models.investment import Investment  # noqa: F401
from fundry.models.kyc import KycVerification  # noqa: F401
from fundry.models.safe_agreement import SafeAgreement  # noqa: F401
