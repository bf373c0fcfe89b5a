"""
The authenticated caller, passed explicitly into every service operation.

Authentication itself happens upstream; the API layer only turns the
forwarded identity headers into this value.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class CurrentUser(BaseModel):
    user_id: UUID
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True)
