"""
Request models for the calendar API.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from calcore.domain import CamelModel, PrivacyLevel
from calcore.timeutil import to_utc


class UpdateOpenShareScopeRequest(CamelModel):
    """
    Replacement scope for a share. The category list replaces the current
    one (an empty list unshares everything); an omitted privacy level
    keeps the current one; an omitted expiry removes it.
    """

    category_ids: List[int] = Field(..., description="Categories to share")
    privacy_level: Optional[PrivacyLevel] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def expires_at_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None


class UpdateShareScopeRequest(UpdateOpenShareScopeRequest):
    message: Optional[str] = Field(None, max_length=1000)
