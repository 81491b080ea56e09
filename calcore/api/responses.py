"""
Response models for the calendar API that are not domain models.
"""

from datetime import datetime

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: datetime
