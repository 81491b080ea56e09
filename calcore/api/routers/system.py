"""
System API router.

Routes defined at root level:
- GET /health - Health check endpoint
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from calcore import __version__
from calcore.api.responses import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    logger.debug("Health check requested")
    return HealthCheckResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
    )
