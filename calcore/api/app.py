"""
FastAPI application for the calendar core.

The API exposes the occurrence, sharing and sync engine:
- Occurrence range views of the caller's calendar
- Privately and publicly shared calendar views
- Delta sync for owned data and for individual shares
- Share scope maintenance
- Health checks

Authentication happens upstream; the principal id reaches the API through
a trusted header (see calcore.api.dependencies.get_current_user_id).
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from calcore import __version__
from calcore.api.dependencies import DependencyContainer
from calcore.api.routers import calendar, shares, sync, system
from calcore.config import load_settings, setup_logging

# Setup logging when module is imported
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create storage resources on startup and release them on shutdown."""
    container = DependencyContainer(load_settings())
    await container.startup()
    app.state.container = container
    logger.info(
        "Calendar API started",
        extra={"uses_database": container.pool is not None},
    )
    try:
        yield
    finally:
        await container.shutdown()
        logger.info("Calendar API stopped")


app = FastAPI(
    title="Calendar Core API",
    description="Occurrence expansion, calendar sharing and delta sync",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(system.router, tags=["System"])
app.include_router(calendar.router, prefix="/api", tags=["Calendar"])
app.include_router(sync.router, prefix="/api", tags=["Sync"])
app.include_router(shares.router, prefix="/api", tags=["Shares"])
