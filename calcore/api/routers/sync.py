"""
Sync API router.

Routes:
- GET /api/sync/me?since= - Delta sync of everything the caller owns
- GET /api/sync/calendar/shares/{share_id}?since= - Delta sync of one
  calendar shared with the caller

``since`` is an optional RFC3339 timestamp. Omitting it requests a full
snapshot; sending an unparseable value is a 400.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from calcore.api.dependencies import (
    get_current_user_id,
    get_owned_sync_use_case,
    get_shared_calendar_sync_use_case,
)
from calcore.domain import OwnedSyncResponse, SharedCalendarSyncResponse
from calcore.errors import InvalidSinceError
from calcore.timeutil import parse_since
from calcore.usecase import OwnedSyncUseCase, SharedCalendarSyncUseCase

logger = logging.getLogger(__name__)

router = APIRouter()


def since_param(
    since: Optional[str] = Query(None),
) -> Optional[datetime]:
    """The parsed high-water mark, or None for a full snapshot."""
    try:
        return parse_since(since)
    except InvalidSinceError as e:
        raise HTTPException(
            status_code=400, detail=f"Invalid 'since' parameter: {e}"
        )


@router.get("/sync/me", response_model=OwnedSyncResponse)
async def sync_me(
    since: Optional[datetime] = Depends(since_param),
    user_id: int = Depends(get_current_user_id),
    use_case: OwnedSyncUseCase = Depends(get_owned_sync_use_case),
) -> OwnedSyncResponse:
    try:
        return await use_case.execute(user_id, since)
    except Exception as e:
        logger.error(
            "Owned sync failed",
            extra={
                "user_id": user_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500, detail="Sync failed due to an internal error."
        )


@router.get(
    "/sync/calendar/shares/{share_id}",
    response_model=SharedCalendarSyncResponse,
    response_model_exclude_none=True,
)
async def sync_shared_calendar(
    share_id: int,
    since: Optional[datetime] = Depends(since_param),
    user_id: int = Depends(get_current_user_id),
    use_case: SharedCalendarSyncUseCase = Depends(
        get_shared_calendar_sync_use_case
    ),
) -> SharedCalendarSyncResponse:
    try:
        return await use_case.execute(share_id, user_id, since)
    except Exception as e:
        logger.error(
            "Shared calendar sync failed",
            extra={
                "share_id": share_id,
                "user_id": user_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500, detail="Sync failed due to an internal error."
        )
