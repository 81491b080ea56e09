"""
Calendar view API router.

Routes:
- GET /api/calendar/events - The caller's occurrences in a range
- GET /api/calendar/shares/{share_id} - A privately shared calendar
- GET /api/open-shares/{open_share_id} - A publicly shared calendar
- GET /api/shared-calendars - Shares currently usable by the caller

Share lookups that fail for any reason (unknown, not addressed to the
caller, revoked, expired) all answer 404 with the same body.
"""

import logging
from datetime import datetime
from typing import List, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from calcore.api.dependencies import (
    get_current_user_id,
    get_list_received_shares_use_case,
    get_occurrences_use_case,
    get_open_share_view_use_case,
    get_shared_calendar_view_use_case,
)
from calcore.domain import CalendarShare, EventOccurrence, SharedCalendarView
from calcore.errors import (
    InvalidRangeError,
    InvalidTimestampError,
    ShareNotFoundError,
)
from calcore.sharing import SHARE_NOT_FOUND_MESSAGE
from calcore.timeutil import parse_timestamp
from calcore.usecase import (
    GetOccurrencesUseCase,
    ListReceivedSharesUseCase,
    OpenShareViewUseCase,
    SharedCalendarViewUseCase,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_range(start_time: str, end_time: str) -> Tuple[datetime, datetime]:
    """Parse the startTime/endTime query pair, answering 400 if invalid."""
    try:
        return parse_timestamp(start_time), parse_timestamp(end_time)
    except InvalidTimestampError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/calendar/events", response_model=List[EventOccurrence])
async def get_calendar_events(
    start_time: str = Query(..., alias="startTime"),
    end_time: str = Query(..., alias="endTime"),
    user_id: int = Depends(get_current_user_id),
    use_case: GetOccurrencesUseCase = Depends(get_occurrences_use_case),
) -> List[EventOccurrence]:
    """Occurrences of the caller's own and accepted events in a range."""
    range_start, range_end = parse_range(start_time, end_time)
    try:
        return await use_case.execute(user_id, range_start, range_end)
    except InvalidRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(
            "Failed to compute calendar occurrences",
            extra={
                "user_id": user_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to load calendar due to an internal error.",
        )


@router.get(
    "/calendar/shares/{share_id}",
    response_model=SharedCalendarView,
    response_model_exclude_none=True,
)
async def get_shared_calendar(
    share_id: int,
    start_time: str = Query(..., alias="startTime"),
    end_time: str = Query(..., alias="endTime"),
    user_id: int = Depends(get_current_user_id),
    use_case: SharedCalendarViewUseCase = Depends(
        get_shared_calendar_view_use_case
    ),
) -> SharedCalendarView:
    """A calendar shared with the caller, redacted per its privacy level."""
    range_start, range_end = parse_range(start_time, end_time)
    try:
        return await use_case.execute(
            share_id, user_id, range_start, range_end
        )
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail=SHARE_NOT_FOUND_MESSAGE)
    except InvalidRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(
            "Failed to build shared calendar view",
            extra={
                "share_id": share_id,
                "user_id": user_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to load shared calendar due to an internal error.",
        )


@router.get(
    "/open-shares/{open_share_id}",
    response_model=SharedCalendarView,
    response_model_exclude_none=True,
)
async def get_open_share(
    open_share_id: UUID,
    start_time: str = Query(..., alias="startTime"),
    end_time: str = Query(..., alias="endTime"),
    use_case: OpenShareViewUseCase = Depends(get_open_share_view_use_case),
) -> SharedCalendarView:
    """A publicly shared calendar; no caller identity required."""
    range_start, range_end = parse_range(start_time, end_time)
    try:
        return await use_case.execute(open_share_id, range_start, range_end)
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail=SHARE_NOT_FOUND_MESSAGE)
    except InvalidRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(
            "Failed to build open share view",
            extra={
                "open_share_id": str(open_share_id),
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to load shared calendar due to an internal error.",
        )


@router.get("/shared-calendars", response_model=List[CalendarShare])
async def list_shared_calendars(
    user_id: int = Depends(get_current_user_id),
    use_case: ListReceivedSharesUseCase = Depends(
        get_list_received_shares_use_case
    ),
) -> List[CalendarShare]:
    """Shares addressed to the caller that are currently usable."""
    try:
        return await use_case.execute(user_id)
    except Exception as e:
        logger.error(
            "Failed to list received shares",
            extra={
                "user_id": user_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to list shares due to an internal error.",
        )
