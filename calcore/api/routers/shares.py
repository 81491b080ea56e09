"""
Share management API router.

Routes:
- PUT /api/me/shares/{share_id} - Replace a private share's scope
- DELETE /api/me/shares/{share_id} - Revoke a private share
- PUT /api/me/open-shares/{open_share_id} - Replace an open share's scope
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from calcore.api.dependencies import (
    get_current_user_id,
    get_revoke_share_use_case,
    get_update_open_share_scope_use_case,
    get_update_share_scope_use_case,
)
from calcore.api.requests import (
    UpdateOpenShareScopeRequest,
    UpdateShareScopeRequest,
)
from calcore.domain import CalendarShare, OpenCalendarShare
from calcore.errors import CategoryOwnershipError, ShareNotFoundError
from calcore.sharing import SHARE_NOT_FOUND_MESSAGE
from calcore.usecase import (
    RevokeShareUseCase,
    UpdateOpenShareScopeUseCase,
    UpdateShareScopeUseCase,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put("/me/shares/{share_id}", response_model=CalendarShare)
async def update_share(
    share_id: int,
    request: UpdateShareScopeRequest,
    user_id: int = Depends(get_current_user_id),
    use_case: UpdateShareScopeUseCase = Depends(
        get_update_share_scope_use_case
    ),
) -> CalendarShare:
    logger.info(
        "Share scope update requested",
        extra={
            "share_id": share_id,
            "user_id": user_id,
            "category_count": len(request.category_ids),
        },
    )
    try:
        return await use_case.execute(
            owner_user_id=user_id,
            share_id=share_id,
            category_ids=request.category_ids,
            privacy_level=request.privacy_level,
            expires_at=request.expires_at,
            message=request.message,
        )
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail=SHARE_NOT_FOUND_MESSAGE)
    except CategoryOwnershipError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(
            "Failed to update share",
            extra={
                "share_id": share_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to update share due to an internal error.",
        )


@router.delete("/me/shares/{share_id}", response_model=CalendarShare)
async def revoke_share(
    share_id: int,
    user_id: int = Depends(get_current_user_id),
    use_case: RevokeShareUseCase = Depends(get_revoke_share_use_case),
) -> CalendarShare:
    try:
        return await use_case.execute(user_id, share_id)
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail=SHARE_NOT_FOUND_MESSAGE)
    except Exception as e:
        logger.error(
            "Failed to revoke share",
            extra={
                "share_id": share_id,
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to revoke share due to an internal error.",
        )


@router.put(
    "/me/open-shares/{open_share_id}", response_model=OpenCalendarShare
)
async def update_open_share(
    open_share_id: UUID,
    request: UpdateOpenShareScopeRequest,
    user_id: int = Depends(get_current_user_id),
    use_case: UpdateOpenShareScopeUseCase = Depends(
        get_update_open_share_scope_use_case
    ),
) -> OpenCalendarShare:
    try:
        return await use_case.execute(
            owner_user_id=user_id,
            open_share_id=open_share_id,
            category_ids=request.category_ids,
            privacy_level=request.privacy_level,
            expires_at=request.expires_at,
        )
    except ShareNotFoundError:
        raise HTTPException(status_code=404, detail=SHARE_NOT_FOUND_MESSAGE)
    except CategoryOwnershipError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(
            "Failed to update open share",
            extra={
                "open_share_id": str(open_share_id),
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=500,
            detail="Failed to update share due to an internal error.",
        )
