"""
Memory implementations of ShareRepository and OpenShareRepository.

Scope replacement builds the new share row first and swaps it in with a
single assignment, so no coroutine can observe a half-updated scope.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from calcore.domain import CalendarShare, OpenCalendarShare, PrivacyLevel
from calcore.repositories import OpenShareRepository, ShareRepository
from calcore.sync import select_changed

from .store import MemoryStore

logger = logging.getLogger(__name__)


class MemoryShareRepository(ShareRepository):
    """Private calendar shares held in a MemoryStore."""

    def __init__(self, store: MemoryStore) -> None:
        self.logger = logger
        self.store = store
        logger.debug("Initializing MemoryShareRepository")

    async def save(self, share: CalendarShare) -> None:
        self.store.shares[share.share_id] = share.model_copy(deep=True)
        self.logger.debug("Saved share", extra={"share_id": share.share_id})

    async def get(self, share_id: int) -> Optional[CalendarShare]:
        share = self.store.shares.get(share_id)
        return share.model_copy(deep=True) if share else None

    async def get_for_viewer(
        self, share_id: int, viewer_user_id: int
    ) -> Optional[CalendarShare]:
        share = self.store.shares.get(share_id)
        if share is None or share.shared_with_user_id != viewer_user_id:
            return None
        return share.model_copy(deep=True)

    async def get_received(self, viewer_user_id: int) -> List[CalendarShare]:
        shares = [
            share.model_copy(deep=True)
            for share in self.store.shares.values()
            if share.shared_with_user_id == viewer_user_id
            and share.deleted_at is None
        ]
        shares.sort(key=lambda s: s.created_at, reverse=True)
        return shares

    async def get_changed_created(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[CalendarShare]:
        shares = [
            share.model_copy(deep=True)
            for share in self.store.shares.values()
            if share.owner_user_id == owner_user_id
        ]
        shares.sort(key=lambda s: s.share_id)
        return select_changed(shares, since)

    async def get_changed_received(
        self, viewer_user_id: int, since: Optional[datetime]
    ) -> List[CalendarShare]:
        shares = [
            share.model_copy(deep=True)
            for share in self.store.shares.values()
            if share.shared_with_user_id == viewer_user_id
        ]
        shares.sort(key=lambda s: s.share_id)
        return select_changed(shares, since)

    async def replace_scope(
        self,
        share_id: int,
        category_ids: List[int],
        privacy_level: PrivacyLevel,
        expires_at: Optional[datetime],
        message: Optional[str],
        updated_at: datetime,
    ) -> Optional[CalendarShare]:
        share = self.store.shares.get(share_id)
        if share is None:
            return None
        updated = CalendarShare.model_validate(
            {
                **share.model_dump(),
                "shared_category_ids": list(category_ids),
                "privacy_level": privacy_level,
                "expires_at": expires_at,
                "message": message,
                "updated_at": updated_at,
            }
        )
        self.store.shares[share_id] = updated
        self.logger.debug(
            "Replaced share scope",
            extra={
                "share_id": share_id,
                "category_count": len(updated.shared_category_ids),
            },
        )
        return updated.model_copy(deep=True)

    async def soft_delete(
        self, share_id: int, deleted_at: datetime
    ) -> Optional[CalendarShare]:
        share = self.store.shares.get(share_id)
        if share is None:
            return None
        updated = share.model_copy(
            update={"deleted_at": deleted_at, "updated_at": deleted_at},
            deep=True,
        )
        self.store.shares[share_id] = updated
        return updated.model_copy(deep=True)


class MemoryOpenShareRepository(OpenShareRepository):
    """Open (public) calendar shares held in a MemoryStore."""

    def __init__(self, store: MemoryStore) -> None:
        self.logger = logger
        self.store = store

    async def save(self, share: OpenCalendarShare) -> None:
        self.store.open_shares[share.open_share_id] = share.model_copy(
            deep=True
        )

    async def get(self, open_share_id: UUID) -> Optional[OpenCalendarShare]:
        share = self.store.open_shares.get(open_share_id)
        return share.model_copy(deep=True) if share else None

    async def replace_scope(
        self,
        open_share_id: UUID,
        category_ids: List[int],
        privacy_level: PrivacyLevel,
        expires_at: Optional[datetime],
        updated_at: datetime,
    ) -> Optional[OpenCalendarShare]:
        share = self.store.open_shares.get(open_share_id)
        if share is None:
            return None
        updated = OpenCalendarShare.model_validate(
            {
                **share.model_dump(),
                "shared_category_ids": list(category_ids),
                "privacy_level": privacy_level,
                "expires_at": expires_at,
                "updated_at": updated_at,
            }
        )
        self.store.open_shares[open_share_id] = updated
        return updated.model_copy(deep=True)
