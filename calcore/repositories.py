"""
Repository protocols for the calendar store.

Each protocol covers one table (or table plus link table). Methods named
``get_changed_*`` apply the sync change predicate: with ``since`` they
return rows updated strictly after it, tombstones included while their
deletion is newer than ``since``; without it they return live rows only.
"""

from datetime import datetime
from typing import List, Optional, Protocol, Set, runtime_checkable
from uuid import UUID

from .domain import (
    CalendarShare,
    Category,
    Deadline,
    Event,
    EventException,
    EventInvitation,
    OpenCalendarShare,
    PrivacyLevel,
)


@runtime_checkable
class EventRepository(Protocol):
    """Protocol for event persistence."""

    async def save(self, event: Event) -> None:
        """Insert or replace an event."""
        ...

    async def get_by_ids(self, event_ids: List[int]) -> List[Event]:
        """Events with these ids, soft-deleted ones included."""
        ...

    async def get_active_for_owners(
        self, owner_user_ids: List[int], starting_before: datetime
    ) -> List[Event]:
        """
        Live events owned by any of the users whose first instance starts
        before ``starting_before``. These are the only events that can
        have an occurrence in a range ending at that instant.
        """
        ...

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Event]:
        """Owned events changed since ``since``."""
        ...


@runtime_checkable
class EventExceptionRepository(Protocol):
    """Protocol for recurring-event exception persistence."""

    async def save(self, exception: EventException) -> None:
        ...

    async def get_for_events(
        self, event_ids: List[int]
    ) -> List[EventException]:
        """Live exceptions attached to any of these events."""
        ...

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[EventException]:
        """Exceptions on the user's events changed since ``since``."""
        ...

    async def get_changed_for_events(
        self, event_ids: List[int], since: Optional[datetime]
    ) -> List[EventException]:
        """Exceptions on any of these events changed since ``since``."""
        ...


@runtime_checkable
class DeadlineRepository(Protocol):
    """Protocol for deadline persistence."""

    async def save(self, deadline: Deadline) -> None:
        ...

    async def get_active_due_between(
        self, owner_user_id: int, start: datetime, end: datetime
    ) -> List[Deadline]:
        """Live deadlines due in ``[start, end)``."""
        ...

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Deadline]:
        ...


@runtime_checkable
class CategoryRepository(Protocol):
    """Protocol for category persistence."""

    async def save(self, category: Category) -> None:
        ...

    async def get_owned_ids(
        self, owner_user_id: int, category_ids: List[int]
    ) -> Set[int]:
        """Subset of ``category_ids`` that are live and owned by the user."""
        ...

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Category]:
        ...


@runtime_checkable
class ShareRepository(Protocol):
    """Protocol for private calendar share persistence."""

    async def save(self, share: CalendarShare) -> None:
        """Insert or replace a share and its category links."""
        ...

    async def get(self, share_id: int) -> Optional[CalendarShare]:
        """A share by id, soft-deleted or not."""
        ...

    async def get_for_viewer(
        self, share_id: int, viewer_user_id: int
    ) -> Optional[CalendarShare]:
        """A share by id, only if addressed to the viewer. Includes
        soft-deleted and expired shares."""
        ...

    async def get_received(self, viewer_user_id: int) -> List[CalendarShare]:
        """Live shares addressed to the viewer."""
        ...

    async def get_changed_created(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[CalendarShare]:
        ...

    async def get_changed_received(
        self, viewer_user_id: int, since: Optional[datetime]
    ) -> List[CalendarShare]:
        ...

    async def replace_scope(
        self,
        share_id: int,
        category_ids: List[int],
        privacy_level: PrivacyLevel,
        expires_at: Optional[datetime],
        message: Optional[str],
        updated_at: datetime,
    ) -> Optional[CalendarShare]:
        """
        Atomically replace the category set and update the share row.
        Readers never observe a partially replaced scope. Returns the
        updated share, or None if it does not exist.
        """
        ...

    async def soft_delete(
        self, share_id: int, deleted_at: datetime
    ) -> Optional[CalendarShare]:
        """Set ``deleted_at`` and ``updated_at``. Returns the updated share."""
        ...


@runtime_checkable
class OpenShareRepository(Protocol):
    """Protocol for public (open) calendar share persistence."""

    async def save(self, share: OpenCalendarShare) -> None:
        ...

    async def get(self, open_share_id: UUID) -> Optional[OpenCalendarShare]:
        """An open share by id, soft-deleted or not."""
        ...

    async def replace_scope(
        self,
        open_share_id: UUID,
        category_ids: List[int],
        privacy_level: PrivacyLevel,
        expires_at: Optional[datetime],
        updated_at: datetime,
    ) -> Optional[OpenCalendarShare]:
        """Atomically replace the category set and update the share row."""
        ...


@runtime_checkable
class InvitationRepository(Protocol):
    """Protocol for event invitation persistence."""

    async def save(self, invitation: EventInvitation) -> None:
        ...

    async def get_accepted_for_user(
        self, invited_user_id: int
    ) -> List[EventInvitation]:
        """Accepted invitations of the user, soft-deleted ones included."""
        ...

    async def get_changed_received(
        self, invited_user_id: int, since: Optional[datetime]
    ) -> List[EventInvitation]:
        ...
