"""
Memory implementations of EventRepository and EventExceptionRepository.
"""

import logging
from datetime import datetime
from typing import List, Optional

from calcore.domain import Event, EventException
from calcore.repositories import EventExceptionRepository, EventRepository
from calcore.sync import select_changed

from .store import MemoryStore

logger = logging.getLogger(__name__)


class MemoryEventRepository(EventRepository):
    """Events held in a MemoryStore."""

    def __init__(self, store: MemoryStore) -> None:
        self.logger = logger
        self.store = store
        logger.debug("Initializing MemoryEventRepository")

    async def save(self, event: Event) -> None:
        self.store.events[event.event_id] = event.model_copy(deep=True)
        self.logger.debug(
            "Saved event", extra={"event_id": event.event_id}
        )

    async def get_by_ids(self, event_ids: List[int]) -> List[Event]:
        return [
            self.store.events[event_id].model_copy(deep=True)
            for event_id in dict.fromkeys(event_ids)
            if event_id in self.store.events
        ]

    async def get_active_for_owners(
        self, owner_user_ids: List[int], starting_before: datetime
    ) -> List[Event]:
        owners = set(owner_user_ids)
        events = [
            event.model_copy(deep=True)
            for event in self.store.events.values()
            if event.owner_user_id in owners
            and event.deleted_at is None
            and event.start_time < starting_before
        ]
        events.sort(key=lambda e: (e.start_time, e.event_id))
        self.logger.debug(
            "Retrieved active events",
            extra={"owner_user_ids": sorted(owners), "count": len(events)},
        )
        return events

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Event]:
        owned = [
            event.model_copy(deep=True)
            for event in self.store.events.values()
            if event.owner_user_id == owner_user_id
        ]
        owned.sort(key=lambda e: e.event_id)
        return select_changed(owned, since)


class MemoryEventExceptionRepository(EventExceptionRepository):
    """Event exceptions held in a MemoryStore."""

    def __init__(self, store: MemoryStore) -> None:
        self.logger = logger
        self.store = store
        logger.debug("Initializing MemoryEventExceptionRepository")

    async def save(self, exception: EventException) -> None:
        self.store.exceptions[exception.exception_id] = exception.model_copy(
            deep=True
        )

    async def get_for_events(
        self, event_ids: List[int]
    ) -> List[EventException]:
        wanted = set(event_ids)
        exceptions = [
            exception.model_copy(deep=True)
            for exception in self.store.exceptions.values()
            if exception.event_id in wanted and exception.deleted_at is None
        ]
        exceptions.sort(key=lambda e: e.exception_id)
        return exceptions

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[EventException]:
        owned_event_ids = {
            event.event_id
            for event in self.store.events.values()
            if event.owner_user_id == owner_user_id
        }
        exceptions = [
            exception.model_copy(deep=True)
            for exception in self.store.exceptions.values()
            if exception.event_id in owned_event_ids
        ]
        exceptions.sort(key=lambda e: e.exception_id)
        return select_changed(exceptions, since)

    async def get_changed_for_events(
        self, event_ids: List[int], since: Optional[datetime]
    ) -> List[EventException]:
        wanted = set(event_ids)
        exceptions = [
            exception.model_copy(deep=True)
            for exception in self.store.exceptions.values()
            if exception.event_id in wanted
        ]
        exceptions.sort(key=lambda e: e.exception_id)
        return select_changed(exceptions, since)
