"""
Shared in-memory storage backing the memory repositories.

All memory repositories of one application instance are bound to the same
MemoryStore so that cross-table lookups (exceptions by event owner, for
example) see a consistent picture. Rows are copied on the way in and out,
so callers can never mutate stored state through a returned model.
"""

import logging
from typing import Dict
from uuid import UUID

from calcore.domain import (
    CalendarShare,
    Category,
    Deadline,
    Event,
    EventException,
    EventInvitation,
    OpenCalendarShare,
)

logger = logging.getLogger(__name__)


class MemoryStore:
    """Plain dictionaries keyed by primary key, one per table."""

    def __init__(self) -> None:
        self.events: Dict[int, Event] = {}
        self.exceptions: Dict[int, EventException] = {}
        self.deadlines: Dict[int, Deadline] = {}
        self.categories: Dict[int, Category] = {}
        self.shares: Dict[int, CalendarShare] = {}
        self.open_shares: Dict[UUID, OpenCalendarShare] = {}
        self.invitations: Dict[int, EventInvitation] = {}
        logger.debug("Initialized MemoryStore")

    def clear(self) -> None:
        for table in (
            self.events,
            self.exceptions,
            self.deadlines,
            self.categories,
            self.shares,
            self.open_shares,
            self.invitations,
        ):
            table.clear()
