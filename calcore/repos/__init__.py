"""
Repository implementations and the bundle the use cases are wired from.
"""

from typing import NamedTuple

from calcore.repositories import (
    CategoryRepository,
    DeadlineRepository,
    EventExceptionRepository,
    EventRepository,
    InvitationRepository,
    OpenShareRepository,
    ShareRepository,
)
from calcore.validation import ensure_repository_protocol


class Repositories(NamedTuple):
    """One repository per table, all bound to the same store."""

    events: EventRepository
    exceptions: EventExceptionRepository
    deadlines: DeadlineRepository
    categories: CategoryRepository
    shares: ShareRepository
    open_shares: OpenShareRepository
    invitations: InvitationRepository

    def validated(self) -> "Repositories":
        """Check every member against its protocol."""
        return Repositories(
            events=ensure_repository_protocol(self.events, EventRepository),
            exceptions=ensure_repository_protocol(
                self.exceptions, EventExceptionRepository
            ),
            deadlines=ensure_repository_protocol(
                self.deadlines, DeadlineRepository
            ),
            categories=ensure_repository_protocol(
                self.categories, CategoryRepository
            ),
            shares=ensure_repository_protocol(self.shares, ShareRepository),
            open_shares=ensure_repository_protocol(
                self.open_shares, OpenShareRepository
            ),
            invitations=ensure_repository_protocol(
                self.invitations, InvitationRepository
            ),
        )
