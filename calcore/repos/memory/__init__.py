"""
In-memory repositories, used by tests and when no database is configured.
"""

from calcore.repos import Repositories

from .deadlines import MemoryCategoryRepository, MemoryDeadlineRepository
from .events import MemoryEventExceptionRepository, MemoryEventRepository
from .invitations import MemoryInvitationRepository
from .shares import MemoryOpenShareRepository, MemoryShareRepository
from .store import MemoryStore


def memory_repositories(store: MemoryStore) -> Repositories:
    """Bundle memory repositories bound to one store."""
    return Repositories(
        events=MemoryEventRepository(store),
        exceptions=MemoryEventExceptionRepository(store),
        deadlines=MemoryDeadlineRepository(store),
        categories=MemoryCategoryRepository(store),
        shares=MemoryShareRepository(store),
        open_shares=MemoryOpenShareRepository(store),
        invitations=MemoryInvitationRepository(store),
    ).validated()


__all__ = [
    "MemoryCategoryRepository",
    "MemoryDeadlineRepository",
    "MemoryEventExceptionRepository",
    "MemoryEventRepository",
    "MemoryInvitationRepository",
    "MemoryOpenShareRepository",
    "MemoryShareRepository",
    "MemoryStore",
    "memory_repositories",
]
