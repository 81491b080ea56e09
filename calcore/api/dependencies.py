"""
Dependency injection for FastAPI endpoints.

Process resources (the asyncpg pool or, without a database, the in-memory
store) are created in the application lifespan and kept on ``app.state``.
Repositories and use cases are built per request from those resources, so
tests can swap any of them through ``app.dependency_overrides``.
"""

import logging
from typing import Optional

import asyncpg
from fastapi import Depends, HTTPException, Request

from calcore.config import Settings
from calcore.recurrence import RecurrenceExpander
from calcore.repos import Repositories
from calcore.repos.memory import MemoryStore, memory_repositories
from calcore.repos.postgresql import postgresql_repositories
from calcore.usecase import (
    GetOccurrencesUseCase,
    ListReceivedSharesUseCase,
    OpenShareViewUseCase,
    OwnedSyncUseCase,
    RevokeShareUseCase,
    SharedCalendarSyncUseCase,
    SharedCalendarViewUseCase,
    UpdateOpenShareScopeUseCase,
    UpdateShareScopeUseCase,
)

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Owns the storage resources of one application instance.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.pool: Optional[asyncpg.Pool] = None
        self.store: Optional[MemoryStore] = None

    async def startup(self) -> None:
        if self.settings.database_url:
            logger.debug(
                "Creating database pool",
                extra={
                    "min_size": self.settings.db_pool_min_size,
                    "max_size": self.settings.db_pool_max_size,
                },
            )
            self.pool = await asyncpg.create_pool(
                dsn=self.settings.database_url,
                min_size=self.settings.db_pool_min_size,
                max_size=self.settings.db_pool_max_size,
            )
        else:
            logger.warning(
                "DATABASE_URL not set; using in-memory store"
            )
            self.store = MemoryStore()

    async def shutdown(self) -> None:
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    def repositories(self) -> Repositories:
        if self.pool is not None:
            return postgresql_repositories(self.pool)
        if self.store is None:
            raise RuntimeError("DependencyContainer has not been started")
        return memory_repositories(self.store)


def get_container(request: Request) -> DependencyContainer:
    """FastAPI dependency for the lifespan-managed container."""
    return request.app.state.container  # type: ignore[no-any-return]


def get_settings(
    container: DependencyContainer = Depends(get_container),
) -> Settings:
    return container.settings


def get_repositories(
    container: DependencyContainer = Depends(get_container),
) -> Repositories:
    """FastAPI dependency for the repository bundle."""
    return container.repositories()


def get_expander(
    settings: Settings = Depends(get_settings),
) -> RecurrenceExpander:
    return RecurrenceExpander(
        max_occurrences=settings.max_occurrences_per_event
    )


def get_current_user_id(
    request: Request, settings: Settings = Depends(get_settings)
) -> int:
    """
    The authenticated principal id.

    Credential checks happen upstream; the auth layer forwards the
    principal through a trusted header.
    """
    raw = request.headers.get(settings.user_id_header)
    if raw is None or not raw.strip().isdigit() or int(raw) <= 0:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return int(raw)


def get_occurrences_use_case(
    repos: Repositories = Depends(get_repositories),
    expander: RecurrenceExpander = Depends(get_expander),
    settings: Settings = Depends(get_settings),
) -> GetOccurrencesUseCase:
    return GetOccurrencesUseCase(
        event_repo=repos.events,
        exception_repo=repos.exceptions,
        invitation_repo=repos.invitations,
        expander=expander,
        max_range_days=settings.max_query_range_days,
    )


def get_shared_calendar_view_use_case(
    repos: Repositories = Depends(get_repositories),
    expander: RecurrenceExpander = Depends(get_expander),
    settings: Settings = Depends(get_settings),
) -> SharedCalendarViewUseCase:
    return SharedCalendarViewUseCase(
        share_repo=repos.shares,
        event_repo=repos.events,
        exception_repo=repos.exceptions,
        deadline_repo=repos.deadlines,
        invitation_repo=repos.invitations,
        expander=expander,
        max_range_days=settings.max_query_range_days,
    )


def get_open_share_view_use_case(
    repos: Repositories = Depends(get_repositories),
    expander: RecurrenceExpander = Depends(get_expander),
    settings: Settings = Depends(get_settings),
) -> OpenShareViewUseCase:
    return OpenShareViewUseCase(
        open_share_repo=repos.open_shares,
        event_repo=repos.events,
        exception_repo=repos.exceptions,
        deadline_repo=repos.deadlines,
        invitation_repo=repos.invitations,
        expander=expander,
        max_range_days=settings.max_query_range_days,
    )


def get_list_received_shares_use_case(
    repos: Repositories = Depends(get_repositories),
) -> ListReceivedSharesUseCase:
    return ListReceivedSharesUseCase(share_repo=repos.shares)


def get_owned_sync_use_case(
    repos: Repositories = Depends(get_repositories),
) -> OwnedSyncUseCase:
    return OwnedSyncUseCase.from_repositories(repos)


def get_shared_calendar_sync_use_case(
    repos: Repositories = Depends(get_repositories),
) -> SharedCalendarSyncUseCase:
    return SharedCalendarSyncUseCase(
        share_repo=repos.shares,
        event_repo=repos.events,
        deadline_repo=repos.deadlines,
        invitation_repo=repos.invitations,
    )


def get_update_share_scope_use_case(
    repos: Repositories = Depends(get_repositories),
) -> UpdateShareScopeUseCase:
    return UpdateShareScopeUseCase(
        share_repo=repos.shares, category_repo=repos.categories
    )


def get_update_open_share_scope_use_case(
    repos: Repositories = Depends(get_repositories),
) -> UpdateOpenShareScopeUseCase:
    return UpdateOpenShareScopeUseCase(
        open_share_repo=repos.open_shares, category_repo=repos.categories
    )


def get_revoke_share_use_case(
    repos: Repositories = Depends(get_repositories),
) -> RevokeShareUseCase:
    return RevokeShareUseCase(share_repo=repos.shares)
