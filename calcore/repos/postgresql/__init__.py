"""PostgreSQL implementations of calendar repositories."""

from asyncpg import Pool

from calcore.repos import Repositories

from .deadlines import PostgreSQLCategoryRepository, PostgreSQLDeadlineRepository
from .events import PostgreSQLEventExceptionRepository, PostgreSQLEventRepository
from .invitations import PostgreSQLInvitationRepository
from .schema import SCHEMA_SQL, create_schema
from .shares import PostgreSQLOpenShareRepository, PostgreSQLShareRepository


def postgresql_repositories(pool: Pool) -> Repositories:
    """Bundle PostgreSQL repositories sharing one connection pool."""
    return Repositories(
        events=PostgreSQLEventRepository(pool),
        exceptions=PostgreSQLEventExceptionRepository(pool),
        deadlines=PostgreSQLDeadlineRepository(pool),
        categories=PostgreSQLCategoryRepository(pool),
        shares=PostgreSQLShareRepository(pool),
        open_shares=PostgreSQLOpenShareRepository(pool),
        invitations=PostgreSQLInvitationRepository(pool),
    ).validated()


__all__ = [
    "PostgreSQLCategoryRepository",
    "PostgreSQLDeadlineRepository",
    "PostgreSQLEventExceptionRepository",
    "PostgreSQLEventRepository",
    "PostgreSQLInvitationRepository",
    "PostgreSQLOpenShareRepository",
    "PostgreSQLShareRepository",
    "SCHEMA_SQL",
    "create_schema",
    "postgresql_repositories",
]
