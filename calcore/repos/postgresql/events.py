"""
PostgreSQL implementations of EventRepository and EventExceptionRepository.
"""

import logging
from datetime import datetime
from typing import List, Optional

from asyncpg import Pool

from calcore.domain import Event, EventException
from calcore.repositories import EventExceptionRepository, EventRepository

from .schema import changed_since_clause

logger = logging.getLogger(__name__)

EVENT_COLUMNS = """
    event_id, owner_user_id, category_id, title, description,
    start_time, end_time, location, rrule,
    created_at, updated_at, deleted_at
"""

EXCEPTION_COLUMNS = """
    x.exception_id, x.event_id, x.original_occurrence_time, x.is_deleted,
    x.title, x.description, x.start_time, x.end_time, x.location,
    x.created_at, x.updated_at, x.deleted_at
"""


class PostgreSQLEventRepository(EventRepository):
    """
    PostgreSQL implementation of EventRepository.
    """

    def __init__(self, pool: Pool):
        """
        Initialize with an asyncpg connection pool.

        Args:
            pool: asyncpg connection pool for database operations
        """
        self.pool = pool
        logger.debug("Initialized PostgreSQLEventRepository")

    async def save(self, event: Event) -> None:
        query = f"""
            INSERT INTO events ({EVENT_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            ON CONFLICT (event_id) DO UPDATE SET
                owner_user_id = EXCLUDED.owner_user_id,
                category_id = EXCLUDED.category_id,
                title = EXCLUDED.title,
                description = EXCLUDED.description,
                start_time = EXCLUDED.start_time,
                end_time = EXCLUDED.end_time,
                location = EXCLUDED.location,
                rrule = EXCLUDED.rrule,
                updated_at = EXCLUDED.updated_at,
                deleted_at = EXCLUDED.deleted_at
        """
        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                event.event_id,
                event.owner_user_id,
                event.category_id,
                event.title,
                event.description,
                event.start_time,
                event.end_time,
                event.location,
                event.rrule,
                event.created_at,
                event.updated_at,
                event.deleted_at,
            )
        logger.debug("Saved event", extra={"event_id": event.event_id})

    async def get_by_ids(self, event_ids: List[int]) -> List[Event]:
        if not event_ids:
            return []

        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {EVENT_COLUMNS}
                FROM events
                WHERE event_id = ANY($1::int[])
                ORDER BY event_id
            """
            rows = await conn.fetch(query, list(event_ids))

        return [Event.model_validate(dict(row)) for row in rows]

    async def get_active_for_owners(
        self, owner_user_ids: List[int], starting_before: datetime
    ) -> List[Event]:
        if not owner_user_ids:
            return []

        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {EVENT_COLUMNS}
                FROM events
                WHERE owner_user_id = ANY($1::int[])
                  AND deleted_at IS NULL
                  AND start_time < $2
                ORDER BY start_time, event_id
            """
            rows = await conn.fetch(
                query, list(owner_user_ids), starting_before
            )

        events = [Event.model_validate(dict(row)) for row in rows]
        logger.debug(
            f"Retrieved {len(events)} candidate events",
            extra={
                "owner_user_ids": list(owner_user_ids),
                "starting_before": starting_before.isoformat(),
            },
        )
        return events

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Event]:
        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {EVENT_COLUMNS}
                FROM events
                WHERE owner_user_id = $1
                  AND {changed_since_clause("$2")}
                ORDER BY event_id
            """
            rows = await conn.fetch(query, owner_user_id, since)

        return [Event.model_validate(dict(row)) for row in rows]


class PostgreSQLEventExceptionRepository(EventExceptionRepository):
    """
    PostgreSQL implementation of EventExceptionRepository.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLEventExceptionRepository")

    async def save(self, exception: EventException) -> None:
        query = """
            INSERT INTO event_exceptions (
                exception_id, event_id, original_occurrence_time,
                is_deleted, title, description, start_time, end_time,
                location, created_at, updated_at, deleted_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            ON CONFLICT (exception_id) DO UPDATE SET
                original_occurrence_time = EXCLUDED.original_occurrence_time,
                is_deleted = EXCLUDED.is_deleted,
                title = EXCLUDED.title,
                description = EXCLUDED.description,
                start_time = EXCLUDED.start_time,
                end_time = EXCLUDED.end_time,
                location = EXCLUDED.location,
                updated_at = EXCLUDED.updated_at,
                deleted_at = EXCLUDED.deleted_at
        """
        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                exception.exception_id,
                exception.event_id,
                exception.original_occurrence_time,
                exception.is_deleted,
                exception.title,
                exception.description,
                exception.start_time,
                exception.end_time,
                exception.location,
                exception.created_at,
                exception.updated_at,
                exception.deleted_at,
            )

    async def get_for_events(
        self, event_ids: List[int]
    ) -> List[EventException]:
        if not event_ids:
            return []

        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {EXCEPTION_COLUMNS}
                FROM event_exceptions x
                WHERE x.event_id = ANY($1::int[])
                  AND x.deleted_at IS NULL
                ORDER BY x.exception_id
            """
            rows = await conn.fetch(query, list(event_ids))

        return [EventException.model_validate(dict(row)) for row in rows]

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[EventException]:
        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {EXCEPTION_COLUMNS}
                FROM event_exceptions x
                JOIN events e ON e.event_id = x.event_id
                WHERE e.owner_user_id = $1
                  AND {changed_since_clause("$2", "x")}
                ORDER BY x.exception_id
            """
            rows = await conn.fetch(query, owner_user_id, since)

        return [EventException.model_validate(dict(row)) for row in rows]

    async def get_changed_for_events(
        self, event_ids: List[int], since: Optional[datetime]
    ) -> List[EventException]:
        if not event_ids:
            return []

        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {EXCEPTION_COLUMNS}
                FROM event_exceptions x
                WHERE x.event_id = ANY($1::int[])
                  AND {changed_since_clause("$2", "x")}
                ORDER BY x.exception_id
            """
            rows = await conn.fetch(query, list(event_ids), since)

        return [EventException.model_validate(dict(row)) for row in rows]
