"""
PostgreSQL implementations of ShareRepository and OpenShareRepository.

A share's category scope lives in a link table. Every write that touches
the scope runs inside one transaction, locking the share row first, so a
concurrent reader sees either the old scope or the new one.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from asyncpg import Connection, Pool

from calcore.domain import CalendarShare, OpenCalendarShare, PrivacyLevel
from calcore.repositories import OpenShareRepository, ShareRepository

from .schema import changed_since_clause

logger = logging.getLogger(__name__)

SHARE_SELECT = """
    SELECT
        s.share_id, s.owner_user_id, s.shared_with_user_id, s.message,
        s.privacy_level, s.expires_at,
        s.created_at, s.updated_at, s.deleted_at,
        ARRAY(
            SELECT c.category_id
            FROM calendar_share_categories c
            WHERE c.share_id = s.share_id
            ORDER BY c.category_id
        ) AS shared_category_ids
    FROM calendar_shares s
"""

OPEN_SHARE_SELECT = """
    SELECT
        s.open_share_id, s.owner_user_id, s.privacy_level, s.expires_at,
        s.created_at, s.updated_at, s.deleted_at,
        ARRAY(
            SELECT c.category_id
            FROM open_calendar_share_categories c
            WHERE c.open_share_id = s.open_share_id
            ORDER BY c.category_id
        ) AS shared_category_ids
    FROM open_calendar_shares s
"""


async def _replace_links(
    conn: Connection,
    table: str,
    key_column: str,
    key: object,
    category_ids: Iterable[int],
) -> None:
    await conn.execute(f"DELETE FROM {table} WHERE {key_column} = $1", key)
    await conn.executemany(
        f"INSERT INTO {table} ({key_column}, category_id) VALUES ($1, $2)",
        [(key, category_id) for category_id in sorted(set(category_ids))],
    )


class PostgreSQLShareRepository(ShareRepository):
    """
    PostgreSQL implementation of ShareRepository.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLShareRepository")

    async def save(self, share: CalendarShare) -> None:
        query = """
            INSERT INTO calendar_shares (
                share_id, owner_user_id, shared_with_user_id, message,
                privacy_level, expires_at, created_at, updated_at, deleted_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            ON CONFLICT (share_id) DO UPDATE SET
                message = EXCLUDED.message,
                privacy_level = EXCLUDED.privacy_level,
                expires_at = EXCLUDED.expires_at,
                updated_at = EXCLUDED.updated_at,
                deleted_at = EXCLUDED.deleted_at
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    query,
                    share.share_id,
                    share.owner_user_id,
                    share.shared_with_user_id,
                    share.message,
                    share.privacy_level.value,
                    share.expires_at,
                    share.created_at,
                    share.updated_at,
                    share.deleted_at,
                )
                await _replace_links(
                    conn,
                    "calendar_share_categories",
                    "share_id",
                    share.share_id,
                    share.shared_category_ids,
                )
        logger.debug("Saved share", extra={"share_id": share.share_id})

    async def get(self, share_id: int) -> Optional[CalendarShare]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                SHARE_SELECT + " WHERE s.share_id = $1", share_id
            )
        return CalendarShare.model_validate(dict(row)) if row else None

    async def get_for_viewer(
        self, share_id: int, viewer_user_id: int
    ) -> Optional[CalendarShare]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                SHARE_SELECT
                + " WHERE s.share_id = $1 AND s.shared_with_user_id = $2",
                share_id,
                viewer_user_id,
            )
        return CalendarShare.model_validate(dict(row)) if row else None

    async def get_received(self, viewer_user_id: int) -> List[CalendarShare]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                SHARE_SELECT
                + """
                WHERE s.shared_with_user_id = $1 AND s.deleted_at IS NULL
                ORDER BY s.created_at DESC
                """,
                viewer_user_id,
            )
        return [CalendarShare.model_validate(dict(row)) for row in rows]

    async def get_changed_created(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[CalendarShare]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                SHARE_SELECT
                + f"""
                WHERE s.owner_user_id = $1
                  AND {changed_since_clause("$2", "s")}
                ORDER BY s.share_id
                """,
                owner_user_id,
                since,
            )
        return [CalendarShare.model_validate(dict(row)) for row in rows]

    async def get_changed_received(
        self, viewer_user_id: int, since: Optional[datetime]
    ) -> List[CalendarShare]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                SHARE_SELECT
                + f"""
                WHERE s.shared_with_user_id = $1
                  AND {changed_since_clause("$2", "s")}
                ORDER BY s.share_id
                """,
                viewer_user_id,
                since,
            )
        return [CalendarShare.model_validate(dict(row)) for row in rows]

    async def replace_scope(
        self,
        share_id: int,
        category_ids: List[int],
        privacy_level: PrivacyLevel,
        expires_at: Optional[datetime],
        message: Optional[str],
        updated_at: datetime,
    ) -> Optional[CalendarShare]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                updated = await conn.fetchval(
                    """
                    UPDATE calendar_shares
                    SET privacy_level = $2, expires_at = $3,
                        message = $4, updated_at = $5
                    WHERE share_id = $1
                    RETURNING share_id
                    """,
                    share_id,
                    privacy_level.value,
                    expires_at,
                    message,
                    updated_at,
                )
                if updated is None:
                    return None
                await _replace_links(
                    conn,
                    "calendar_share_categories",
                    "share_id",
                    share_id,
                    category_ids,
                )
                row = await conn.fetchrow(
                    SHARE_SELECT + " WHERE s.share_id = $1", share_id
                )

        logger.info(
            "Replaced share scope",
            extra={"share_id": share_id, "category_ids": sorted(category_ids)},
        )
        return CalendarShare.model_validate(dict(row))

    async def soft_delete(
        self, share_id: int, deleted_at: datetime
    ) -> Optional[CalendarShare]:
        async with self.pool.acquire() as conn:
            updated = await conn.fetchval(
                """
                UPDATE calendar_shares
                SET deleted_at = $2, updated_at = $2
                WHERE share_id = $1
                RETURNING share_id
                """,
                share_id,
                deleted_at,
            )
        if updated is None:
            return None
        return await self.get(share_id)


class PostgreSQLOpenShareRepository(OpenShareRepository):
    """
    PostgreSQL implementation of OpenShareRepository.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLOpenShareRepository")

    async def save(self, share: OpenCalendarShare) -> None:
        query = """
            INSERT INTO open_calendar_shares (
                open_share_id, owner_user_id, privacy_level, expires_at,
                created_at, updated_at, deleted_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (open_share_id) DO UPDATE SET
                privacy_level = EXCLUDED.privacy_level,
                expires_at = EXCLUDED.expires_at,
                updated_at = EXCLUDED.updated_at,
                deleted_at = EXCLUDED.deleted_at
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    query,
                    share.open_share_id,
                    share.owner_user_id,
                    share.privacy_level.value,
                    share.expires_at,
                    share.created_at,
                    share.updated_at,
                    share.deleted_at,
                )
                await _replace_links(
                    conn,
                    "open_calendar_share_categories",
                    "open_share_id",
                    share.open_share_id,
                    share.shared_category_ids,
                )

    async def get(self, open_share_id: UUID) -> Optional[OpenCalendarShare]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                OPEN_SHARE_SELECT + " WHERE s.open_share_id = $1",
                open_share_id,
            )
        return OpenCalendarShare.model_validate(dict(row)) if row else None

    async def replace_scope(
        self,
        open_share_id: UUID,
        category_ids: List[int],
        privacy_level: PrivacyLevel,
        expires_at: Optional[datetime],
        updated_at: datetime,
    ) -> Optional[OpenCalendarShare]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                updated = await conn.fetchval(
                    """
                    UPDATE open_calendar_shares
                    SET privacy_level = $2, expires_at = $3, updated_at = $4
                    WHERE open_share_id = $1
                    RETURNING open_share_id
                    """,
                    open_share_id,
                    privacy_level.value,
                    expires_at,
                    updated_at,
                )
                if updated is None:
                    return None
                await _replace_links(
                    conn,
                    "open_calendar_share_categories",
                    "open_share_id",
                    open_share_id,
                    category_ids,
                )
                row = await conn.fetchrow(
                    OPEN_SHARE_SELECT + " WHERE s.open_share_id = $1",
                    open_share_id,
                )
        return OpenCalendarShare.model_validate(dict(row))
