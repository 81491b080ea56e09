"""
PostgreSQL implementations of DeadlineRepository and CategoryRepository.
"""

import logging
from datetime import datetime
from typing import List, Optional, Set

from asyncpg import Pool

from calcore.domain import Category, Deadline
from calcore.repositories import CategoryRepository, DeadlineRepository

from .schema import changed_since_clause

logger = logging.getLogger(__name__)

DEADLINE_COLUMNS = """
    deadline_id, owner_user_id, category_id, title, description, due_date,
    priority, workload_magnitude, workload_unit,
    created_at, updated_at, deleted_at
"""

CATEGORY_COLUMNS = """
    category_id, owner_user_id, name, color, is_visible,
    created_at, updated_at, deleted_at
"""


class PostgreSQLDeadlineRepository(DeadlineRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLDeadlineRepository")

    async def save(self, deadline: Deadline) -> None:
        query = f"""
            INSERT INTO deadlines ({DEADLINE_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
            ON CONFLICT (deadline_id) DO UPDATE SET
                category_id = EXCLUDED.category_id,
                title = EXCLUDED.title,
                description = EXCLUDED.description,
                due_date = EXCLUDED.due_date,
                priority = EXCLUDED.priority,
                workload_magnitude = EXCLUDED.workload_magnitude,
                workload_unit = EXCLUDED.workload_unit,
                updated_at = EXCLUDED.updated_at,
                deleted_at = EXCLUDED.deleted_at
        """
        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                deadline.deadline_id,
                deadline.owner_user_id,
                deadline.category_id,
                deadline.title,
                deadline.description,
                deadline.due_date,
                deadline.priority.value,
                deadline.workload_magnitude,
                (
                    deadline.workload_unit.value
                    if deadline.workload_unit
                    else None
                ),
                deadline.created_at,
                deadline.updated_at,
                deadline.deleted_at,
            )

    async def get_active_due_between(
        self, owner_user_id: int, start: datetime, end: datetime
    ) -> List[Deadline]:
        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {DEADLINE_COLUMNS}
                FROM deadlines
                WHERE owner_user_id = $1
                  AND deleted_at IS NULL
                  AND due_date >= $2
                  AND due_date < $3
                ORDER BY due_date, deadline_id
            """
            rows = await conn.fetch(query, owner_user_id, start, end)

        return [Deadline.model_validate(dict(row)) for row in rows]

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Deadline]:
        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {DEADLINE_COLUMNS}
                FROM deadlines
                WHERE owner_user_id = $1
                  AND {changed_since_clause("$2")}
                ORDER BY deadline_id
            """
            rows = await conn.fetch(query, owner_user_id, since)

        return [Deadline.model_validate(dict(row)) for row in rows]


class PostgreSQLCategoryRepository(CategoryRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLCategoryRepository")

    async def save(self, category: Category) -> None:
        query = f"""
            INSERT INTO categories ({CATEGORY_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (category_id) DO UPDATE SET
                name = EXCLUDED.name,
                color = EXCLUDED.color,
                is_visible = EXCLUDED.is_visible,
                updated_at = EXCLUDED.updated_at,
                deleted_at = EXCLUDED.deleted_at
        """
        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                category.category_id,
                category.owner_user_id,
                category.name,
                category.color,
                category.is_visible,
                category.created_at,
                category.updated_at,
                category.deleted_at,
            )

    async def get_owned_ids(
        self, owner_user_id: int, category_ids: List[int]
    ) -> Set[int]:
        if not category_ids:
            return set()

        async with self.pool.acquire() as conn:
            query = """
                SELECT category_id
                FROM categories
                WHERE owner_user_id = $1
                  AND category_id = ANY($2::int[])
                  AND deleted_at IS NULL
            """
            rows = await conn.fetch(query, owner_user_id, list(category_ids))

        return {row["category_id"] for row in rows}

    async def get_changed_for_owner(
        self, owner_user_id: int, since: Optional[datetime]
    ) -> List[Category]:
        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {CATEGORY_COLUMNS}
                FROM categories
                WHERE owner_user_id = $1
                  AND {changed_since_clause("$2")}
                ORDER BY category_id
            """
            rows = await conn.fetch(query, owner_user_id, since)

        return [Category.model_validate(dict(row)) for row in rows]
