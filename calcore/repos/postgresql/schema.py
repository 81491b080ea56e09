"""
PostgreSQL schema for the calendar store.

Enumerations are stored as constrained TEXT so the values match the
domain enums one-to-one. Every mutable table carries created_at,
updated_at and deleted_at; rows are soft-deleted, never removed, because
sync relies on tombstones.
"""

import logging

from asyncpg import Pool

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    category_id SERIAL PRIMARY KEY,
    owner_user_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    color TEXT NOT NULL,
    is_visible BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    deleted_at TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS categories_owner_updated_idx
    ON categories (owner_user_id, updated_at);

CREATE TABLE IF NOT EXISTS events (
    event_id SERIAL PRIMARY KEY,
    owner_user_id INTEGER NOT NULL,
    category_id INTEGER REFERENCES categories (category_id),
    title TEXT NOT NULL,
    description TEXT,
    start_time TIMESTAMPTZ NOT NULL,
    end_time TIMESTAMPTZ NOT NULL,
    location TEXT,
    rrule TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    deleted_at TIMESTAMPTZ,
    CHECK (end_time > start_time)
);
CREATE INDEX IF NOT EXISTS events_owner_start_idx
    ON events (owner_user_id, start_time);
CREATE INDEX IF NOT EXISTS events_owner_updated_idx
    ON events (owner_user_id, updated_at);

CREATE TABLE IF NOT EXISTS event_exceptions (
    exception_id SERIAL PRIMARY KEY,
    event_id INTEGER NOT NULL REFERENCES events (event_id),
    original_occurrence_time TIMESTAMPTZ NOT NULL,
    is_deleted BOOLEAN NOT NULL DEFAULT FALSE,
    title TEXT,
    description TEXT,
    start_time TIMESTAMPTZ,
    end_time TIMESTAMPTZ,
    location TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    deleted_at TIMESTAMPTZ,
    UNIQUE (event_id, original_occurrence_time),
    CHECK (
        is_deleted
        OR (start_time IS NOT NULL
            AND end_time IS NOT NULL
            AND end_time > start_time)
    )
);

CREATE TABLE IF NOT EXISTS deadlines (
    deadline_id SERIAL PRIMARY KEY,
    owner_user_id INTEGER NOT NULL,
    category_id INTEGER REFERENCES categories (category_id),
    title TEXT NOT NULL,
    description TEXT,
    due_date TIMESTAMPTZ NOT NULL,
    priority TEXT NOT NULL DEFAULT 'normal'
        CHECK (priority IN ('normal', 'important', 'urgent')),
    workload_magnitude INTEGER CHECK (workload_magnitude > 0),
    workload_unit TEXT
        CHECK (workload_unit IN ('minutes', 'hours', 'days')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    deleted_at TIMESTAMPTZ,
    CHECK ((workload_magnitude IS NULL) = (workload_unit IS NULL))
);
CREATE INDEX IF NOT EXISTS deadlines_owner_due_idx
    ON deadlines (owner_user_id, due_date);

CREATE TABLE IF NOT EXISTS calendar_shares (
    share_id SERIAL PRIMARY KEY,
    owner_user_id INTEGER NOT NULL,
    shared_with_user_id INTEGER NOT NULL,
    message TEXT,
    privacy_level TEXT NOT NULL DEFAULT 'full'
        CHECK (privacy_level IN ('full', 'limited')),
    expires_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    deleted_at TIMESTAMPTZ,
    CHECK (owner_user_id <> shared_with_user_id)
);
CREATE INDEX IF NOT EXISTS calendar_shares_viewer_idx
    ON calendar_shares (shared_with_user_id);

CREATE TABLE IF NOT EXISTS calendar_share_categories (
    share_id INTEGER NOT NULL REFERENCES calendar_shares (share_id),
    category_id INTEGER NOT NULL REFERENCES categories (category_id),
    PRIMARY KEY (share_id, category_id)
);

CREATE TABLE IF NOT EXISTS open_calendar_shares (
    open_share_id UUID PRIMARY KEY,
    owner_user_id INTEGER NOT NULL,
    privacy_level TEXT NOT NULL DEFAULT 'full'
        CHECK (privacy_level IN ('full', 'limited')),
    expires_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    deleted_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS open_calendar_share_categories (
    open_share_id UUID NOT NULL
        REFERENCES open_calendar_shares (open_share_id),
    category_id INTEGER NOT NULL REFERENCES categories (category_id),
    PRIMARY KEY (open_share_id, category_id)
);

CREATE TABLE IF NOT EXISTS event_invitations (
    invitation_id SERIAL PRIMARY KEY,
    event_id INTEGER NOT NULL REFERENCES events (event_id),
    owner_user_id INTEGER NOT NULL,
    invited_user_id INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'accepted', 'rejected', 'maybe')),
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    deleted_at TIMESTAMPTZ,
    UNIQUE (event_id, invited_user_id)
);
CREATE INDEX IF NOT EXISTS event_invitations_invitee_idx
    ON event_invitations (invited_user_id, updated_at);
"""


def changed_since_clause(param: str, alias: str = "") -> str:
    """
    SQL form of the sync change predicate for the ``since`` parameter
    ``param`` (for example ``"$2"``). A NULL ``since`` selects live rows.
    """
    p = f"{alias}." if alias else ""
    return (
        f"(({param}::timestamptz IS NULL AND {p}deleted_at IS NULL)"
        f" OR ({p}updated_at > {param}::timestamptz"
        f" AND ({p}deleted_at IS NULL"
        f" OR {p}deleted_at > {param}::timestamptz)))"
    )


async def create_schema(pool: Pool) -> None:
    """Create all tables and indexes if they do not exist yet."""
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(SCHEMA_SQL)
    logger.info("Database schema is up to date")
