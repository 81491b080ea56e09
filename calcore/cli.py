"""
Command line interface for the calendar core.

Commands:
- serve: run the HTTP API under uvicorn
- init-db: create the PostgreSQL schema
- expand: expand a recurrence rule offline and print its occurrences
"""

import asyncio
import logging
import sys
from typing import Optional

import asyncpg
import click

from calcore.config import load_settings, setup_logging
from calcore.domain import Event
from calcore.errors import InvalidTimestampError
from calcore.recurrence import RecurrenceExpander
from calcore.repos.postgresql import create_schema
from calcore.timeutil import parse_timestamp, utcnow

logger = logging.getLogger(__name__)


@click.group()
def main() -> None:
    """Calendar occurrence, sharing and sync engine."""
    setup_logging()


@main.command()
@click.option("--host", default=None, help="Bind address (defaults to HOST)")
@click.option(
    "--port", default=None, type=int, help="Bind port (defaults to PORT)"
)
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool) -> None:
    """Run the HTTP API."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "calcore.api.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


async def _init_db(database_url: str) -> None:
    pool = await asyncpg.create_pool(dsn=database_url, min_size=1, max_size=1)
    try:
        await create_schema(pool)
    finally:
        await pool.close()


@main.command("init-db")
@click.option(
    "--database-url",
    default=None,
    help="PostgreSQL DSN (defaults to DATABASE_URL env var)",
)
def init_db(database_url: Optional[str]) -> None:
    """Create the PostgreSQL schema if it does not exist."""
    database_url = database_url or load_settings().database_url
    if not database_url:
        click.echo("No database configured; set DATABASE_URL", err=True)
        sys.exit(1)

    try:
        asyncio.run(_init_db(database_url))
    except Exception as e:
        logger.error(f"Schema creation failed: {str(e)}", exc_info=True)
        click.echo(f"Schema creation failed: {str(e)}", err=True)
        sys.exit(1)
    click.echo("Database schema is up to date")


def _timestamp(ctx, param, value):
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except InvalidTimestampError as e:
        raise click.BadParameter(str(e))


@main.command()
@click.option("--rrule", default=None, help="Recurrence rule, e.g. FREQ=DAILY")
@click.option(
    "--start", required=True, callback=_timestamp, help="Event start (RFC3339)"
)
@click.option(
    "--end", required=True, callback=_timestamp, help="Event end (RFC3339)"
)
@click.option(
    "--from",
    "range_start",
    required=True,
    callback=_timestamp,
    help="Range start (RFC3339)",
)
@click.option(
    "--to",
    "range_end",
    required=True,
    callback=_timestamp,
    help="Range end (RFC3339, exclusive)",
)
def expand(rrule, start, end, range_start, range_end) -> None:
    """Print the occurrences of a rule within a range."""
    now = utcnow()
    try:
        event = Event(
            event_id=0,
            owner_user_id=0,
            title="expand",
            start_time=start,
            end_time=end,
            rrule=rrule,
            created_at=now,
            updated_at=now,
        )
    except ValueError as e:
        click.echo(f"Invalid event: {e}", err=True)
        sys.exit(1)

    expander = RecurrenceExpander(load_settings().max_occurrences_per_event)
    occurrences = expander.expand(event, range_start, range_end)
    for occurrence in occurrences:
        click.echo(
            f"{occurrence.start_time.isoformat()} "
            f"{occurrence.end_time.isoformat()}"
        )
    click.echo(f"{len(occurrences)} occurrence(s)", err=True)


if __name__ == "__main__":
    main()
