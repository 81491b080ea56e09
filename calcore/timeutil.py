"""
Timestamp helpers shared by the use cases and the API layer.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import AwareDatetime, TypeAdapter, ValidationError

from .errors import InvalidSinceError, InvalidTimestampError

logger = logging.getLogger(__name__)

RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d{1,6})?"
    r"([Zz]|[+-]\d{2}:\d{2})"
)

_RFC3339_ADAPTER = TypeAdapter(AwareDatetime)


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        logger.warning(f"Converting naive datetime {value} to UTC")
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp into an aware UTC datetime.

    RFC3339 requires a full extended-format date, a time with seconds
    and an offset; anything less (a bare date, a naive local time, ISO
    basic or week-date forms) is rejected.
    """
    text = value.strip()
    if not RFC3339_PATTERN.fullmatch(text):
        logger.warning(
            "Rejected non-RFC3339 timestamp", extra={"value": value}
        )
        raise InvalidTimestampError(f"Not an RFC3339 timestamp: {value!r}")
    try:
        parsed = _RFC3339_ADAPTER.validate_python(text.upper())
    except ValidationError as e:
        logger.warning(
            "Failed to parse timestamp",
            extra={"value": value, "error_message": str(e)},
        )
        raise InvalidTimestampError(
            f"Not an RFC3339 timestamp: {value!r}"
        ) from e
    return parsed.astimezone(timezone.utc)


def parse_since(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a sync high-water mark.

    An absent or blank value means "full snapshot" and returns None. A
    present but malformed value raises InvalidSinceError, which is a
    distinct client error from omitting it.
    """
    if value is None or not value.strip():
        return None
    try:
        return parse_timestamp(value)
    except InvalidTimestampError as e:
        raise InvalidSinceError(str(e)) from e
