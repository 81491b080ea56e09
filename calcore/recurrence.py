"""
Recurrence expansion for calendar events.

Expands an event's RRULE into the concrete occurrence windows that
intersect a half-open query range ``[range_start, range_end)``. Rules are
anchored at the event's own start time and evaluated in UTC using
python-dateutil's RFC 5545 parser.
"""

import logging
import warnings
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Dict, Iterator, List, NamedTuple, Optional

from dateutil.rrule import rrule, rrulestr

if TYPE_CHECKING:
    from .domain import Event

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 5000

UNTIL_FORMAT = "%Y%m%dT%H%M%SZ"

# Any aware datetime works here; it only lets dateutil check the rule
VALIDATION_ANCHOR = datetime(2000, 1, 1, tzinfo=timezone.utc)


class RecurrenceRuleError(ValueError):
    """Raised when a recurrence rule cannot be parsed."""

    pass


class RawOccurrence(NamedTuple):
    """An occurrence window before any exception has been applied."""

    start_time: datetime
    end_time: datetime


def _normalise_until(value: str) -> str:
    value = value.upper()
    if len(value) == 8 and value.isdigit():
        # Date-only UNTIL is inclusive of the whole day
        return value + "T235959Z"
    if "T" in value and not value.endswith("Z"):
        # Floating UNTIL: rules are evaluated in UTC
        return value + "Z"
    return value


class RecurrenceRule:
    """A parsed, normalised RRULE body.

    Holds the rule parts so that callers can ask for a dateutil rule
    anchored at a given start and capped at a given instant. Capping is
    what keeps expansion finite even for rules whose BY* selectors never
    match.
    """

    def __init__(self, parts: Dict[str, str]):
        self.parts = parts

    @classmethod
    def parse(cls, text: str) -> "RecurrenceRule":
        body = None
        for line in text.replace("\r\n", "\n").split("\n"):
            line = line.strip()
            if not line:
                continue
            if line.upper().startswith("RRULE:"):
                body = line[len("RRULE:"):]
                break
            if ":" not in line and "=" in line:
                body = line
                break
        if body is None:
            raise RecurrenceRuleError(f"No RRULE found in {text!r}")

        parts: Dict[str, str] = {}
        for part in body.split(";"):
            if not part.strip():
                continue
            key, sep, value = part.partition("=")
            if not sep or not value.strip():
                raise RecurrenceRuleError(f"Malformed rule part {part!r}")
            key = key.strip().upper()
            value = value.strip()
            if key == "UNTIL":
                value = _normalise_until(value)
            parts[key] = value

        if "FREQ" not in parts:
            raise RecurrenceRuleError(f"Rule has no FREQ: {text!r}")
        for key in ("COUNT", "INTERVAL"):
            if key in parts and not parts[key].isdigit():
                raise RecurrenceRuleError(f"{key} must be a non-negative integer")
        if "INTERVAL" in parts and int(parts["INTERVAL"]) == 0:
            raise RecurrenceRuleError("INTERVAL must be positive")

        rule = cls(parts)
        # Let dateutil reject unknown parts and bad selector values
        rule.build(VALIDATION_ANCHOR)
        return rule

    @property
    def count(self) -> Optional[int]:
        if "COUNT" in self.parts:
            return int(self.parts["COUNT"])
        return None

    @property
    def until(self) -> Optional[datetime]:
        if "UNTIL" not in self.parts:
            return None
        try:
            return datetime.strptime(
                self.parts["UNTIL"], UNTIL_FORMAT
            ).replace(tzinfo=timezone.utc)
        except ValueError as e:
            raise RecurrenceRuleError(
                f"Invalid UNTIL {self.parts['UNTIL']!r}"
            ) from e

    def to_string(self, until: Optional[datetime] = None) -> str:
        parts = dict(self.parts)
        effective_until = self.until
        if until is not None and (
            effective_until is None or until < effective_until
        ):
            effective_until = until
        if effective_until is not None:
            parts["UNTIL"] = effective_until.astimezone(
                timezone.utc
            ).strftime(UNTIL_FORMAT)
        return ";".join(f"{k}={v}" for k, v in parts.items())

    def build(
        self, dtstart: datetime, until: Optional[datetime] = None
    ) -> rrule:
        """Build a dateutil rule anchored at dtstart, capped at until."""
        text = self.to_string(until)
        try:
            with warnings.catch_warnings():
                # COUNT together with UNTIL is deprecated in dateutil but
                # still stops at whichever comes first
                warnings.simplefilter("ignore", DeprecationWarning)
                return rrulestr(text, dtstart=dtstart)
        except (ValueError, TypeError) as e:
            raise RecurrenceRuleError(f"Invalid rule {text!r}: {e}") from e


def validate_rrule(text: str) -> str:
    """Validate a rule string, returning it stripped of whitespace."""
    RecurrenceRule.parse(text)
    return text.strip()


def intersects(
    start: datetime, end: datetime, range_start: datetime, range_end: datetime
) -> bool:
    """True when ``[start, end)`` overlaps ``[range_start, range_end)``."""
    return start < range_end and end > range_start


class RecurrenceExpander:
    """
    Turns one event's recurrence rule into raw occurrence windows.

    The expander holds no per-call state; one instance can be shared by
    any number of concurrent requests.
    """

    def __init__(self, max_occurrences: int = DEFAULT_MAX_OCCURRENCES):
        self.max_occurrences = max_occurrences

    def expand(
        self, event: "Event", range_start: datetime, range_end: datetime
    ) -> List[RawOccurrence]:
        """
        Return the occurrences of ``event`` intersecting the range, ordered
        by start. Every occurrence keeps the base event's duration.

        Malformed rules yield an empty list and a warning instead of an
        exception.
        """
        if range_end <= range_start:
            return []

        if not event.rrule:
            if intersects(
                event.start_time, event.end_time, range_start, range_end
            ):
                return [RawOccurrence(event.start_time, event.end_time)]
            return []

        try:
            return list(self._iter_recurring(event, range_start, range_end))
        except RecurrenceRuleError as e:
            logger.warning(
                "Skipping event with malformed recurrence rule",
                extra={
                    "event_id": event.event_id,
                    "rrule": event.rrule,
                    "error_message": str(e),
                },
            )
            return []

    def _iter_recurring(
        self, event: "Event", range_start: datetime, range_end: datetime
    ) -> Iterator[RawOccurrence]:
        rule = RecurrenceRule.parse(event.rrule)
        if rule.count == 0:
            return

        duration = event.end_time - event.start_time
        # dateutil drops sub-second precision from DTSTART
        offset = timedelta(microseconds=event.start_time.microsecond)
        anchor = event.start_time - offset

        generator = rule.build(anchor, until=range_end - offset)
        produced = 0
        try:
            # start > range_start - duration means end > range_start
            for start in generator.xafter(
                range_start - duration - offset, inc=False
            ):
                start = start + offset
                if start >= range_end:
                    break
                yield RawOccurrence(start, start + duration)
                produced += 1
                if produced >= self.max_occurrences:
                    logger.warning(
                        "Occurrence cap reached during expansion",
                        extra={
                            "event_id": event.event_id,
                            "max_occurrences": self.max_occurrences,
                        },
                    )
                    break
        except (ValueError, TypeError) as e:
            raise RecurrenceRuleError(str(e)) from e

    def is_occurrence(self, event: "Event", when: datetime) -> bool:
        """True when ``when`` is an unmodified start generated by the rule."""
        if not event.rrule:
            return when == event.start_time
        try:
            rule = RecurrenceRule.parse(event.rrule)
            if rule.count == 0:
                return False
            offset = timedelta(microseconds=event.start_time.microsecond)
            candidate = when - offset
            generator = rule.build(
                event.start_time - offset, until=candidate
            )
            return generator.after(candidate, inc=True) == candidate
        except (RecurrenceRuleError, ValueError, TypeError) as e:
            logger.warning(
                "Could not check occurrence against recurrence rule",
                extra={
                    "event_id": event.event_id,
                    "rrule": event.rrule,
                    "error_message": str(e),
                },
            )
            return False
