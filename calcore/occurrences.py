"""
Exception merging and occurrence assembly.

Raw occurrences from the RecurrenceExpander are overlaid with per-occurrence
exceptions (cancellations and overrides), re-filtered against the caller's
window, and finally combined with the event's stable attributes into
EventOccurrence records.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Sequence,
)

from .domain import Event, EventException, EventOccurrence
from .recurrence import RawOccurrence, RecurrenceExpander, intersects

logger = logging.getLogger(__name__)


class MergedOccurrence(NamedTuple):
    """An occurrence after its exception (if any) has been applied."""

    original_start: datetime
    start_time: datetime
    end_time: datetime
    title: str
    description: Optional[str]
    location: Optional[str]
    exception_id: Optional[int] = None


def index_exceptions(
    exceptions: Iterable[EventException],
) -> Dict[datetime, EventException]:
    """
    Index live exceptions by their original occurrence time.

    At most one exception may exist per occurrence. If the store holds
    duplicates anyway, the most recently updated one wins (ties broken by
    the highest id) so the result never depends on input order.
    """
    index: Dict[datetime, EventException] = {}
    for exception in exceptions:
        if exception.deleted_at is not None:
            continue
        anchor = exception.original_occurrence_time
        current = index.get(anchor)
        if current is None:
            index[anchor] = exception
            continue
        logger.warning(
            "Duplicate exceptions for one occurrence",
            extra={
                "event_id": exception.event_id,
                "original_occurrence_time": anchor.isoformat(),
                "exception_ids": [
                    current.exception_id,
                    exception.exception_id,
                ],
            },
        )
        if (exception.updated_at, exception.exception_id) > (
            current.updated_at,
            current.exception_id,
        ):
            index[anchor] = exception
    return index


def apply_exception(
    event: Event, original_start: datetime, exception: EventException
) -> MergedOccurrence:
    """Apply an override; unset fields fall back to the base event."""
    return MergedOccurrence(
        original_start=original_start,
        start_time=exception.start_time,
        end_time=exception.end_time,
        title=(
            exception.title if exception.title is not None else event.title
        ),
        description=(
            exception.description
            if exception.description is not None
            else event.description
        ),
        location=(
            exception.location
            if exception.location is not None
            else event.location
        ),
        exception_id=exception.exception_id,
    )


class ExceptionMerger:
    """
    Overlays exceptions onto the raw occurrences of one recurring event.

    The output depends only on the arguments: no state is kept between
    calls, and exception order does not matter.
    """

    def merge(
        self,
        event: Event,
        raw_occurrences: Sequence[RawOccurrence],
        exceptions: Iterable[EventException],
        range_start: datetime,
        range_end: datetime,
        is_anchor: Optional[Callable[[datetime], bool]] = None,
    ) -> List[MergedOccurrence]:
        """
        Merge exceptions into raw occurrences for the window
        ``[range_start, range_end)``.

        - Cancelled occurrences are dropped.
        - Overridden occurrences are moved/retitled, then re-checked
          against the window; one moved out of it is left out of this
          result but the exception itself is untouched.
        - When ``is_anchor`` is given, an occurrence whose anchor lies
          outside the window but which was moved into it is included.
        - Exceptions matching no occurrence of the rule are orphans and
          are skipped with a warning.
        """
        index = index_exceptions(
            e for e in exceptions if e.event_id == event.event_id
        )
        raw_starts = set()
        merged: List[MergedOccurrence] = []

        for raw in raw_occurrences:
            raw_starts.add(raw.start_time)
            exception = index.get(raw.start_time)
            if exception is None:
                merged.append(
                    MergedOccurrence(
                        original_start=raw.start_time,
                        start_time=raw.start_time,
                        end_time=raw.end_time,
                        title=event.title,
                        description=event.description,
                        location=event.location,
                    )
                )
                continue
            if exception.is_deleted:
                logger.debug(
                    "Occurrence cancelled by exception",
                    extra={
                        "event_id": event.event_id,
                        "exception_id": exception.exception_id,
                    },
                )
                continue
            occurrence = apply_exception(event, raw.start_time, exception)
            if intersects(
                occurrence.start_time,
                occurrence.end_time,
                range_start,
                range_end,
            ):
                merged.append(occurrence)
            else:
                logger.debug(
                    "Occurrence moved outside query window",
                    extra={
                        "event_id": event.event_id,
                        "exception_id": exception.exception_id,
                    },
                )

        duration = event.end_time - event.start_time
        for anchor, exception in index.items():
            if anchor in raw_starts:
                continue
            anchor_in_window = intersects(
                anchor, anchor + duration, range_start, range_end
            )
            if anchor_in_window:
                self._log_orphan(event, exception)
                continue
            if exception.is_deleted:
                continue
            occurrence = apply_exception(event, anchor, exception)
            if not intersects(
                occurrence.start_time,
                occurrence.end_time,
                range_start,
                range_end,
            ):
                continue
            if is_anchor is None:
                continue
            if is_anchor(anchor):
                merged.append(occurrence)
            else:
                self._log_orphan(event, exception)

        merged.sort(key=lambda o: (o.start_time, o.original_start))
        return merged

    @staticmethod
    def _log_orphan(event: Event, exception: EventException) -> None:
        logger.warning(
            "Skipping exception that matches no occurrence",
            extra={
                "event_id": event.event_id,
                "exception_id": exception.exception_id,
                "original_occurrence_time": (
                    exception.original_occurrence_time.isoformat()
                ),
            },
        )


class OccurrenceAssembler:
    """Builds public occurrence records from merged occurrences."""

    def assemble(
        self, event: Event, merged: Iterable[MergedOccurrence]
    ) -> List[EventOccurrence]:
        return [
            EventOccurrence(
                event_id=event.event_id,
                owner_user_id=event.owner_user_id,
                category_id=event.category_id,
                title=occurrence.title,
                description=occurrence.description,
                start_time=occurrence.start_time,
                end_time=occurrence.end_time,
                location=occurrence.location,
                original_occurrence_time=(
                    occurrence.original_start if event.is_recurring else None
                ),
                exception_id=occurrence.exception_id,
                rrule=event.rrule,
            )
            for occurrence in merged
        ]


def expand_event_occurrences(
    events: Iterable[Event],
    exceptions: Iterable[EventException],
    range_start: datetime,
    range_end: datetime,
    expander: Optional[RecurrenceExpander] = None,
) -> List[EventOccurrence]:
    """
    Expand, merge and assemble occurrences for a set of events.

    Soft-deleted events are ignored. The result is ordered by start time,
    then event id.
    """
    expander = expander or RecurrenceExpander()
    merger = ExceptionMerger()
    assembler = OccurrenceAssembler()

    by_event: Dict[int, List[EventException]] = defaultdict(list)
    for exception in exceptions:
        by_event[exception.event_id].append(exception)

    occurrences: List[EventOccurrence] = []
    for event in events:
        if event.deleted_at is not None:
            continue
        raw = expander.expand(event, range_start, range_end)
        event_exceptions = by_event.get(event.event_id, [])

        if event.is_recurring:
            merged = merger.merge(
                event,
                raw,
                event_exceptions,
                range_start,
                range_end,
                is_anchor=lambda when, e=event: expander.is_occurrence(
                    e, when
                ),
            )
        else:
            if event_exceptions:
                logger.warning(
                    "Ignoring exceptions on a non-recurring event",
                    extra={
                        "event_id": event.event_id,
                        "exception_count": len(event_exceptions),
                    },
                )
            merged = [
                MergedOccurrence(
                    original_start=r.start_time,
                    start_time=r.start_time,
                    end_time=r.end_time,
                    title=event.title,
                    description=event.description,
                    location=event.location,
                )
                for r in raw
            ]
        occurrences.extend(assembler.assemble(event, merged))

    occurrences.sort(key=lambda o: (o.start_time, o.event_id))
    logger.debug(
        "Expanded event occurrences",
        extra={
            "range_start": range_start.isoformat(),
            "range_end": range_end.isoformat(),
            "occurrence_count": len(occurrences),
        },
    )
    return occurrences
