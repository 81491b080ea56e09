"""
Projection of an owner's calendar into a privacy-scoped view.

A share exposes only the categories it names. Private shares also expose
the sharer's accepted commitments on other people's events. Limited shares
reduce every item to its time slot.
"""

import logging
from datetime import datetime
from typing import AbstractSet, Iterable, List, NamedTuple, Optional

from .domain import (
    CalendarShare,
    OpenCalendarShare,
    PrivacyLevel,
    ShareScope,
    SharedCalendarDeadline,
    SharedCalendarEvent,
)
from .errors import ShareNotFoundError

logger = logging.getLogger(__name__)

LIMITED_EVENT_TITLE = "Busy"
LIMITED_DEADLINE_TITLE = "Deadline"

SHARE_NOT_FOUND_MESSAGE = "Share not found"


class ProjectedCalendar(NamedTuple):
    events: List[SharedCalendarEvent]
    deadlines: List[SharedCalendarDeadline]


def redact_event(
    event: SharedCalendarEvent, privacy_level: PrivacyLevel
) -> SharedCalendarEvent:
    if privacy_level == PrivacyLevel.FULL:
        return event
    return event.model_copy(
        update={
            "title": LIMITED_EVENT_TITLE,
            "description": None,
            "location": None,
            "rrule": None,
            "category_id": None,
        }
    )


def redact_deadline(
    deadline: SharedCalendarDeadline, privacy_level: PrivacyLevel
) -> SharedCalendarDeadline:
    if privacy_level == PrivacyLevel.FULL:
        return deadline
    return deadline.model_copy(
        update={
            "title": LIMITED_DEADLINE_TITLE,
            "description": None,
            "category_id": None,
            "priority": None,
            "workload_magnitude": None,
            "workload_unit": None,
        }
    )


class ShareProjector:
    """Filters and redacts items for a share viewer. Pure; no I/O."""

    def project(
        self,
        owner_user_id: int,
        shared_category_ids: Iterable[int],
        privacy_level: PrivacyLevel,
        events: Iterable[SharedCalendarEvent],
        deadlines: Iterable[SharedCalendarDeadline],
        is_private_share: bool,
        accepted_event_ids: AbstractSet[int] = frozenset(),
    ) -> ProjectedCalendar:
        """
        Project the sharer's items for a viewer.

        Args:
            owner_user_id: The sharer
            shared_category_ids: Categories in scope; uncategorised items
                are never in scope
            privacy_level: Redaction policy to apply
            events: Candidate events or occurrences, unredacted
            deadlines: Candidate deadlines, unredacted
            is_private_share: Cross-owner events are only considered for
                private shares
            accepted_event_ids: Events owned by others on which the sharer
                holds an accepted invitation

        Returns:
            ProjectedCalendar with the visible, redacted items in input
            order
        """
        scope = frozenset(shared_category_ids)

        visible_events = []
        for event in events:
            if event.owner_user_id == owner_user_id:
                visible = (
                    event.category_id is not None
                    and event.category_id in scope
                )
            else:
                visible = (
                    is_private_share and event.event_id in accepted_event_ids
                )
            if visible:
                visible_events.append(redact_event(event, privacy_level))

        visible_deadlines = [
            redact_deadline(deadline, privacy_level)
            for deadline in deadlines
            if deadline.owner_user_id == owner_user_id
            and deadline.category_id is not None
            and deadline.category_id in scope
        ]

        return ProjectedCalendar(visible_events, visible_deadlines)


# --- Access gating ---


def is_share_active(share: ShareScope, now: datetime) -> bool:
    """A share is usable while not revoked and not past its expiry."""
    if share.deleted_at is not None:
        return False
    return share.expires_at is None or share.expires_at > now


def resolve_private_share(
    share: Optional[CalendarShare], viewer_user_id: int, now: datetime
) -> CalendarShare:
    """
    Return the share if ``viewer_user_id`` may use it right now.

    Unknown, foreign, revoked and expired shares all raise the same
    ShareNotFoundError.
    """
    if (
        share is None
        or share.shared_with_user_id != viewer_user_id
        or not is_share_active(share, now)
    ):
        logger.debug(
            "Private share did not resolve",
            extra={
                "share_id": share.share_id if share else None,
                "viewer_user_id": viewer_user_id,
            },
        )
        raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)
    return share


def resolve_open_share(
    share: Optional[OpenCalendarShare], now: datetime
) -> OpenCalendarShare:
    """Return the open share if it can be viewed right now."""
    if share is None or not is_share_active(share, now):
        logger.debug(
            "Open share did not resolve",
            extra={
                "open_share_id": str(share.open_share_id) if share else None
            },
        )
        raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)
    return share
