"""
Change detection for incremental ("delta") sync.

A row counts as changed since ``T`` iff ``updated_at > T``. Soft-deleted
rows are returned as tombstones while their deletion is news to the
client, and omitted once it is not. Every function here is pure; the use
cases feed them rows fetched from the repositories.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Tuple,
    TypeVar,
)

from .domain import (
    CalendarShare,
    Event,
    EventInvitation,
    InvitationStatus,
)

logger = logging.getLogger(__name__)


class Audited(Protocol):
    updated_at: datetime
    deleted_at: Optional[datetime]


A = TypeVar("A", bound=Audited)


def changed_since(row: Audited, since: Optional[datetime]) -> bool:
    """
    Decide whether ``row`` belongs in a sync result for ``since``.

    Without ``since`` (bootstrap) only live rows are returned. With it, a
    row must have been updated strictly after ``since``, and a tombstone
    is returned only if the deletion itself happened after ``since``.
    """
    if since is None:
        return row.deleted_at is None
    if row.updated_at <= since:
        return False
    return row.deleted_at is None or row.deleted_at > since


def select_changed(rows: Iterable[A], since: Optional[datetime]) -> List[A]:
    return [row for row in rows if changed_since(row, since)]


def select_invitee_events(
    pairs: Iterable[Tuple[EventInvitation, Event]],
    since: Optional[datetime],
) -> List[Event]:
    """
    Pick events visible to an invitee through accepted invitations.

    An event is included when either the event row or the invitee's
    invitation row changed since ``since``. Only the event content is
    returned, once per event.
    """
    selected: Dict[int, Event] = {}
    for invitation, event in pairs:
        if invitation.status != InvitationStatus.ACCEPTED:
            continue
        if invitation.event_id != event.event_id:
            continue

        if since is None:
            include = (
                event.deleted_at is None and invitation.deleted_at is None
            )
        else:
            triggered = (
                event.updated_at > since or invitation.updated_at > since
            )
            stale_tombstone = (
                event.deleted_at is not None and event.deleted_at <= since
            ) or (
                invitation.deleted_at is not None
                and invitation.deleted_at <= since
            )
            include = triggered and not stale_tombstone

        if include:
            selected[event.event_id] = event
    return list(selected.values())


def merge_events(*groups: Iterable[Event]) -> List[Event]:
    """Concatenate event lists, keeping the first copy of each event."""
    merged: Dict[int, Event] = {}
    for group in groups:
        for event in group:
            merged.setdefault(event.event_id, event)
    return list(merged.values())


class SharedSyncState(str, Enum):
    """What a shared-calendar sync may reveal about a share."""

    MISSING = "missing"  # nothing to report
    REVOKED = "revoked"  # deleted after since: tombstone, no items
    LAPSED = "lapsed"  # expired at or before since: metadata only
    EXPIRED = "expired"  # expired after since, or at bootstrap: metadata only
    ACTIVE = "active"


def shared_sync_state(
    share: Optional[CalendarShare],
    since: Optional[datetime],
    now: datetime,
) -> SharedSyncState:
    if share is None:
        return SharedSyncState.MISSING

    if share.deleted_at is not None:
        if since is not None and share.deleted_at > since:
            return SharedSyncState.REVOKED
        return SharedSyncState.MISSING

    if share.expires_at is not None and share.expires_at <= now:
        if since is not None and share.expires_at <= since:
            return SharedSyncState.LAPSED
        return SharedSyncState.EXPIRED

    return SharedSyncState.ACTIVE


def include_share_info(
    share: CalendarShare,
    state: SharedSyncState,
    since: Optional[datetime],
    has_items: bool,
) -> bool:
    """Whether the share row itself goes into a shared-sync response."""
    if state in (SharedSyncState.REVOKED, SharedSyncState.EXPIRED):
        return True
    if state == SharedSyncState.MISSING:
        return False
    if state == SharedSyncState.LAPSED:
        return since is not None and share.updated_at > since
    return since is None or share.updated_at > since or has_items
