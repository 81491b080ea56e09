"""
Defines the use cases for calendar views, sharing and sync.

Use cases depend on repository protocols only. Repositories (and with them
the database session) are handed in through ``__init__``; nothing here
reaches for a global connection. Each ``execute`` captures ``now`` once
from the injected clock and either returns a complete result or raises.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set, Tuple
from uuid import UUID

from .domain import (
    CalendarShare,
    Event,
    EventException,
    EventInvitation,
    EventOccurrence,
    OpenCalendarShare,
    OwnedSyncResponse,
    PrivacyLevel,
    SharedCalendarDeadline,
    SharedCalendarEvent,
    SharedCalendarSyncResponse,
    SharedCalendarView,
)
from .errors import CategoryOwnershipError, InvalidRangeError, ShareNotFoundError
from .occurrences import expand_event_occurrences
from .recurrence import RecurrenceExpander
from .repos import Repositories
from .repositories import (
    CategoryRepository,
    DeadlineRepository,
    EventExceptionRepository,
    EventRepository,
    InvitationRepository,
    OpenShareRepository,
    ShareRepository,
)
from .sharing import (
    SHARE_NOT_FOUND_MESSAGE,
    ShareProjector,
    is_share_active,
    resolve_open_share,
    resolve_private_share,
)
from .sync import (
    SharedSyncState,
    include_share_info,
    merge_events,
    select_invitee_events,
    shared_sync_state,
)
from .timeutil import utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_MAX_RANGE_DAYS = 366


def validate_range(
    range_start: datetime,
    range_end: datetime,
    max_range_days: int = DEFAULT_MAX_RANGE_DAYS,
) -> None:
    """Reject inverted, empty or overly long query ranges."""
    if range_end <= range_start:
        raise InvalidRangeError("endTime must be after startTime")
    if range_end - range_start > timedelta(days=max_range_days):
        raise InvalidRangeError(
            f"Range may not exceed {max_range_days} days"
        )


async def _accepted_foreign_events(
    event_repo: EventRepository,
    invitation_repo: InvitationRepository,
    user_id: int,
) -> List[Tuple[EventInvitation, Event]]:
    """Accepted invitations of ``user_id`` paired with events owned by
    someone else. Soft-deleted rows are kept; callers decide."""
    invitations = await invitation_repo.get_accepted_for_user(user_id)
    if not invitations:
        return []
    events = await event_repo.get_by_ids(
        [invitation.event_id for invitation in invitations]
    )
    by_id: Dict[int, Event] = {event.event_id: event for event in events}
    return [
        (invitation, by_id[invitation.event_id])
        for invitation in invitations
        if invitation.event_id in by_id
        and by_id[invitation.event_id].owner_user_id != user_id
    ]


def _live_events(
    pairs: List[Tuple[EventInvitation, Event]], starting_before: datetime
) -> List[Event]:
    return [
        event
        for invitation, event in pairs
        if invitation.deleted_at is None
        and event.deleted_at is None
        and event.start_time < starting_before
    ]


class GetOccurrencesUseCase:
    """
    Returns the principal's own calendar over a time range: events they
    own plus events they accepted invitations to, with recurrences
    expanded and exceptions applied.
    """

    def __init__(
        self,
        event_repo: EventRepository,
        exception_repo: EventExceptionRepository,
        invitation_repo: InvitationRepository,
        expander: Optional[RecurrenceExpander] = None,
        max_range_days: int = DEFAULT_MAX_RANGE_DAYS,
    ):
        self.event_repo = event_repo
        self.exception_repo = exception_repo
        self.invitation_repo = invitation_repo
        self.expander = expander or RecurrenceExpander()
        self.max_range_days = max_range_days

    async def execute(
        self, user_id: int, range_start: datetime, range_end: datetime
    ) -> List[EventOccurrence]:
        validate_range(range_start, range_end, self.max_range_days)
        logger.info(
            "Computing occurrences",
            extra={
                "user_id": user_id,
                "range_start": range_start.isoformat(),
                "range_end": range_end.isoformat(),
            },
        )

        owned = await self.event_repo.get_active_for_owners(
            [user_id], range_end
        )
        pairs = await _accepted_foreign_events(
            self.event_repo, self.invitation_repo, user_id
        )
        events = merge_events(owned, _live_events(pairs, range_end))
        exceptions = await self.exception_repo.get_for_events(
            [event.event_id for event in events]
        )

        occurrences = expand_event_occurrences(
            events, exceptions, range_start, range_end, self.expander
        )
        logger.info(
            "Computed occurrences",
            extra={
                "user_id": user_id,
                "event_count": len(events),
                "occurrence_count": len(occurrences),
            },
        )
        return occurrences


class _ScopedViewUseCase:
    """Shared machinery for range views through a share."""

    def __init__(
        self,
        event_repo: EventRepository,
        exception_repo: EventExceptionRepository,
        deadline_repo: DeadlineRepository,
        invitation_repo: InvitationRepository,
        expander: Optional[RecurrenceExpander] = None,
        projector: Optional[ShareProjector] = None,
        clock: Clock = utcnow,
        max_range_days: int = DEFAULT_MAX_RANGE_DAYS,
    ):
        self.event_repo = event_repo
        self.exception_repo = exception_repo
        self.deadline_repo = deadline_repo
        self.invitation_repo = invitation_repo
        self.expander = expander or RecurrenceExpander()
        self.projector = projector or ShareProjector()
        self.clock = clock
        self.max_range_days = max_range_days

    async def _build_view(
        self,
        owner_user_id: int,
        shared_category_ids: List[int],
        privacy_level: PrivacyLevel,
        range_start: datetime,
        range_end: datetime,
        is_private_share: bool,
    ) -> SharedCalendarView:
        scope = set(shared_category_ids)
        owned = await self.event_repo.get_active_for_owners(
            [owner_user_id], range_end
        )
        # Only in-scope events need expanding; the projector still decides
        candidates = [e for e in owned if e.category_id in scope]

        accepted_event_ids: Set[int] = set()
        if is_private_share:
            pairs = await _accepted_foreign_events(
                self.event_repo, self.invitation_repo, owner_user_id
            )
            foreign = _live_events(pairs, range_end)
            accepted_event_ids = {event.event_id for event in foreign}
            candidates = merge_events(candidates, foreign)

        exceptions = await self.exception_repo.get_for_events(
            [event.event_id for event in candidates]
        )
        occurrences = expand_event_occurrences(
            candidates, exceptions, range_start, range_end, self.expander
        )
        deadlines = await self.deadline_repo.get_active_due_between(
            owner_user_id, range_start, range_end
        )

        projected = self.projector.project(
            owner_user_id=owner_user_id,
            shared_category_ids=scope,
            privacy_level=privacy_level,
            events=[SharedCalendarEvent.from_occurrence(o) for o in occurrences],
            deadlines=[
                SharedCalendarDeadline.from_deadline(d) for d in deadlines
            ],
            is_private_share=is_private_share,
            accepted_event_ids=accepted_event_ids,
        )
        return SharedCalendarView(
            owner_user_id=owner_user_id,
            privacy_level=privacy_level,
            events=projected.events,
            deadlines=projected.deadlines,
        )


class SharedCalendarViewUseCase(_ScopedViewUseCase):
    """Range view of a calendar shared privately with the viewer."""

    def __init__(self, share_repo: ShareRepository, **kwargs):
        super().__init__(**kwargs)
        self.share_repo = share_repo

    async def execute(
        self,
        share_id: int,
        viewer_user_id: int,
        range_start: datetime,
        range_end: datetime,
    ) -> SharedCalendarView:
        validate_range(range_start, range_end, self.max_range_days)
        now = self.clock()
        share = resolve_private_share(
            await self.share_repo.get_for_viewer(share_id, viewer_user_id),
            viewer_user_id,
            now,
        )
        logger.info(
            "Building shared calendar view",
            extra={
                "share_id": share_id,
                "viewer_user_id": viewer_user_id,
                "privacy_level": share.privacy_level.value,
            },
        )
        return await self._build_view(
            share.owner_user_id,
            share.shared_category_ids,
            share.privacy_level,
            range_start,
            range_end,
            is_private_share=True,
        )


class OpenShareViewUseCase(_ScopedViewUseCase):
    """Range view of a publicly shared calendar. No cross-owner events."""

    def __init__(self, open_share_repo: OpenShareRepository, **kwargs):
        super().__init__(**kwargs)
        self.open_share_repo = open_share_repo

    async def execute(
        self, open_share_id: UUID, range_start: datetime, range_end: datetime
    ) -> SharedCalendarView:
        validate_range(range_start, range_end, self.max_range_days)
        now = self.clock()
        share = resolve_open_share(
            await self.open_share_repo.get(open_share_id), now
        )
        logger.info(
            "Building open share view",
            extra={"open_share_id": str(open_share_id)},
        )
        return await self._build_view(
            share.owner_user_id,
            share.shared_category_ids,
            share.privacy_level,
            range_start,
            range_end,
            is_private_share=False,
        )


class OwnedSyncUseCase:
    """
    Computes the principal's delta sync: everything they own or receive
    that changed since their last high-water mark.

    Each entity kind is read independently. The protocol is idempotent
    and convergent, so small skews between reads resolve on the next
    round.
    """

    def __init__(
        self,
        event_repo: EventRepository,
        exception_repo: EventExceptionRepository,
        deadline_repo: DeadlineRepository,
        category_repo: CategoryRepository,
        share_repo: ShareRepository,
        invitation_repo: InvitationRepository,
        clock: Clock = utcnow,
    ):
        self.event_repo = event_repo
        self.exception_repo = exception_repo
        self.deadline_repo = deadline_repo
        self.category_repo = category_repo
        self.share_repo = share_repo
        self.invitation_repo = invitation_repo
        self.clock = clock

    @classmethod
    def from_repositories(
        cls, repos: Repositories, clock: Clock = utcnow
    ) -> "OwnedSyncUseCase":
        return cls(
            event_repo=repos.events,
            exception_repo=repos.exceptions,
            deadline_repo=repos.deadlines,
            category_repo=repos.categories,
            share_repo=repos.shares,
            invitation_repo=repos.invitations,
            clock=clock,
        )

    async def execute(
        self, user_id: int, since: Optional[datetime]
    ) -> OwnedSyncResponse:
        now = self.clock()
        logger.info(
            "Starting owned sync",
            extra={
                "user_id": user_id,
                "since": since.isoformat() if since else None,
            },
        )

        categories = await self.category_repo.get_changed_for_owner(
            user_id, since
        )
        deadlines = await self.deadline_repo.get_changed_for_owner(
            user_id, since
        )
        owned_events = await self.event_repo.get_changed_for_owner(
            user_id, since
        )
        pairs = await _accepted_foreign_events(
            self.event_repo, self.invitation_repo, user_id
        )
        events = merge_events(
            owned_events, select_invitee_events(pairs, since)
        )
        exceptions = await self.exception_repo.get_changed_for_owner(
            user_id, since
        )
        exceptions.extend(await self._invitee_exceptions(pairs, since))
        invitations = await self.invitation_repo.get_changed_received(
            user_id, since
        )
        shares_created = await self.share_repo.get_changed_created(
            user_id, since
        )
        shares_received = await self.share_repo.get_changed_received(
            user_id, since
        )

        response = OwnedSyncResponse(
            categories=categories,
            deadlines=deadlines,
            events=events,
            event_exceptions=exceptions,
            received_invitations=invitations,
            shares_created=shares_created,
            shares_received=shares_received,
            sync_timestamp=now,
        )
        logger.info(
            "Owned sync completed",
            extra={
                "user_id": user_id,
                "categories": len(categories),
                "deadlines": len(deadlines),
                "events": len(events),
                "event_exceptions": len(exceptions),
                "received_invitations": len(invitations),
                "shares_created": len(shares_created),
                "shares_received": len(shares_received),
            },
        )
        return response

    async def _invitee_exceptions(
        self,
        pairs: List[Tuple[EventInvitation, Event]],
        since: Optional[datetime],
    ) -> List[EventException]:
        """
        Exceptions on events the user accepted invitations to.

        An event that became visible after ``since`` brings all of its
        live exceptions, since the client has never seen any of them.
        """
        visible = [
            (invitation, event)
            for invitation, event in pairs
            if invitation.deleted_at is None and event.deleted_at is None
        ]
        newly_visible = [
            event.event_id
            for invitation, event in visible
            if since is not None and invitation.updated_at > since
        ]
        known = [
            event.event_id
            for _, event in visible
            if event.event_id not in newly_visible
        ]

        exceptions = await self.exception_repo.get_changed_for_events(
            known, since
        )
        if newly_visible:
            exceptions.extend(
                await self.exception_repo.get_changed_for_events(
                    newly_visible, None
                )
            )
        exceptions.sort(key=lambda e: e.exception_id)
        return exceptions


class SharedCalendarSyncUseCase:
    """
    Computes the delta sync of one calendar shared with the viewer.

    Revoked and expired shares short-circuit to share metadata only; an
    active share yields the changed items visible through it, redacted
    for its privacy level.
    """

    def __init__(
        self,
        share_repo: ShareRepository,
        event_repo: EventRepository,
        deadline_repo: DeadlineRepository,
        invitation_repo: InvitationRepository,
        projector: Optional[ShareProjector] = None,
        clock: Clock = utcnow,
    ):
        self.share_repo = share_repo
        self.event_repo = event_repo
        self.deadline_repo = deadline_repo
        self.invitation_repo = invitation_repo
        self.projector = projector or ShareProjector()
        self.clock = clock

    async def execute(
        self, share_id: int, viewer_user_id: int, since: Optional[datetime]
    ) -> SharedCalendarSyncResponse:
        now = self.clock()
        share = await self.share_repo.get_for_viewer(share_id, viewer_user_id)
        state = shared_sync_state(share, since, now)
        logger.info(
            "Starting shared calendar sync",
            extra={
                "share_id": share_id,
                "viewer_user_id": viewer_user_id,
                "since": since.isoformat() if since else None,
                "state": state.value,
            },
        )

        events: List[SharedCalendarEvent] = []
        deadlines: List[SharedCalendarDeadline] = []
        if state == SharedSyncState.ACTIVE:
            events, deadlines = await self._changed_items(share, since)

        share_info = None
        if share is not None and include_share_info(
            share, state, since, bool(events or deadlines)
        ):
            share_info = share

        return SharedCalendarSyncResponse(
            share_info=share_info,
            events=events,
            deadlines=deadlines,
            sync_timestamp=now,
        )

    async def _changed_items(
        self, share: CalendarShare, since: Optional[datetime]
    ) -> Tuple[List[SharedCalendarEvent], List[SharedCalendarDeadline]]:
        sharer = share.owner_user_id
        owned = await self.event_repo.get_changed_for_owner(sharer, since)
        pairs = await _accepted_foreign_events(
            self.event_repo, self.invitation_repo, sharer
        )
        foreign = select_invitee_events(pairs, since)
        deadlines = await self.deadline_repo.get_changed_for_owner(
            sharer, since
        )

        projected = self.projector.project(
            owner_user_id=sharer,
            shared_category_ids=share.shared_category_ids,
            privacy_level=share.privacy_level,
            events=[
                SharedCalendarEvent.from_event(e)
                for e in merge_events(owned, foreign)
            ],
            deadlines=[
                SharedCalendarDeadline.from_deadline(d) for d in deadlines
            ],
            is_private_share=True,
            accepted_event_ids={event.event_id for event in foreign},
        )
        return projected.events, projected.deadlines


class ListReceivedSharesUseCase:
    """Lists the shares currently usable by the viewer."""

    def __init__(self, share_repo: ShareRepository, clock: Clock = utcnow):
        self.share_repo = share_repo
        self.clock = clock

    async def execute(self, viewer_user_id: int) -> List[CalendarShare]:
        now = self.clock()
        shares = await self.share_repo.get_received(viewer_user_id)
        return [share for share in shares if is_share_active(share, now)]


async def _check_category_ownership(
    category_repo: CategoryRepository,
    owner_user_id: int,
    category_ids: List[int],
) -> None:
    owned = await category_repo.get_owned_ids(owner_user_id, category_ids)
    missing = set(category_ids) - owned
    if missing:
        raise CategoryOwnershipError(missing)


class UpdateShareScopeUseCase:
    """
    Replaces a private share's category set and settings.

    The category links and the share row are replaced in one repository
    transaction, so readers never see a half-updated scope.
    """

    def __init__(
        self,
        share_repo: ShareRepository,
        category_repo: CategoryRepository,
        clock: Clock = utcnow,
    ):
        self.share_repo = share_repo
        self.category_repo = category_repo
        self.clock = clock

    async def execute(
        self,
        owner_user_id: int,
        share_id: int,
        category_ids: List[int],
        privacy_level: Optional[PrivacyLevel] = None,
        expires_at: Optional[datetime] = None,
        message: Optional[str] = None,
    ) -> CalendarShare:
        now = self.clock()
        share = await self.share_repo.get(share_id)
        if (
            share is None
            or share.owner_user_id != owner_user_id
            or share.deleted_at is not None
        ):
            raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)

        await _check_category_ownership(
            self.category_repo, owner_user_id, category_ids
        )

        updated = await self.share_repo.replace_scope(
            share_id=share_id,
            category_ids=sorted(set(category_ids)),
            privacy_level=privacy_level or share.privacy_level,
            expires_at=expires_at,
            message=message,
            updated_at=now,
        )
        if updated is None:
            raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)

        logger.info(
            "Share scope updated",
            extra={
                "share_id": share_id,
                "owner_user_id": owner_user_id,
                "category_ids": updated.shared_category_ids,
                "privacy_level": updated.privacy_level.value,
            },
        )
        return updated


class UpdateOpenShareScopeUseCase:
    """Replaces an open share's category set and settings atomically."""

    def __init__(
        self,
        open_share_repo: OpenShareRepository,
        category_repo: CategoryRepository,
        clock: Clock = utcnow,
    ):
        self.open_share_repo = open_share_repo
        self.category_repo = category_repo
        self.clock = clock

    async def execute(
        self,
        owner_user_id: int,
        open_share_id: UUID,
        category_ids: List[int],
        privacy_level: Optional[PrivacyLevel] = None,
        expires_at: Optional[datetime] = None,
    ) -> OpenCalendarShare:
        now = self.clock()
        share = await self.open_share_repo.get(open_share_id)
        if (
            share is None
            or share.owner_user_id != owner_user_id
            or share.deleted_at is not None
        ):
            raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)

        await _check_category_ownership(
            self.category_repo, owner_user_id, category_ids
        )

        updated = await self.open_share_repo.replace_scope(
            open_share_id=open_share_id,
            category_ids=sorted(set(category_ids)),
            privacy_level=privacy_level or share.privacy_level,
            expires_at=expires_at,
            updated_at=now,
        )
        if updated is None:
            raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)
        logger.info(
            "Open share scope updated",
            extra={"open_share_id": str(open_share_id)},
        )
        return updated


class RevokeShareUseCase:
    """Soft-deletes a private share so sync can report the revocation."""

    def __init__(self, share_repo: ShareRepository, clock: Clock = utcnow):
        self.share_repo = share_repo
        self.clock = clock

    async def execute(self, owner_user_id: int, share_id: int) -> CalendarShare:
        now = self.clock()
        share = await self.share_repo.get(share_id)
        if (
            share is None
            or share.owner_user_id != owner_user_id
            or share.deleted_at is not None
        ):
            raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)

        revoked = await self.share_repo.soft_delete(share_id, now)
        if revoked is None:
            raise ShareNotFoundError(SHARE_NOT_FOUND_MESSAGE)
        logger.info(
            "Share revoked",
            extra={"share_id": share_id, "owner_user_id": owner_user_id},
        )
        return revoked
