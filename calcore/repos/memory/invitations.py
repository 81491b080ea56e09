"""
Memory implementation of InvitationRepository.
"""

import logging
from datetime import datetime
from typing import List, Optional

from calcore.domain import EventInvitation, InvitationStatus
from calcore.repositories import InvitationRepository
from calcore.sync import select_changed

from .store import MemoryStore

logger = logging.getLogger(__name__)


class MemoryInvitationRepository(InvitationRepository):
    def __init__(self, store: MemoryStore) -> None:
        self.logger = logger
        self.store = store

    async def save(self, invitation: EventInvitation) -> None:
        self.store.invitations[invitation.invitation_id] = (
            invitation.model_copy(deep=True)
        )

    async def get_accepted_for_user(
        self, invited_user_id: int
    ) -> List[EventInvitation]:
        invitations = [
            invitation.model_copy(deep=True)
            for invitation in self.store.invitations.values()
            if invitation.invited_user_id == invited_user_id
            and invitation.status == InvitationStatus.ACCEPTED
        ]
        invitations.sort(key=lambda i: i.invitation_id)
        return invitations

    async def get_changed_received(
        self, invited_user_id: int, since: Optional[datetime]
    ) -> List[EventInvitation]:
        invitations = [
            invitation.model_copy(deep=True)
            for invitation in self.store.invitations.values()
            if invitation.invited_user_id == invited_user_id
        ]
        invitations.sort(key=lambda i: i.invitation_id)
        return select_changed(invitations, since)
