"""
PostgreSQL implementation of InvitationRepository.
"""

import logging
from datetime import datetime
from typing import List, Optional

from asyncpg import Pool

from calcore.domain import EventInvitation, InvitationStatus
from calcore.repositories import InvitationRepository

from .schema import changed_since_clause

logger = logging.getLogger(__name__)

INVITATION_COLUMNS = """
    invitation_id, event_id, owner_user_id, invited_user_id, status,
    created_at, updated_at, deleted_at
"""


class PostgreSQLInvitationRepository(InvitationRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLInvitationRepository")

    async def save(self, invitation: EventInvitation) -> None:
        query = f"""
            INSERT INTO event_invitations ({INVITATION_COLUMNS})
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            ON CONFLICT (invitation_id) DO UPDATE SET
                status = EXCLUDED.status,
                updated_at = EXCLUDED.updated_at,
                deleted_at = EXCLUDED.deleted_at
        """
        async with self.pool.acquire() as conn:
            await conn.execute(
                query,
                invitation.invitation_id,
                invitation.event_id,
                invitation.owner_user_id,
                invitation.invited_user_id,
                invitation.status.value,
                invitation.created_at,
                invitation.updated_at,
                invitation.deleted_at,
            )

    async def get_accepted_for_user(
        self, invited_user_id: int
    ) -> List[EventInvitation]:
        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {INVITATION_COLUMNS}
                FROM event_invitations
                WHERE invited_user_id = $1 AND status = $2
                ORDER BY invitation_id
            """
            rows = await conn.fetch(
                query, invited_user_id, InvitationStatus.ACCEPTED.value
            )
        return [EventInvitation.model_validate(dict(row)) for row in rows]

    async def get_changed_received(
        self, invited_user_id: int, since: Optional[datetime]
    ) -> List[EventInvitation]:
        async with self.pool.acquire() as conn:
            query = f"""
                SELECT {INVITATION_COLUMNS}
                FROM event_invitations
                WHERE invited_user_id = $1
                  AND {changed_since_clause("$2")}
                ORDER BY invitation_id
            """
            rows = await conn.fetch(query, invited_user_id, since)
        return [EventInvitation.model_validate(dict(row)) for row in rows]
