"""Persistence of mailbox credentials (one row per profile)."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from atelier_api.db.models.mailbox import MailboxCredential

logger = structlog.get_logger()


class CredentialStore:
    """Find/create/update/delete for :class:`MailboxCredential` rows.

    Bound to one request-scoped session. Every write commits immediately
    and rolls the session back if the commit fails.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, owner_id: UUID) -> MailboxCredential | None:
        # populate_existing: another request may have refreshed the row
        stmt = (
            select(MailboxCredential)
            .where(MailboxCredential.owner_id == owner_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        owner_id: UUID,
        *,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
        mailbox_address: str,
    ) -> MailboxCredential:
        """Create the owner's credential, or replace the existing token set."""
        credential = await self.get(owner_id)
        if credential is None:
            credential = MailboxCredential(owner_id=owner_id)
            self._session.add(credential)

        credential.access_token = access_token
        credential.refresh_token = refresh_token
        credential.expires_at = expires_at
        credential.mailbox_address = mailbox_address

        try:
            await self._session.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert for the same owner.
            await self._session.rollback()
            credential = await self.get(owner_id)
            if credential is None:
                raise
            credential.access_token = access_token
            credential.refresh_token = refresh_token
            credential.expires_at = expires_at
            credential.mailbox_address = mailbox_address
            await self._commit()

        await self._session.refresh(credential)
        logger.info("mailbox_credential_saved", owner_id=str(owner_id), mailbox=mailbox_address)
        return credential

    async def save_refreshed(
        self,
        credential: MailboxCredential,
        *,
        access_token: str,
        expires_at: datetime,
        refresh_token: str | None = None,
    ) -> MailboxCredential:
        """Persist a refreshed access token.

        The stored refresh token is only replaced by a non-empty new one.
        """
        credential.access_token = access_token
        credential.expires_at = expires_at
        if refresh_token:
            credential.refresh_token = refresh_token
        await self._commit()
        return credential

    async def delete(self, owner_id: UUID) -> bool:
        """Delete the owner's credential. Returns ``False`` if there was none."""
        result = await self._session.execute(
            delete(MailboxCredential).where(MailboxCredential.owner_id == owner_id)
        )
        await self._commit()
        return result.rowcount > 0

    async def _commit(self) -> None:
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
