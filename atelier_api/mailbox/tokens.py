"""Access-token lifecycle: decide whether to refresh, refresh, persist."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from atelier_api.db.models.mailbox import MailboxCredential
from atelier_api.mailbox.errors import NotConnected, RefreshFailed
from atelier_api.mailbox.provider import MailProvider, ProviderError
from atelier_api.mailbox.store import CredentialStore

logger = structlog.get_logger()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RefreshLocks:
    """Per-owner locks around the check-refresh-persist sequence.

    Held on ``app.state`` so concurrent requests of the same owner share
    them. Locks are dropped once no coroutine references them.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = weakref.WeakValueDictionary()

    def for_owner(self, owner_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock


class TokenManager:
    """Supplies a credential whose access token is usable right now."""

    def __init__(
        self,
        store: CredentialStore,
        provider: MailProvider,
        locks: RefreshLocks,
        *,
        refresh_buffer: timedelta = timedelta(minutes=5),
        default_lifetime: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._provider = provider
        self._locks = locks
        self._refresh_buffer = refresh_buffer
        self._default_lifetime = default_lifetime
        self._clock = clock

    def is_stale(self, credential: MailboxCredential) -> bool:
        return as_utc(credential.expires_at) < self._clock() + self._refresh_buffer

    async def get_usable_credential(self, owner_id: UUID) -> MailboxCredential:
        """Return the owner's credential, refreshing the access token if needed.

        Raises :class:`NotConnected` when no credential exists and
        :class:`RefreshFailed` when the provider rejects the refresh.
        """
        credential = await self._store.get(owner_id)
        if credential is None:
            raise NotConnected()
        if not self.is_stale(credential):
            return credential

        async with self._locks.for_owner(owner_id):
            # Re-read: a concurrent request may have refreshed while we waited.
            credential = await self._store.get(owner_id)
            if credential is None:
                raise NotConnected()
            if not self.is_stale(credential):
                return credential
            return await self._refresh(credential)

    async def _refresh(self, credential: MailboxCredential) -> MailboxCredential:
        owner_id = str(credential.owner_id)
        logger.info("mailbox_token_expired", owner_id=owner_id)

        try:
            grant = await self._provider.refresh(credential.refresh_token)
        except ProviderError as exc:
            logger.warning("mailbox_token_refresh_failed", owner_id=owner_id, error=str(exc))
            raise RefreshFailed() from exc

        if not grant.access_token:
            logger.warning("mailbox_token_refresh_failed", owner_id=owner_id, error="no access token")
            raise RefreshFailed()

        expires_at = grant.expires_at or self._clock() + self._default_lifetime
        try:
            credential = await self._store.save_refreshed(
                credential,
                access_token=grant.access_token,
                expires_at=expires_at,
                refresh_token=grant.refresh_token,
            )
        except SQLAlchemyError as exc:
            logger.error("mailbox_token_persist_failed", owner_id=owner_id, error=str(exc))
            raise RefreshFailed() from exc

        logger.info("mailbox_token_refreshed", owner_id=owner_id, expires_at=expires_at.isoformat())
        return credential
