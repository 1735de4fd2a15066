"""Mailbox operations exposed to the HTTP layer.

``MailboxService`` composes the two explicit steps of every read:
:class:`TokenManager` supplies a usable credential, then
:class:`MessageFetcher` calls the provider. Failures from either step are
converted into :class:`MailResult` envelopes here and never propagate.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from atelier_api.config import Settings
from atelier_api.db.models.mailbox import MailboxCredential
from atelier_api.mailbox.correspondence import build_query
from atelier_api.mailbox.errors import (
    AuthorizationFailed,
    FetchFailed,
    MailboxError,
    NotConnected,
    StorageFailed,
)
from atelier_api.mailbox.fetcher import MessageFetcher
from atelier_api.mailbox.provider import MailProvider, ProviderError
from atelier_api.mailbox.store import CredentialStore
from atelier_api.mailbox.tokens import RefreshLocks, TokenManager, as_utc, utcnow
from atelier_api.schemas.mailbox import MailboxStatus, MailResult

logger = structlog.get_logger()


def _failure(exc: MailboxError, **empty) -> MailResult:
    return MailResult(success=False, error=exc.code, message=exc.detail, **empty)


class MailboxService:
    def __init__(
        self,
        session: AsyncSession,
        provider: MailProvider,
        locks: RefreshLocks,
        settings: Settings,
    ) -> None:
        self._session = session
        self._provider = provider
        self._settings = settings
        self.store = CredentialStore(session)
        self.tokens = TokenManager(
            self.store,
            provider,
            locks,
            refresh_buffer=timedelta(seconds=settings.mailbox_refresh_buffer_seconds),
            default_lifetime=timedelta(seconds=settings.mailbox_default_token_lifetime_seconds),
        )
        self.fetcher = MessageFetcher(provider)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def get_status(self, owner_id: UUID) -> MailboxStatus:
        """Whether a mailbox is linked. Never refreshes the token."""
        try:
            credential = await self.store.get(owner_id)
        except SQLAlchemyError as exc:
            logger.error("mailbox_status_failed", owner_id=str(owner_id), error=str(exc))
            failure = StorageFailed()
            return MailboxStatus(connected=False, error=failure.code, message=failure.detail)

        if credential is None:
            return MailboxStatus(connected=False)
        return MailboxStatus(
            connected=True,
            mailbox_address=credential.mailbox_address,
            expires_at=as_utc(credential.expires_at),
        )

    async def disconnect(self, owner_id: UUID) -> MailResult:
        try:
            if not await self.store.delete(owner_id):
                raise NotConnected()
        except MailboxError as exc:
            return _failure(exc)
        except SQLAlchemyError as exc:
            logger.error("mailbox_disconnect_failed", owner_id=str(owner_id), error=str(exc))
            return _failure(StorageFailed("Failed to disconnect Gmail"))

        logger.info("mailbox_disconnected", owner_id=str(owner_id))
        return MailResult(success=True)

    def authorization_url(self, state: str) -> str:
        return self._provider.authorization_url(state)

    async def complete_authorization(self, owner_id: UUID, code: str) -> MailboxCredential:
        """Exchange an authorization code and store the resulting credential.

        Raises :class:`AuthorizationFailed` with a short ``reason`` that the
        callback endpoint relays to the UI.
        """
        try:
            grant = await self._provider.exchange_code(code)
        except ProviderError as exc:
            raise AuthorizationFailed("callback_failed", str(exc)) from exc

        if not grant.access_token or not grant.refresh_token:
            raise AuthorizationFailed("missing_tokens")

        try:
            user_info = await self._provider.get_user_info(grant.access_token)
        except ProviderError as exc:
            raise AuthorizationFailed("callback_failed", str(exc)) from exc

        mailbox_address = user_info.get("email")
        if not mailbox_address:
            raise AuthorizationFailed("no_email")

        lifetime = timedelta(seconds=self._settings.mailbox_default_token_lifetime_seconds)
        try:
            return await self.store.upsert(
                owner_id,
                access_token=grant.access_token,
                refresh_token=grant.refresh_token,
                expires_at=grant.expires_at or utcnow() + lifetime,
                mailbox_address=mailbox_address,
            )
        except SQLAlchemyError as exc:
            raise AuthorizationFailed("callback_failed", str(exc)) from exc

    # ------------------------------------------------------------------
    # Correspondence
    # ------------------------------------------------------------------

    async def project_emails(self, owner_id: UUID, project_id: UUID, limit: int | None = None) -> MailResult:
        """Messages exchanged with the clients and contacts of a project."""
        limit = limit or self._settings.mailbox_default_limit
        try:
            if await self.store.get(owner_id) is None:
                raise NotConnected()
            correspondence = await build_query(self._session, project_id, owner_id)
            if correspondence.no_contacts:
                return MailResult(success=True, emails=[], message="No contacts with email addresses")

            credential = await self.tokens.get_usable_credential(owner_id)
            emails = await self.fetcher.list_messages(credential.access_token, correspondence.query, limit)
        except MailboxError as exc:
            return _failure(exc, emails=[])
        except SQLAlchemyError as exc:
            logger.error("mailbox_project_lookup_failed", project_id=str(project_id), error=str(exc))
            return _failure(FetchFailed(), emails=[])

        if not emails:
            return MailResult(success=True, emails=[], message="No emails found")
        logger.debug("mailbox_project_emails", project_id=str(project_id), count=len(emails))
        return MailResult(success=True, emails=emails)

    async def thread(self, owner_id: UUID, thread_id: str, *, mark_read: bool = False) -> MailResult:
        """Full conversation with decoded bodies."""
        try:
            credential = await self.tokens.get_usable_credential(owner_id)
            messages = await self.fetcher.get_thread(
                credential.access_token, thread_id, credential.mailbox_address,
            )
        except MailboxError as exc:
            return _failure(exc)
        except SQLAlchemyError as exc:
            logger.error("mailbox_credential_lookup_failed", owner_id=str(owner_id), error=str(exc))
            return _failure(FetchFailed("Failed to fetch email thread"))

        if mark_read:
            await self.fetcher.mark_thread_read(credential.access_token, thread_id)
        return MailResult(success=True, messages=messages)

    async def inbox_threads(self, owner_id: UUID, limit: int = 30) -> MailResult:
        try:
            credential = await self.tokens.get_usable_credential(owner_id)
            threads = await self.fetcher.list_inbox_threads(credential.access_token, limit)
        except MailboxError as exc:
            return _failure(exc, threads=[])
        except SQLAlchemyError as exc:
            logger.error("mailbox_credential_lookup_failed", owner_id=str(owner_id), error=str(exc))
            return _failure(FetchFailed(), threads=[])

        if not threads:
            return MailResult(success=True, threads=[], message="No emails found")
        return MailResult(success=True, threads=threads)
