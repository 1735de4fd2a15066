"""Gmail implementation of :class:`~atelier_api.mailbox.provider.MailProvider`.

The Google client libraries are blocking, so every call is run with
``asyncio.to_thread()`` and bounded by the configured provider timeout.
A fresh Gmail service object is built per call because the underlying
``httplib2`` transport must not be shared between threads.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from atelier_api.config import Settings
from atelier_api.mailbox.provider import (
    METADATA_HEADERS,
    GmailResource,
    MessageRef,
    ProviderError,
    TokenGrant,
)


logger = structlog.get_logger()

T = TypeVar("T")

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def _aware(expiry: datetime | None) -> datetime | None:
    # google-auth reports expiry as naive UTC
    if expiry is None:
        return None
    if expiry.tzinfo is None:
        return expiry.replace(tzinfo=timezone.utc)
    return expiry


class GoogleMailProvider:
    """Talks to Google OAuth2 and the Gmail v1 REST API for one app client."""

    def __init__(self, settings: Settings) -> None:
        self._client_id = settings.google_client_id
        self._client_secret = settings.google_client_secret.get_secret_value()
        self._redirect_uri = settings.google_redirect_uri
        self._timeout = settings.mailbox_provider_timeout_seconds
        # Google adds ``openid`` to the granted scopes when userinfo scopes
        # are requested; oauthlib would otherwise reject the token response.
        os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def _flow(self) -> Flow:
        client_config = {
            "web": {
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self._redirect_uri],
            }
        }
        # The consent URL and the code exchange happen in different
        # requests, so no PKCE verifier can be carried between them.
        return Flow.from_client_config(
            client_config,
            scopes=GMAIL_SCOPES,
            redirect_uri=self._redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, state: str) -> str:
        """Consent URL that always yields a refresh token."""
        url, _ = self._flow().authorization_url(
            access_type="offline",
            prompt="consent",
            state=state,
        )
        return url

    async def exchange_code(self, code: str) -> TokenGrant:
        def _exchange() -> TokenGrant:
            flow = self._flow()
            flow.fetch_token(code=code)
            creds = flow.credentials
            return TokenGrant(
                access_token=creds.token,
                refresh_token=creds.refresh_token,
                expires_at=_aware(creds.expiry),
            )

        return await self._call("exchange_code", _exchange)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        def _refresh() -> TokenGrant:
            creds = Credentials(
                token=None,
                refresh_token=refresh_token,
                token_uri=TOKEN_URI,
                client_id=self._client_id,
                client_secret=self._client_secret,
            )
            creds.refresh(Request())
            issued = creds.refresh_token if creds.refresh_token != refresh_token else None
            return TokenGrant(
                access_token=creds.token,
                refresh_token=issued,
                expires_at=_aware(creds.expiry),
            )

        return await self._call("refresh", _refresh)

    async def get_user_info(self, access_token: str) -> dict[str, Any]:
        def _userinfo() -> dict[str, Any]:
            service = build(
                "oauth2", "v2",
                credentials=Credentials(token=access_token),
                cache_discovery=False,
            )
            return service.userinfo().get().execute()

        return await self._call("get_user_info", _userinfo)

    # ------------------------------------------------------------------
    # Gmail
    # ------------------------------------------------------------------

    @staticmethod
    def _gmail(access_token: str):
        return build(
            "gmail", "v1",
            credentials=Credentials(token=access_token),
            cache_discovery=False,
        )

    async def search_messages(
        self, access_token: str, query: str, max_results: int,
    ) -> list[MessageRef]:
        def _search() -> list[MessageRef]:
            response = (
                self._gmail(access_token)
                .users()
                .messages()
                .list(userId="me", q=query, maxResults=max_results)
                .execute()
            )
            return [
                MessageRef(id=m["id"], thread_id=m.get("threadId", ""))
                for m in response.get("messages", [])
            ]

        return await self._call("search_messages", _search)

    async def get_message(
        self, access_token: str, message_id: str, headers: tuple[str, ...] = METADATA_HEADERS,
    ) -> GmailResource:
        def _get() -> GmailResource:
            return (
                self._gmail(access_token)
                .users()
                .messages()
                .get(
                    userId="me",
                    id=message_id,
                    format="metadata",
                    metadataHeaders=list(headers),
                )
                .execute()
            )

        return await self._call("get_message", _get)

    async def get_thread(
        self, access_token: str, thread_id: str, *, metadata_only: bool = False,
    ) -> GmailResource:
        def _get() -> GmailResource:
            threads = self._gmail(access_token).users().threads()
            if metadata_only:
                request = threads.get(
                    userId="me",
                    id=thread_id,
                    format="metadata",
                    metadataHeaders=list(METADATA_HEADERS),
                )
            else:
                request = threads.get(userId="me", id=thread_id, format="full")
            return request.execute()

        return await self._call("get_thread", _get)

    async def list_threads(
        self, access_token: str, max_results: int, label_ids: tuple[str, ...] = ("INBOX",),
    ) -> list[str]:
        def _list() -> list[str]:
            response = (
                self._gmail(access_token)
                .users()
                .threads()
                .list(userId="me", maxResults=max_results, labelIds=list(label_ids))
                .execute()
            )
            return [t["id"] for t in response.get("threads", [])]

        return await self._call("list_threads", _list)

    async def modify_thread(
        self, access_token: str, thread_id: str, remove_label_ids: tuple[str, ...],
    ) -> None:
        def _modify() -> None:
            (
                self._gmail(access_token)
                .users()
                .threads()
                .modify(userId="me", id=thread_id, body={"removeLabelIds": list(remove_label_ids)})
                .execute()
            )

        await self._call("modify_thread", _modify)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self._timeout)
        except TimeoutError as exc:
            logger.warning("gmail_call_timeout", operation=operation, timeout=self._timeout)
            raise ProviderError(f"{operation} timed out") from exc
        except Exception as exc:
            logger.warning("gmail_call_failed", operation=operation, error=str(exc))
            raise ProviderError(f"{operation} failed: {exc}") from exc
