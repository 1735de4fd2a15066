"""Narrow capability interface over the external mail provider."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

# Gmail API resources are passed through as plain dicts in the provider's
# own JSON shape (``payload.headers``, ``payload.parts``, ``labelIds`` ...).
GmailResource = dict[str, Any]

METADATA_HEADERS = ("From", "To", "Subject", "Date")


class ProviderError(Exception):
    """Raised by provider implementations when a call fails or times out."""


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by a code exchange or a refresh.

    ``refresh_token`` is ``None`` when the provider did not issue a new one;
    ``expires_at`` is ``None`` when the provider did not report a lifetime.
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True)
class MessageRef:
    id: str
    thread_id: str


class MailProvider(Protocol):
    """Operations the mailbox component needs from the mail provider."""

    def authorization_url(self, state: str) -> str: ...

    async def exchange_code(self, code: str) -> TokenGrant: ...

    async def refresh(self, refresh_token: str) -> TokenGrant: ...

    async def get_user_info(self, access_token: str) -> dict[str, Any]: ...

    async def search_messages(
        self, access_token: str, query: str, max_results: int,
    ) -> list[MessageRef]: ...

    async def get_message(
        self, access_token: str, message_id: str, headers: tuple[str, ...] = METADATA_HEADERS,
    ) -> GmailResource: ...

    async def get_thread(
        self, access_token: str, thread_id: str, *, metadata_only: bool = False,
    ) -> GmailResource: ...

    async def list_threads(
        self, access_token: str, max_results: int, label_ids: tuple[str, ...] = ("INBOX",),
    ) -> list[str]: ...

    async def modify_thread(
        self, access_token: str, thread_id: str, remove_label_ids: tuple[str, ...],
    ) -> None: ...
