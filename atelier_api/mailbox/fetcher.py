"""Fetch messages and threads from the provider and normalize them."""

from __future__ import annotations

import asyncio
import base64
import binascii
import html
import re
from email.utils import parseaddr

import structlog

from atelier_api.mailbox.errors import FetchFailed
from atelier_api.mailbox.provider import GmailResource, MailProvider, ProviderError
from atelier_api.schemas.mailbox import CorrespondenceRecord, ThreadSummary

logger = structlog.get_logger()

NO_SUBJECT = "(no subject)"

_TAG_RE = re.compile(r"<[^>]*>")


# ----------------------------------------------------------------------
# Payload helpers
# ----------------------------------------------------------------------

def get_header(message: GmailResource, name: str) -> str:
    """Case-insensitive header lookup; a missing header yields ``""``."""
    wanted = name.lower()
    for header in (message.get("payload") or {}).get("headers") or []:
        if (header.get("name") or "").lower() == wanted:
            return header.get("value") or ""
    return ""


def decode_body(data: str) -> str:
    """Decode a Gmail base64url body to text. Missing padding is tolerated."""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return ""
    return raw.decode("utf-8", errors="replace")


def _find_part(part: GmailResource, mime_type: str) -> GmailResource | None:
    # depth-first: multipart/alternative is often nested in multipart/mixed
    for child in part.get("parts") or []:
        if child.get("mimeType") == mime_type and (child.get("body") or {}).get("data"):
            return child
        found = _find_part(child, mime_type)
        if found is not None:
            return found
    return None


def strip_html(markup: str) -> str:
    text = _TAG_RE.sub("", markup).replace("&nbsp;", " ")
    return html.unescape(text).strip()


def extract_body(message: GmailResource) -> str:
    """Plain-text body of a full-format message.

    Prefers the direct payload body, then the first ``text/plain`` part,
    then the first ``text/html`` part with tags stripped. Returns ``""``
    when none is present.
    """
    payload = message.get("payload") or {}
    direct = (payload.get("body") or {}).get("data")
    if direct:
        return decode_body(direct)

    plain = _find_part(payload, "text/plain")
    if plain is not None:
        return decode_body(plain["body"]["data"])

    rich = _find_part(payload, "text/html")
    if rich is not None:
        return strip_html(decode_body(rich["body"]["data"]))
    return ""


def parse_address(value: str) -> tuple[str, str]:
    """Split ``"Name <addr>"`` into ``(name, addr)``; the name falls back to the local part."""
    name, address = parseaddr(value)
    address = address or value.strip()
    if not name:
        name = address.split("@")[0]
    return name.strip().strip('"'), address.strip()


# ----------------------------------------------------------------------
# Fetcher
# ----------------------------------------------------------------------

class MessageFetcher:
    """Runs searches and thread reads against a :class:`MailProvider`.

    Every provider failure surfaces as :class:`FetchFailed`.
    """

    def __init__(self, provider: MailProvider) -> None:
        self._provider = provider

    async def list_messages(self, access_token: str, query: str, limit: int = 20) -> list[CorrespondenceRecord]:
        """Metadata of the messages matching *query*, in search-result order.

        Results beyond *limit* are dropped silently; there is no cursor.
        """
        try:
            refs = await self._provider.search_messages(access_token, query, limit)
            refs = refs[:limit]
            if not refs:
                return []
            messages = await asyncio.gather(
                *(self._provider.get_message(access_token, ref.id) for ref in refs)
            )
        except ProviderError as exc:
            logger.warning("mailbox_fetch_failed", operation="list_messages", error=str(exc))
            raise FetchFailed() from exc

        return [
            CorrespondenceRecord(
                id=ref.id,
                thread_id=ref.thread_id or message.get("threadId", ""),
                sender=get_header(message, "From"),
                to=get_header(message, "To"),
                subject=get_header(message, "Subject"),
                date=get_header(message, "Date"),
                snippet=message.get("snippet") or "",
            )
            for ref, message in zip(refs, messages)
        ]

    async def get_thread(
        self,
        access_token: str,
        thread_id: str,
        mailbox_address: str | None = None,
    ) -> list[CorrespondenceRecord]:
        """All messages of a thread with decoded bodies."""
        try:
            thread = await self._provider.get_thread(access_token, thread_id)
        except ProviderError as exc:
            logger.warning("mailbox_fetch_failed", operation="get_thread", thread_id=thread_id, error=str(exc))
            raise FetchFailed("Failed to fetch email thread") from exc

        me = (mailbox_address or "").lower()
        records: list[CorrespondenceRecord] = []
        for message in thread.get("messages") or []:
            sender = get_header(message, "From")
            from_name, from_email = parse_address(sender)
            records.append(
                CorrespondenceRecord(
                    id=message.get("id", ""),
                    thread_id=message.get("threadId") or thread_id,
                    sender=sender,
                    to=get_header(message, "To"),
                    subject=get_header(message, "Subject"),
                    date=get_header(message, "Date"),
                    snippet=message.get("snippet") or "",
                    body=extract_body(message),
                    from_name=from_name,
                    from_email=from_email,
                    is_me=bool(me) and from_email.lower() == me,
                )
            )
        return records

    async def list_inbox_threads(self, access_token: str, limit: int = 30) -> list[ThreadSummary]:
        """Inbox threads summarized by their latest message, in provider order."""
        try:
            thread_ids = (await self._provider.list_threads(access_token, limit))[:limit]
            if not thread_ids:
                return []
            threads = await asyncio.gather(
                *(
                    self._provider.get_thread(access_token, thread_id, metadata_only=True)
                    for thread_id in thread_ids
                )
            )
        except ProviderError as exc:
            logger.warning("mailbox_fetch_failed", operation="list_inbox_threads", error=str(exc))
            raise FetchFailed() from exc

        summaries: list[ThreadSummary] = []
        for thread_id, thread in zip(thread_ids, threads):
            messages = thread.get("messages") or []
            last = messages[-1] if messages else {}
            sender = get_header(last, "From")
            from_name, from_email = parse_address(sender) if sender else ("", "")
            summaries.append(
                ThreadSummary(
                    id=thread_id,
                    thread_id=thread_id,
                    sender=sender,
                    from_name=from_name,
                    from_email=from_email,
                    to=get_header(last, "To"),
                    subject=get_header(last, "Subject") or NO_SUBJECT,
                    date=get_header(last, "Date"),
                    snippet=last.get("snippet") or "",
                    unread_count=sum(1 for m in messages if "UNREAD" in (m.get("labelIds") or [])),
                )
            )
        return summaries

    async def mark_thread_read(self, access_token: str, thread_id: str) -> None:
        """Best effort: a failure is logged and otherwise ignored."""
        try:
            await self._provider.modify_thread(access_token, thread_id, ("UNREAD",))
        except ProviderError as exc:
            logger.info("mailbox_mark_read_failed", thread_id=thread_id, error=str(exc))
