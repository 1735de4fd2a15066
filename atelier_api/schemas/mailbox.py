"""Response schemas for the mailbox endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CorrespondenceRecord(BaseModel):
    """One email message, normalized for the UI.

    ``from`` is a Python keyword, so the field is ``sender`` with the wire
    alias ``from``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    thread_id: str = Field(default="", serialization_alias="threadId")
    sender: str = Field(default="", alias="from")
    to: str = ""
    subject: str = ""
    date: str = ""
    snippet: str = ""
    body: str | None = None
    from_name: str | None = Field(default=None, serialization_alias="fromName")
    from_email: str | None = Field(default=None, serialization_alias="fromEmail")
    is_me: bool | None = Field(default=None, serialization_alias="isMe")


class ThreadSummary(BaseModel):
    """Inbox row: the latest message of a thread plus its unread count."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    thread_id: str = Field(serialization_alias="threadId")
    sender: str = Field(default="", alias="from")
    from_name: str = Field(default="", serialization_alias="fromName")
    from_email: str = Field(default="", serialization_alias="fromEmail")
    to: str = ""
    subject: str = ""
    date: str = ""
    snippet: str = ""
    unread_count: int = Field(default=0, serialization_alias="unreadCount")


class MailboxStatus(BaseModel):
    connected: bool
    mailbox_address: str | None = Field(default=None, serialization_alias="email")
    expires_at: datetime | None = Field(default=None, serialization_alias="expiresAt")
    error: str | None = None
    message: str | None = None


class MailResult(BaseModel):
    """``{success, error}`` envelope returned by every mailbox operation."""

    success: bool
    error: str | None = None
    message: str | None = None
    emails: list[CorrespondenceRecord] | None = None
    messages: list[CorrespondenceRecord] | None = None
    threads: list[ThreadSummary] | None = None


class AuthorizationUrl(BaseModel):
    authorization_url: str
