"""FastAPI dependency-injection helpers."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from atelier_api.config import Settings
from atelier_api.mailbox.provider import MailProvider
from atelier_api.mailbox.tokens import RefreshLocks


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.db.session() as session:
        yield session


def get_mail_provider(request: Request) -> MailProvider:
    return request.app.state.mail_provider


def get_refresh_locks(request: Request) -> RefreshLocks:
    return request.app.state.refresh_locks


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
