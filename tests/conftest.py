"""Shared test fixtures for the studio backend."""

from __future__ import annotations

import asyncio
import base64
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from atelier_api.app import create_app
from atelier_api.auth.jwt import create_access_token
from atelier_api.config import Settings
from atelier_api.db.models.mailbox import MailboxCredential
from atelier_api.db.models.studio import Base, Profile, Project, ProjectClient, ProjectContact
from atelier_api.deps import get_session
from atelier_api.mailbox.provider import METADATA_HEADERS, GmailResource, MessageRef, ProviderError, TokenGrant

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def _test_settings(**overrides) -> Settings:
    """Create Settings with test defaults."""
    defaults = {
        "database_url": "sqlite+aiosqlite://",
        "jwt_secret": "test-secret",
        "google_client_id": "client-id",
        "google_client_secret": "client-secret",
        "app_url": "http://ui.test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ------------------------------------------------------------------
# Fake mail provider
# ------------------------------------------------------------------


def b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii")


def gmail_message(
    message_id: str,
    thread_id: str = "t1",
    *,
    headers: dict[str, str] | None = None,
    snippet: str = "",
    body: str | None = None,
    parts: list[dict] | None = None,
    labels: list[str] | None = None,
) -> GmailResource:
    """Build a message resource in the Gmail API JSON shape."""
    payload: dict[str, Any] = {
        "headers": [{"name": k, "value": v} for k, v in (headers or {}).items()],
        "body": {"size": 0},
    }
    if body is not None:
        payload["body"] = {"data": b64(body), "size": len(body)}
    if parts is not None:
        payload["mimeType"] = "multipart/alternative"
        payload["parts"] = parts
    return {
        "id": message_id,
        "threadId": thread_id,
        "snippet": snippet,
        "labelIds": labels or [],
        "payload": payload,
    }


def text_part(mime_type: str, text: str) -> dict:
    return {"mimeType": mime_type, "body": {"data": b64(text), "size": len(text)}}


class FakeMailProvider:
    """In-memory :class:`MailProvider` with programmable responses."""

    def __init__(self) -> None:
        self.refresh_grant = TokenGrant(access_token="AT2", expires_at=NOW + timedelta(hours=1))
        self.refresh_error: Exception | None = None
        self.refresh_delay = 0.0
        self.refresh_calls: list[str] = []

        self.exchange_grant = TokenGrant(
            access_token="AT1", refresh_token="RT1", expires_at=NOW + timedelta(hours=1),
        )
        self.exchange_error: Exception | None = None
        self.user_info: dict[str, Any] = {"email": "studio@gmail.com"}

        self.search_results: list[MessageRef] = []
        self.messages: dict[str, GmailResource] = {}
        self.message_delays: dict[str, float] = {}
        self.threads: dict[str, GmailResource] = {}
        self.inbox: list[str] = []
        self.fetch_error: Exception | None = None
        self.modify_error: Exception | None = None

        self.searches: list[tuple[str, str, int]] = []
        self.completed: list[str] = []
        self.modified: list[tuple[str, tuple[str, ...]]] = []
        self.tokens_used: list[str] = []

    def authorization_url(self, state: str) -> str:
        return f"https://accounts.test/o/oauth2/auth?access_type=offline&prompt=consent&state={state}"

    async def exchange_code(self, code: str) -> TokenGrant:
        if self.exchange_error is not None:
            raise self.exchange_error
        return self.exchange_grant

    async def refresh(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.refresh_delay:
            await asyncio.sleep(self.refresh_delay)
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_grant

    async def get_user_info(self, access_token: str) -> dict[str, Any]:
        return self.user_info

    async def search_messages(self, access_token: str, query: str, max_results: int) -> list[MessageRef]:
        self.tokens_used.append(access_token)
        self.searches.append((access_token, query, max_results))
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.search_results)

    async def get_message(
        self, access_token: str, message_id: str, headers: tuple[str, ...] = METADATA_HEADERS,
    ) -> GmailResource:
        await asyncio.sleep(self.message_delays.get(message_id, 0))
        self.completed.append(message_id)
        return self.messages[message_id]

    async def get_thread(self, access_token: str, thread_id: str, *, metadata_only: bool = False) -> GmailResource:
        self.tokens_used.append(access_token)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.threads[thread_id]

    async def list_threads(
        self, access_token: str, max_results: int, label_ids: tuple[str, ...] = ("INBOX",),
    ) -> list[str]:
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.inbox)

    async def modify_thread(self, access_token: str, thread_id: str, remove_label_ids: tuple[str, ...]) -> None:
        if self.modify_error is not None:
            raise self.modify_error
        self.modified.append((thread_id, remove_label_ids))


def network_error() -> ProviderError:
    return ProviderError("refresh failed: Connection reset by peer")


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def settings():
    return _test_settings()


@pytest.fixture
def provider() -> FakeMailProvider:
    return FakeMailProvider()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def app(settings, provider, session_factory):
    """App wired to the fake provider and the in-memory database.

    Lifespan is not started; the session dependency is overridden.
    """
    application = create_app(settings, mail_provider=provider)

    async def _get_session():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_session] = _get_session
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ------------------------------------------------------------------
# Data helpers
# ------------------------------------------------------------------


def make_auth_headers(settings: Settings, email: str = "designer@studio.test") -> dict:
    token = create_access_token(email, settings)
    return {"Authorization": f"Bearer {token}"}


async def make_profile(session: AsyncSession, email: str = "designer@studio.test") -> Profile:
    profile = Profile(email=email, display_name=email.split("@")[0])
    session.add(profile)
    await session.commit()
    await session.refresh(profile)
    return profile


async def make_project(
    session: AsyncSession,
    owner: Profile,
    *,
    clients: list[str | None] = (),
    contacts: list[str | None] = (),
    name: str = "Loft on Mokotowska",
) -> Project:
    project = Project(owner_id=owner.id, name=name)
    session.add(project)
    await session.flush()
    for position, email in enumerate(clients):
        session.add(ProjectClient(project_id=project.id, name=f"client-{position}", email=email, position=position))
    for position, email in enumerate(contacts):
        session.add(ProjectContact(project_id=project.id, name=f"contact-{position}", email=email, position=position))
    await session.commit()
    await session.refresh(project)
    return project


async def make_credential(
    session: AsyncSession,
    owner: Profile,
    *,
    expires_at: datetime | None = None,
    access_token: str = "AT1",
    refresh_token: str = "RT1",
    mailbox_address: str = "studio@gmail.com",
) -> MailboxCredential:
    credential = MailboxCredential(
        owner_id=owner.id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at or datetime.now(timezone.utc) + timedelta(hours=1),
        mailbox_address=mailbox_address,
    )
    session.add(credential)
    await session.commit()
    await session.refresh(credential)
    return credential
