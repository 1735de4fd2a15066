"""Gmail mailbox endpoints: connect, status, disconnect, correspondence."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import urlencode
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from atelier_api.auth.jwt import create_oauth_state, decode_oauth_state
from atelier_api.auth.session import get_current_profile
from atelier_api.config import Settings
from atelier_api.db.models.studio import Profile
from atelier_api.deps import get_mail_provider, get_refresh_locks, get_session, get_settings
from atelier_api.mailbox.errors import AuthorizationFailed
from atelier_api.mailbox.provider import MailProvider
from atelier_api.mailbox.service import MailboxService
from atelier_api.mailbox.tokens import RefreshLocks
from atelier_api.schemas.mailbox import AuthorizationUrl, MailboxStatus, MailResult

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1", tags=["mailbox"])


def get_mailbox_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    provider: Annotated[MailProvider, Depends(get_mail_provider)],
    locks: Annotated[RefreshLocks, Depends(get_refresh_locks)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MailboxService:
    return MailboxService(session, provider, locks, settings)


def _settings_redirect(settings: Settings, **params: str) -> RedirectResponse:
    url = f"{settings.app_url.rstrip('/')}/settings?{urlencode(params)}"
    return RedirectResponse(url, status_code=302)


# ----------------------------------------------------------------------
# Connection
# ----------------------------------------------------------------------

@router.get("/mailbox/status", response_model=MailboxStatus)
async def mailbox_status(
    profile: Annotated[Profile, Depends(get_current_profile)],
    service: Annotated[MailboxService, Depends(get_mailbox_service)],
):
    """Connection state for the settings page. Does not refresh tokens."""
    return await service.get_status(profile.id)


@router.delete("/mailbox", response_model=MailResult, response_model_exclude_none=True)
async def disconnect_mailbox(
    profile: Annotated[Profile, Depends(get_current_profile)],
    service: Annotated[MailboxService, Depends(get_mailbox_service)],
):
    return await service.disconnect(profile.id)


@router.get("/mailbox/connect", response_model=AuthorizationUrl)
async def connect_mailbox(
    profile: Annotated[Profile, Depends(get_current_profile)],
    service: Annotated[MailboxService, Depends(get_mailbox_service)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Google consent URL; the UI navigates the browser to it."""
    state = create_oauth_state(profile.id, settings)
    return AuthorizationUrl(authorization_url=service.authorization_url(state))


@router.get("/mailbox/callback")
async def mailbox_callback(
    service: Annotated[MailboxService, Depends(get_mailbox_service)],
    settings: Annotated[Settings, Depends(get_settings)],
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
):
    """OAuth redirect target. Always answers with a redirect to the UI settings page."""
    if error:
        logger.warning("mailbox_oauth_error", error=error)
        return _settings_redirect(settings, error="google_auth_failed")
    if not code:
        return _settings_redirect(settings, error="no_code")

    try:
        owner_id = decode_oauth_state(state or "", settings)
    except JWTError:
        return _settings_redirect(settings, error="invalid_state")

    try:
        credential = await service.complete_authorization(owner_id, code)
    except AuthorizationFailed as exc:
        logger.warning("mailbox_connect_failed", owner_id=str(owner_id), reason=exc.reason)
        return _settings_redirect(settings, error=exc.reason)

    logger.info("mailbox_connected", owner_id=str(owner_id), mailbox=credential.mailbox_address)
    return _settings_redirect(settings, gmail="connected")


# ----------------------------------------------------------------------
# Correspondence
# ----------------------------------------------------------------------

@router.get("/projects/{project_id}/emails", response_model=MailResult, response_model_exclude_none=True)
async def project_emails(
    project_id: UUID,
    profile: Annotated[Profile, Depends(get_current_profile)],
    service: Annotated[MailboxService, Depends(get_mailbox_service)],
    limit: int | None = Query(default=None, ge=1, le=100),
):
    """Email exchanged with the project's clients and contacts."""
    return await service.project_emails(profile.id, project_id, limit)


@router.get("/mailbox/threads", response_model=MailResult, response_model_exclude_none=True)
async def inbox_threads(
    profile: Annotated[Profile, Depends(get_current_profile)],
    service: Annotated[MailboxService, Depends(get_mailbox_service)],
    limit: int = Query(default=30, ge=1, le=100),
):
    return await service.inbox_threads(profile.id, limit)


@router.get("/mailbox/threads/{thread_id}", response_model=MailResult, response_model_exclude_none=True)
async def email_thread(
    thread_id: str,
    profile: Annotated[Profile, Depends(get_current_profile)],
    service: Annotated[MailboxService, Depends(get_mailbox_service)],
    mark_read: bool = Query(default=True),
):
    """Full conversation; opening it marks the thread read unless ``mark_read=false``."""
    return await service.thread(profile.id, thread_id, mark_read=mark_read)
