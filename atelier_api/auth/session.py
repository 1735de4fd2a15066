"""FastAPI dependencies resolving the session token to a studio profile."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from atelier_api.auth.jwt import decode_token
from atelier_api.config import Settings
from atelier_api.db.models.studio import Profile
from atelier_api.deps import get_session
from atelier_api.mailbox.errors import NotAuthenticated

logger = structlog.get_logger()

_bearer_scheme = HTTPBearer(auto_error=False)


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=NotAuthenticated.detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    settings: Annotated[Settings, Depends(_get_settings)],
) -> dict:
    """Decode the session JWT and return ``{"email": str}``."""
    if credentials is None:
        raise _unauthenticated()
    try:
        payload = decode_token(credentials.credentials, settings)
    except JWTError:
        raise _unauthenticated()

    # Identity-provider tokens carry no "type"; locally issued ones say "access".
    if payload.get("type", "access") != "access":
        raise _unauthenticated()

    email = payload.get("email")
    if not email:
        raise _unauthenticated()
    return {"email": email}


async def get_current_profile(
    user: Annotated[dict, Depends(get_current_user)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Profile:
    """Resolve the authenticated email to its profile."""
    result = await session.execute(select(Profile).where(Profile.email == user["email"]))
    profile = result.scalar_one_or_none()
    if profile is None:
        logger.info("profile_not_found", email=user["email"])
        raise _unauthenticated()
    return profile
