"""JWT session and OAuth-state token handling.

Session tokens are issued by the identity provider and carry the user's
email address; this service only verifies them. ``create_access_token``
exists for development and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt

from atelier_api.config import Settings

__all__ = [
    "JWTError",
    "create_access_token",
    "create_oauth_state",
    "decode_oauth_state",
    "decode_token",
]


def create_access_token(email: str, settings: Settings) -> str:
    """Create a signed session token for *email*."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.jwt_access_token_expire_minutes,
    )
    payload = {
        "sub": email,
        "email": email,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token. Raises ``JWTError`` on failure."""
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"verify_aud": False},
    )


def create_oauth_state(profile_id: UUID, settings: Settings) -> str:
    """Short-lived token passed through Google as the OAuth ``state``.

    The callback request carries no session header, so the state is what
    ties the authorization code back to the profile that started the flow.
    """
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.oauth_state_expire_minutes,
    )
    payload = {
        "sub": str(profile_id),
        "exp": expire,
        "type": "oauth_state",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_oauth_state(state: str, settings: Settings) -> UUID:
    """Return the profile id carried by *state*. Raises ``JWTError`` if invalid."""
    payload = decode_token(state, settings)
    if payload.get("type") != "oauth_state":
        raise JWTError("Invalid token type")
    try:
        return UUID(payload["sub"])
    except (KeyError, ValueError) as exc:
        raise JWTError("Invalid state subject") from exc
