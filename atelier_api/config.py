"""Backend configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Top-level settings for the studio backend.

    All env vars are prefixed with ``ATELIER_``.
    Example: ``ATELIER_JWT_SECRET=mysecret``
    """

    model_config = SettingsConfigDict(env_prefix="ATELIER_")

    # --- Database -----------------------------------------------------------
    database_url: str = Field(
        description="Async SQLAlchemy URL of the studio database",
    )

    # --- Session tokens -----------------------------------------------------
    jwt_secret: str = Field(
        description="Secret shared with the identity provider to verify session tokens",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )
    jwt_access_token_expire_minutes: int = Field(
        default=60,
        description="Lifetime of locally issued session tokens (development only)",
    )
    oauth_state_expire_minutes: int = Field(
        default=10,
        description="Lifetime of the signed OAuth state parameter",
    )

    # --- Google OAuth / Gmail ------------------------------------------------
    google_client_id: str = Field(default="", description="OAuth client id")
    google_client_secret: SecretStr = Field(
        default=SecretStr(""),
        description="OAuth client secret",
    )
    google_redirect_uri: str = Field(
        default="http://localhost:8000/api/v1/mailbox/callback",
        description="Redirect URI registered for the OAuth client",
    )
    app_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of the browser UI (OAuth callback redirects here)",
    )

    # --- Mailbox behaviour ---------------------------------------------------
    mailbox_refresh_buffer_seconds: int = Field(
        default=300,
        description="Refresh the access token when it expires within this window",
    )
    mailbox_default_token_lifetime_seconds: int = Field(
        default=3600,
        description="Assumed access token lifetime when the provider omits it",
    )
    mailbox_provider_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout applied to every call made to the mail provider",
    )
    mailbox_default_limit: int = Field(
        default=20,
        description="Default number of messages returned for a project",
    )

    # --- Server -------------------------------------------------------------
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(
        default=True,
        description="Use JSON log output (True for prod, False for dev)",
    )
