"""Run the studio backend: ``python -m atelier_api``."""

from __future__ import annotations

import structlog
import uvicorn

from .config import Settings
from .logging import setup_logging


def main() -> None:
    settings = Settings()  # type: ignore[call-arg]
    setup_logging(json=settings.log_json, level=settings.log_level)

    log = structlog.get_logger()
    if not settings.google_client_id or not settings.google_client_secret.get_secret_value():
        # The API still serves projects; mailbox/connect will fail at Google.
        log.warning("google_oauth_not_configured", redirect_uri=settings.google_redirect_uri)
    log.info("starting_backend", host=settings.host, port=settings.port, app_url=settings.app_url)

    uvicorn.run(
        "atelier_api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
