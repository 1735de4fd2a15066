"""structlog configuration for the studio backend.

Both structlog loggers and stdlib loggers (uvicorn, SQLAlchemy, the Google
client) end up in one stdout handler with the same renderer.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Event keys that may carry OAuth material.
SECRET_KEYS = frozenset({"access_token", "refresh_token", "code", "state", "client_secret"})

_NOISY_LOGGERS = {
    "googleapiclient.discovery_cache": logging.ERROR,
    "google_auth_oauthlib": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def redact_secrets(logger, method_name, event_dict):
    """Mask OAuth tokens if a call site ever passes one as context."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def setup_logging(*, json: bool = True, level: str = "INFO") -> None:
    """Route structlog and stdlib logging through a single renderer.

    Parameters
    ----------
    json:
        JSON lines when *True* (production); the coloured console renderer
        when *False* (local development).
    level:
        Root level name, case-insensitive (``"debug"``, ``"INFO"``).
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
    ]

    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
