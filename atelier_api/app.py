"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from atelier_api.config import Settings
from atelier_api.db.engine import Database
from atelier_api.mailbox.provider import MailProvider
from atelier_api.mailbox.tokens import RefreshLocks

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create the DB engine. Shutdown: dispose."""
    settings: Settings = app.state.settings
    db = Database(settings)
    app.state.db = db
    logger.info("database_engine_created")
    yield
    await db.close()
    logger.info("shutdown_complete")


def create_app(
    settings: Settings | None = None,
    mail_provider: MailProvider | None = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    if settings is None:
        settings = Settings()  # type: ignore[call-arg]
    if mail_provider is None:
        from atelier_api.mailbox.google import GoogleMailProvider

        mail_provider = GoogleMailProvider(settings)

    app = FastAPI(
        title="Atelier Studio Backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.mail_provider = mail_provider
    app.state.refresh_locks = RefreshLocks()

    from atelier_api.routers.mailbox import router as mailbox_router
    from atelier_api.routers.profiles import router as profiles_router
    from atelier_api.routers.projects import router as projects_router

    app.include_router(profiles_router)
    app.include_router(projects_router)
    app.include_router(mailbox_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "atelier-backend"}

    return app
