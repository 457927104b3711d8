"""Main entry point for the sync server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings, get_settings
from .core.logging_config import configure_logging
from .db.session import Database
from .engine.scheduler import SyncScheduler
from .routes import api_router
from .schemas.common import HealthResponse, RootResponse
from .services.credential_vault import CredentialVault
from .services.provider_service import ProviderService
from .services.sync_service import ClientFactory, SyncService

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build storage, services and scheduler; tear them down in reverse."""
        database = Database(
            settings.database_url,
            echo=settings.debug,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )
        await database.init()

        vault = CredentialVault(settings.encryption_key, settings.encryption_salt)
        sync_service = SyncService(database, vault, settings, client_factory=client_factory)
        scheduler = SyncScheduler(
            sync_service,
            settings.job_intervals(),
            manual_batch_size=settings.manual_sync_batch_size,
        )

        app.state.settings = settings
        app.state.database = database
        app.state.provider_service = ProviderService(database, vault)
        app.state.sync_service = sync_service
        app.state.scheduler = scheduler

        if settings.enable_scheduler:
            scheduler.start()
        else:
            logger.info("Scheduler disabled; syncs run only when triggered")

        logger.info("%s v%s started", settings.app_name, settings.app_version)
        logger.info("Running on http://%s:%s", settings.host, settings.port)

        try:
            yield
        finally:
            scheduler.stop()
            await scheduler.shutdown()
            await database.dispose()
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        description="Incremental sync of n8n executions and workflows",
        version=settings.app_version,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(api_router)

    # Root endpoints
    @app.get("/", response_model=RootResponse)
    async def root() -> RootResponse:
        """Root endpoint."""
        return RootResponse(
            name=settings.app_name,
            version=settings.app_version,
            status="running",
        )

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Health check endpoint."""
        scheduler = getattr(request.app.state, "scheduler", None)
        return HealthResponse(
            status="healthy",
            version=settings.app_version,
            scheduler_running=bool(scheduler and scheduler.is_running),
        )

    return app


def main() -> None:
    """Run the server."""
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
