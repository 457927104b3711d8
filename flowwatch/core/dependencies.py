"""FastAPI dependency injection for the sync API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import HTTPException, Request

if TYPE_CHECKING:
    from ..engine.scheduler import SyncScheduler
    from ..services.sync_service import SyncService


# Components are built once in the application lifespan and kept on app.state


def get_sync_service(request: Request) -> SyncService:
    """Get the sync service instance."""
    service = getattr(request.app.state, "sync_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Sync service not initialized")
    return service


def get_scheduler(request: Request) -> SyncScheduler:
    """Get the scheduler instance."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Scheduler not initialized")
    return scheduler
