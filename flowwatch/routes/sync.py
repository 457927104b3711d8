"""Sync routes."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ..core.dependencies import get_scheduler, get_sync_service
from ..core.exceptions import FlowwatchError, UnknownSyncTypeError
from ..engine.scheduler import SyncScheduler
from ..schemas.sync import (
    SchedulerStatusSchema,
    SyncLogSchema,
    SyncRunResponse,
    SyncStatusResponse,
    SyncType,
)
from ..services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync")


# Type aliases for dependency injection
SchedulerDep = Annotated[SyncScheduler, Depends(get_scheduler)]
SyncServiceDep = Annotated[SyncService, Depends(get_sync_service)]


@router.post("/{sync_type}", response_model=SyncRunResponse)
async def trigger_sync(
    scheduler: SchedulerDep,
    sync_type: Annotated[SyncType, Path(description="executions, workflows, backups or full")],
    deep: bool = Query(False, description="Walk every page instead of stopping at known history"),
    batch_size: int | None = Query(None, ge=1, le=250, description="Executions per page"),
) -> SyncRunResponse:
    """Run a sync job now for every active provider."""
    try:
        run = await scheduler.trigger_sync(sync_type, deep_sync=deep, batch_size=batch_size)
    except UnknownSyncTypeError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except FlowwatchError as e:
        logger.error("Manual %s sync failed: %s", sync_type, e.message)
        raise HTTPException(status_code=500, detail="Sync failed")

    return SyncRunResponse.model_validate(run.to_dict())


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    scheduler: SchedulerDep,
    service: SyncServiceDep,
    provider_id: str | None = Query(None, description="Filter logs by provider"),
    limit: int = Query(20, ge=1, le=200),
) -> SyncStatusResponse:
    """Scheduler state and the most recent sync logs."""
    logs = await service.recent_logs(provider_id, limit)
    return SyncStatusResponse(
        scheduler=SchedulerStatusSchema(**scheduler.status()),
        recent_logs=[
            SyncLogSchema(
                id=log.id,
                provider_id=log.provider_id,
                sync_type=log.sync_type,
                status=log.status,
                records_processed=log.records_processed,
                records_inserted=log.records_inserted,
                records_updated=log.records_updated,
                error_message=log.error_message,
                created_at=log.created_at.isoformat(),
                completed_at=log.completed_at.isoformat() if log.completed_at else None,
            )
            for log in logs
        ],
    )
