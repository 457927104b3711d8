"""Sync-related Pydantic schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field

SyncType = Literal["executions", "workflows", "backups", "full"]


class ProviderSyncResultSchema(BaseModel):
    """Outcome of one provider's sync job."""

    provider_id: str
    provider_name: str
    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None


class SyncRunResponse(BaseModel):
    """Response schema for a triggered sync."""

    success: bool = True
    sync_type: SyncType
    skipped: bool = Field(False, description="True when the same job was already running")
    providers: int = 0
    successful: int = 0
    failed: int = 0
    results: list[ProviderSyncResultSchema] = Field(default_factory=list)


class SchedulerStatusSchema(BaseModel):
    """Scheduler state."""

    running: bool
    active_jobs: list[str]
    in_flight: list[str]
    intervals: dict[str, float]
    next_runs: dict[str, str | None]


class SyncLogSchema(BaseModel):
    """A sync log row."""

    id: str
    provider_id: str
    sync_type: str
    status: str
    records_processed: int
    records_inserted: int
    records_updated: int
    error_message: str | None
    created_at: str
    completed_at: str | None


class SyncStatusResponse(BaseModel):
    """Scheduler status plus recent sync logs."""

    scheduler: SchedulerStatusSchema
    recent_logs: list[SyncLogSchema]
