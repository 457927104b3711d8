"""Core type definitions for the sync engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

SyncType = Literal["executions", "workflows", "backups", "full"]
SYNC_TYPES: tuple[str, ...] = ("executions", "workflows", "backups", "full")
JOB_NAMES: tuple[str, ...] = ("executions", "workflows", "backups")

ExecutionStatus = Literal["success", "error", "running", "waiting", "canceled", "unknown"]
TriggerMode = Literal["manual", "webhook", "cron", "error", "unknown"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"success", "error", "canceled"})

_STATUS_MAP: dict[str, ExecutionStatus] = {
    "success": "success",
    "failed": "error",
    "error": "error",
    "crashed": "error",
    "running": "running",
    "waiting": "waiting",
    "new": "waiting",
    "canceled": "canceled",
}

_MODE_MAP: dict[str, TriggerMode] = {
    "manual": "manual",
    "cli": "manual",
    "webhook": "webhook",
    "cron": "cron",
    # Most automated runs are schedule-driven
    "trigger": "cron",
    "error": "error",
}


def map_status(remote_status: str | None) -> ExecutionStatus:
    """Map a raw n8n execution status onto the local vocabulary."""
    return _STATUS_MAP.get((remote_status or "").lower(), "unknown")


def map_mode(remote_mode: str | None) -> TriggerMode:
    """Map a raw n8n execution mode onto the local vocabulary."""
    return _MODE_MAP.get((remote_mode or "").lower(), "unknown")


def is_terminal(status: str | None) -> bool:
    return status in TERMINAL_STATUSES


def to_utc_naive(value: datetime | None) -> datetime | None:
    """Normalize a timestamp to naive UTC, the form stored in the database."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def duration_ms(started_at: datetime | None, stopped_at: datetime | None) -> int | None:
    """Elapsed milliseconds, or None while the execution is still running."""
    if started_at is None or stopped_at is None:
        return None
    return int((to_utc_naive(stopped_at) - to_utc_naive(started_at)).total_seconds() * 1000)


@dataclass
class SyncOptions:
    """Options for one sync run."""

    sync_type: SyncType = "executions"
    batch_size: int | None = None
    deep_sync: bool = False


@dataclass
class ExecutionSyncResult:
    """Counters for one provider's execution sync."""

    type: str = "executions"
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    fetched: int = 0
    fetch_failures: int = 0
    pages: int = 0
    repaired: int = 0
    stopped_early: bool = False
    last_cursor: str | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WorkflowSyncResult:
    """Counters for one provider's workflow sync."""

    type: str = "workflows"
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    archived: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BackupSyncResult:
    """Counters for one provider's backup run."""

    type: str = "backups"
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    backed_up: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProviderSyncResult:
    """Outcome of one provider within a multi-provider run."""

    provider_id: str
    provider_name: str
    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class SyncRunResult:
    """Outcome of a multi-provider run."""

    sync_type: str
    providers: int = 0
    successful: int = 0
    failed: int = 0
    results: list[ProviderSyncResult] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
