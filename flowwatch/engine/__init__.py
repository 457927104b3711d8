"""Core sync engine components.

The engines themselves live in ``execution_sync``, ``workflow_sync`` and
``scheduler`` and are imported from there.
"""

from .types import (
    SYNC_TYPES,
    JOB_NAMES,
    TERMINAL_STATUSES,
    SyncOptions,
    ExecutionSyncResult,
    WorkflowSyncResult,
    BackupSyncResult,
    ProviderSyncResult,
    SyncRunResult,
    map_mode,
    map_status,
)
from .change_detection import WriteDecision, decide_execution_write, needs_full_fetch
from .trigger_modes import extract_schedules, infer_trigger_mode

__all__ = [
    "SYNC_TYPES",
    "JOB_NAMES",
    "TERMINAL_STATUSES",
    "SyncOptions",
    "ExecutionSyncResult",
    "WorkflowSyncResult",
    "BackupSyncResult",
    "ProviderSyncResult",
    "SyncRunResult",
    "map_mode",
    "map_status",
    "WriteDecision",
    "decide_execution_write",
    "needs_full_fetch",
    "extract_schedules",
    "infer_trigger_mode",
]
