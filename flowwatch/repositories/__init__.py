"""Repository layer for data persistence."""

from .provider_repository import ProviderRepository
from .workflow_repository import WorkflowRepository
from .execution_repository import ExecutionRepository
from .sync_log_repository import SyncLogRepository

__all__ = [
    "ProviderRepository",
    "WorkflowRepository",
    "ExecutionRepository",
    "SyncLogRepository",
]
