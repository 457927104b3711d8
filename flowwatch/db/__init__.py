"""Database configuration and models."""

from .session import Database
from .models import ExecutionModel, ProviderModel, SyncLogModel, WorkflowModel

__all__ = [
    "Database",
    "ProviderModel",
    "WorkflowModel",
    "ExecutionModel",
    "SyncLogModel",
]
