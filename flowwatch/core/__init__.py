"""Core module - config, exceptions, logging and dependencies."""

from .config import Settings, get_settings
from .exceptions import (
    FlowwatchError,
    RemoteApiError,
    RemoteTimeoutError,
    DecryptionError,
    StorageError,
    WorkflowNotFoundError,
    ProviderNotFoundError,
    UnknownSyncTypeError,
)
from .logging_config import configure_logging

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "configure_logging",
    # Exceptions
    "FlowwatchError",
    "RemoteApiError",
    "RemoteTimeoutError",
    "DecryptionError",
    "StorageError",
    "WorkflowNotFoundError",
    "ProviderNotFoundError",
    "UnknownSyncTypeError",
]
