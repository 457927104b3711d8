"""Custom exceptions for the sync engine."""

from typing import Any


class FlowwatchError(Exception):
    """Base exception for all sync engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RemoteApiError(FlowwatchError):
    """Raised when the provider API answers with an error status or an unusable body."""

    def __init__(self, status: int, message: str, url: str | None = None) -> None:
        super().__init__(
            message=f"Provider API error {status}: {message}",
            details={"status": status, "url": url},
        )
        self.status = status
        self.url = url


class RemoteTimeoutError(FlowwatchError):
    """Raised when a provider API call exceeds its deadline."""

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(
            message=f"Provider API call timed out after {timeout}s: {url}",
            details={"url": url, "timeout": timeout},
        )
        self.url = url
        self.timeout = timeout


class DecryptionError(FlowwatchError):
    """Raised when a stored credential blob cannot be decrypted."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            message=f"Failed to decrypt credential: {reason}",
            details={"reason": reason},
        )
        self.reason = reason


class StorageError(FlowwatchError):
    """Raised when a storage transaction fails and is rolled back."""

    def __init__(self, message: str, provider_id: str | None = None) -> None:
        super().__init__(
            message=message,
            details={"provider_id": provider_id} if provider_id else {},
        )
        self.provider_id = provider_id


class WorkflowNotFoundError(FlowwatchError):
    """Raised when a workflow is absent locally and on the provider."""

    def __init__(self, workflow_id: str, provider_id: str | None = None) -> None:
        super().__init__(
            message=f"Workflow not found: {workflow_id}",
            details={"workflow_id": workflow_id, "provider_id": provider_id},
        )
        self.workflow_id = workflow_id
        self.provider_id = provider_id


class ProviderNotFoundError(FlowwatchError):
    """Raised when a provider record does not exist."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(
            message=f"Provider not found: {provider_id}",
            details={"provider_id": provider_id},
        )
        self.provider_id = provider_id


class UnknownSyncTypeError(FlowwatchError):
    """Raised when a sync is requested for an unsupported type."""

    def __init__(self, sync_type: str) -> None:
        super().__init__(
            message=f"Unknown sync type: {sync_type}",
            details={"sync_type": sync_type},
        )
        self.sync_type = sync_type
