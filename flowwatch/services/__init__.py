"""Service layer for sync business logic."""

from .credential_vault import CredentialVault
from .provider_service import ProviderService
from .sync_service import SyncService

__all__ = [
    "CredentialVault",
    "ProviderService",
    "SyncService",
]
