"""Provider service: registration and credential rotation."""

from __future__ import annotations

import logging

from ..core.exceptions import ProviderNotFoundError
from ..db.models import ProviderModel
from ..db.session import Database
from ..repositories.provider_repository import ProviderRepository
from .credential_vault import CredentialVault

logger = logging.getLogger(__name__)


class ProviderService:
    """Writes provider records; API keys only ever reach storage encrypted."""

    def __init__(self, database: Database, vault: CredentialVault) -> None:
        self._db = database
        self._vault = vault

    async def register(
        self,
        name: str,
        base_url: str,
        api_key: str,
        user_id: str | None = None,
    ) -> ProviderModel:
        """Add a provider; it is picked up by the next sync run."""
        encrypted = self._vault.encrypt(api_key)
        async with self._db.writer() as session, session.begin():
            provider = await ProviderRepository(session).create(
                name=name,
                base_url=base_url,
                api_key_encrypted=encrypted,
                user_id=user_id,
            )
        logger.info("Registered provider %s (%s)", provider.name, provider.id)
        return provider

    async def update_api_key(self, provider_id: str, api_key: str) -> ProviderModel:
        """Replace a provider's API key and make it eligible for sync again."""
        encrypted = self._vault.encrypt(api_key)
        async with self._db.writer() as session, session.begin():
            repo = ProviderRepository(session)
            provider = await repo.set_api_key(provider_id, encrypted)
            if provider is None:
                raise ProviderNotFoundError(provider_id)
            provider.is_connected = True
            provider = await repo.update_health(provider_id, "healthy")
        logger.info("Rotated API key for provider %s", provider_id)
        return provider

