"""Provider repository for database persistence."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..db.models import ProviderModel, generate_id, utcnow


class ProviderRepository:
    """Repository for provider records.

    Never commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, provider_id: str) -> ProviderModel | None:
        """Get a provider by ID."""
        return await self._session.get(ProviderModel, provider_id)

    async def list_syncable(self) -> list[ProviderModel]:
        """Providers that are connected and currently healthy."""
        statement = (
            select(ProviderModel)
            .where(ProviderModel.is_connected == True)  # noqa: E712
            .where(ProviderModel.status == "healthy")
            .order_by(ProviderModel.name)
        )
        result = await self._session.execute(statement)
        return list(result.scalars().all())

    async def list_by_status(self, status: str) -> list[ProviderModel]:
        """Connected providers in a given health status."""
        statement = (
            select(ProviderModel)
            .where(ProviderModel.is_connected == True)  # noqa: E712
            .where(ProviderModel.status == status)
            .order_by(ProviderModel.name)
        )
        result = await self._session.execute(statement)
        return list(result.scalars().all())

    async def create(
        self,
        name: str,
        base_url: str,
        api_key_encrypted: str,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ProviderModel:
        """Create a new provider, initially healthy."""
        provider = ProviderModel(
            id=generate_id("prov"),
            user_id=user_id,
            name=name,
            base_url=base_url.rstrip("/"),
            api_key_encrypted=api_key_encrypted,
            is_connected=True,
            status="healthy",
            provider_metadata=metadata or {},
        )
        self._session.add(provider)
        await self._session.flush()
        return provider

    async def set_api_key(self, provider_id: str, api_key_encrypted: str) -> ProviderModel | None:
        provider = await self.get(provider_id)
        if provider is None:
            return None
        provider.api_key_encrypted = api_key_encrypted
        self._session.add(provider)
        await self._session.flush()
        return provider

    async def update_health(
        self,
        provider_id: str,
        status: str,
        error: str | None = None,
    ) -> ProviderModel | None:
        """Record a health check outcome.

        ``error`` is kept in metadata as ``last_error``; a healthy status
        clears it.
        """
        provider = await self.get(provider_id)
        if provider is None:
            return None

        now = utcnow()
        # Reassign so the JSON column is flagged dirty
        metadata = dict(provider.provider_metadata or {})
        if error:
            metadata["last_error"] = error
            metadata["last_error_at"] = now.isoformat()
        else:
            metadata.pop("last_error", None)
            metadata.pop("last_error_at", None)

        provider.status = status
        provider.last_checked_at = now
        provider.provider_metadata = metadata
        self._session.add(provider)
        await self._session.flush()
        return provider
