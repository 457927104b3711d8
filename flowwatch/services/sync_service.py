"""Sync service: runs sync jobs across every configured provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from ..clients.n8n_client import N8nClient
from ..core.config import Settings
from ..core.exceptions import (
    DecryptionError,
    FlowwatchError,
    RemoteApiError,
    RemoteTimeoutError,
    StorageError,
    UnknownSyncTypeError,
)
from ..db.models import ProviderModel, SyncLogModel
from ..db.session import Database
from ..engine.execution_sync import ExecutionSyncEngine
from ..engine.types import SYNC_TYPES, ProviderSyncResult, SyncOptions, SyncRunResult
from ..engine.workflow_sync import WorkflowSyncEngine
from ..repositories.provider_repository import ProviderRepository
from ..repositories.sync_log_repository import SyncLogRepository
from .credential_vault import CredentialVault

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ProviderModel, str], N8nClient]

_FULL_SYNC_PARTS = ("workflows", "executions", "backups")


class SyncService:
    """Entry point for sync jobs.

    ``sync_all_providers`` fans out over every healthy, connected provider
    with failure isolation; ``sync_provider`` runs one job for one provider,
    bracketed by a sync log entry and a provider health update.
    """

    def __init__(
        self,
        database: Database,
        vault: CredentialVault,
        settings: Settings,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._db = database
        self._vault = vault
        self._settings = settings
        self._client_factory = client_factory or self._default_client
        self.workflow_engine = WorkflowSyncEngine(database)
        self.execution_engine = ExecutionSyncEngine(
            database,
            self.workflow_engine,
            page_size=settings.sync_batch_size,
            fetch_concurrency=settings.fetch_concurrency,
            max_incremental_pages=settings.max_incremental_pages,
        )

    def _default_client(self, provider: ProviderModel, api_key: str) -> N8nClient:
        return N8nClient(
            provider.base_url,
            api_key,
            timeout=self._settings.remote_timeout_seconds,
            page_size=self._settings.remote_page_size,
        )

    async def list_syncable_providers(self) -> list[ProviderModel]:
        async with self._db.session() as session:
            return await ProviderRepository(session).list_syncable()

    async def sync_all_providers(self, options: SyncOptions | None = None) -> SyncRunResult:
        """Run one job type for every syncable provider concurrently."""
        options = options or SyncOptions()
        if options.sync_type not in SYNC_TYPES:
            raise UnknownSyncTypeError(options.sync_type)

        providers = await self.list_syncable_providers()
        run = SyncRunResult(sync_type=options.sync_type, providers=len(providers))
        if not providers:
            logger.info("No active providers found")
            return run

        logger.info("Syncing %s for %d providers", options.sync_type, len(providers))
        outcomes = await asyncio.gather(
            *(self.sync_provider(provider, options) for provider in providers),
            return_exceptions=True,
        )

        for provider, outcome in zip(providers, outcomes):
            if isinstance(outcome, Exception):
                message = outcome.message if isinstance(outcome, FlowwatchError) else str(outcome)
                run.failed += 1
                run.results.append(
                    ProviderSyncResult(
                        provider_id=provider.id,
                        provider_name=provider.name,
                        success=False,
                        error=message,
                    )
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                run.successful += 1
                run.results.append(
                    ProviderSyncResult(
                        provider_id=provider.id,
                        provider_name=provider.name,
                        success=True,
                        result=outcome,
                    )
                )

        logger.info(
            "Sync %s completed: %d successful, %d failed",
            options.sync_type,
            run.successful,
            run.failed,
        )
        return run

    async def sync_provider(
        self,
        provider: ProviderModel,
        options: SyncOptions | None = None,
    ) -> dict[str, Any]:
        """Run one job for one provider and return its counters.

        Errors propagate after the sync log and provider health are
        updated.
        """
        options = options or SyncOptions()
        if options.sync_type not in SYNC_TYPES:
            raise UnknownSyncTypeError(options.sync_type)

        log_id = await self._start_log(provider.id, options.sync_type)
        logger.info("Syncing %s for provider %s", options.sync_type, provider.name)

        try:
            api_key = self._vault.decrypt(provider.api_key_encrypted)
            async with self._client_factory(provider, api_key) as client:
                result = await self._run(provider, client, options)
        except DecryptionError as e:
            logger.error("Cannot decrypt API key for provider %s: %s", provider.name, e.message)
            await self._set_health(provider.id, "error", e.message)
            await self._complete_log(log_id, "error", error=e.message)
            raise
        except (RemoteApiError, RemoteTimeoutError) as e:
            logger.error("Sync %s failed for provider %s: %s", options.sync_type, provider.name, e.message)
            await self._set_health(provider.id, "warning", e.message)
            await self._complete_log(log_id, "error", error=e.message)
            raise
        except Exception as e:
            message = e.message if isinstance(e, FlowwatchError) else str(e)
            logger.exception("Sync %s failed for provider %s", options.sync_type, provider.name)
            await self._complete_log(log_id, "error", error=message)
            raise

        await self._set_health(provider.id, "healthy")
        await self._complete_log(log_id, "success", result=result)
        return result

    async def recheck_providers(self) -> list[str]:
        """Probe providers in ``warning`` status; returns the ids now healthy again."""
        async with self._db.session() as session:
            providers = await ProviderRepository(session).list_by_status("warning")

        recovered: list[str] = []
        for provider in providers:
            try:
                api_key = self._vault.decrypt(provider.api_key_encrypted)
                async with self._client_factory(provider, api_key) as client:
                    await client.test_connection()
            except DecryptionError as e:
                await self._set_health(provider.id, "error", e.message)
            except (RemoteApiError, RemoteTimeoutError) as e:
                logger.info("Provider %s still unreachable: %s", provider.name, e.message)
                await self._set_health(provider.id, "warning", e.message)
            else:
                logger.info("Provider %s is reachable again", provider.name)
                await self._set_health(provider.id, "healthy")
                recovered.append(provider.id)
        return recovered

    async def recent_logs(self, provider_id: str | None = None, limit: int = 20) -> list[SyncLogModel]:
        async with self._db.session() as session:
            return await SyncLogRepository(session).recent(provider_id, limit)

    async def _run(
        self,
        provider: ProviderModel,
        client: N8nClient,
        options: SyncOptions,
    ) -> dict[str, Any]:
        if options.sync_type == "executions":
            result = await self.execution_engine.sync_provider(provider, client, options)
        elif options.sync_type == "workflows":
            result = await self.workflow_engine.sync_provider(provider, client)
        elif options.sync_type == "backups":
            result = await self.workflow_engine.sync_workflow_backups(provider, client)
        else:
            return await self._sync_full(provider, client, options)
        return result.to_dict()

    async def _sync_full(
        self,
        provider: ProviderModel,
        client: N8nClient,
        options: SyncOptions,
    ) -> dict[str, Any]:
        """Workflows, executions and backups in sequence; one failing part does not stop the rest."""
        combined: dict[str, Any] = {"type": "full", "processed": 0, "inserted": 0, "updated": 0}
        failures: list[FlowwatchError] = []

        for part in _FULL_SYNC_PARTS:
            try:
                if part == "workflows":
                    result = await self.workflow_engine.sync_provider(provider, client)
                elif part == "executions":
                    result = await self.execution_engine.sync_provider(
                        provider, client, options, presync_workflows=False
                    )
                else:
                    result = await self.workflow_engine.sync_workflow_backups(provider, client)
            except FlowwatchError as e:
                logger.warning("Full sync part %s failed for %s: %s", part, provider.name, e.message)
                failures.append(e)
                combined[part] = {"error": e.message}
                continue

            combined[part] = result.to_dict()
            combined["processed"] += result.processed
            combined["inserted"] += result.inserted
            combined["updated"] += result.updated

        if len(failures) == len(_FULL_SYNC_PARTS):
            raise failures[0]
        return combined

    async def _start_log(self, provider_id: str, sync_type: str) -> str:
        try:
            async with self._db.writer() as session, session.begin():
                log = await SyncLogRepository(session).start(provider_id, sync_type)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create sync log: {e}", provider_id=provider_id) from e
        return log.id

    async def _complete_log(
        self,
        log_id: str,
        status: str,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        result = result or {}
        try:
            async with self._db.writer() as session, session.begin():
                await SyncLogRepository(session).complete(
                    log_id,
                    status,
                    processed=result.get("processed", 0),
                    inserted=result.get("inserted", 0),
                    updated=result.get("updated", 0),
                    error_message=error,
                    metadata=result,
                    last_cursor=result.get("last_cursor"),
                )
        except SQLAlchemyError:
            # The job outcome stands even if its log row cannot be closed
            logger.exception("Failed to complete sync log %s", log_id)

    async def _set_health(self, provider_id: str, status: str, error: str | None = None) -> None:
        try:
            async with self._db.writer() as session, session.begin():
                await ProviderRepository(session).update_health(provider_id, status, error)
        except SQLAlchemyError:
            logger.exception("Failed to update health of provider %s", provider_id)
