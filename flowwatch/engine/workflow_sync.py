"""Workflow sync engine: mirrors remote workflow definitions for one provider."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..core.exceptions import FlowwatchError, StorageError
from ..db.models import WorkflowModel, utcnow
from ..repositories.workflow_repository import WorkflowRepository
from .change_detection import definition_content_changed, workflow_needs_definition
from .types import BackupSyncResult, WorkflowSyncResult

if TYPE_CHECKING:
    from ..clients.n8n_client import N8nClient
    from ..db.models import ProviderModel
    from ..db.session import Database
    from ..schemas.remote import RemoteWorkflow

logger = logging.getLogger(__name__)


class WorkflowSyncEngine:
    """Pulls workflow definitions and reconciles them into storage.

    Each workflow is written in its own short transaction; network calls
    happen outside of any transaction.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def sync_provider(self, provider: ProviderModel, client: N8nClient) -> WorkflowSyncResult:
        """Incremental workflow sync.

        Listing failures propagate; per-workflow failures are logged and
        recorded in ``errors``. Workflows missing from the listing are
        archived only when the listing is complete.
        """
        result = WorkflowSyncResult()
        listing = await client.list_workflows()
        summaries = listing.items

        async with self._db.session() as session:
            stored = await WorkflowRepository(session).get_many_by_remote_ids(
                provider.id, [s.id for s in summaries]
            )

        for summary in summaries:
            result.processed += 1
            try:
                outcome = await self._sync_one(provider, client, summary, stored.get(summary.id))
            except FlowwatchError as e:
                logger.warning(
                    "Workflow %s of provider %s failed to sync: %s",
                    summary.id,
                    provider.name,
                    e.message,
                )
                result.errors.append(f"{summary.id}: {e.message}")
                continue

            if outcome == "inserted":
                result.inserted += 1
            elif outcome == "updated":
                result.updated += 1
            else:
                result.skipped += 1

        if listing.complete:
            result.archived = await self._archive_missing(provider, {s.id for s in summaries})
        else:
            logger.warning(
                "Workflow listing for %s was incomplete, skipping archival", provider.name
            )
            result.errors.append("workflow listing incomplete, archival skipped")

        logger.info(
            "Workflow sync for %s: %d processed, %d inserted, %d updated, %d archived",
            provider.name,
            result.processed,
            result.inserted,
            result.updated,
            result.archived,
        )
        return result

    async def sync_workflow_backups(
        self,
        provider: ProviderModel,
        client: N8nClient,
    ) -> BackupSyncResult:
        """Fetch and store every full definition, skipping change detection."""
        result = BackupSyncResult()
        summaries = (await client.list_workflows()).items
        backup_time = utcnow()

        for summary in summaries:
            result.processed += 1
            try:
                remote = await client.get_workflow(summary.id)
                _, inserted = await self.store_definition(provider.id, remote, backup_time)
            except FlowwatchError as e:
                logger.warning(
                    "Backup of workflow %s for provider %s failed: %s",
                    summary.id,
                    provider.name,
                    e.message,
                )
                result.errors.append(f"{summary.id}: {e.message}")
                continue

            result.backed_up += 1
            if inserted:
                result.inserted += 1
            else:
                result.updated += 1

        logger.info(
            "Backed up %d/%d workflows for %s",
            result.backed_up,
            result.processed,
            provider.name,
        )
        return result

    async def store_definition(
        self,
        provider_id: str,
        remote: RemoteWorkflow,
        backup_time: datetime | None = None,
    ) -> tuple[WorkflowModel, bool]:
        """Write a full definition; returns the row and whether it was inserted.

        A concurrent insert of the same remote id is retried once as an
        update.
        """
        for attempt in range(2):
            try:
                async with self._db.writer() as session, session.begin():
                    repo = WorkflowRepository(session)
                    existing = await repo.get_by_remote_id(provider_id, remote.id)
                    workflow = await repo.save_definition(
                        provider_id, remote, existing, backup_time=backup_time
                    )
                return workflow, existing is None
            except IntegrityError:
                if attempt:
                    raise StorageError(
                        f"Workflow {remote.id} could not be written", provider_id=provider_id
                    ) from None
                logger.debug("Workflow %s inserted concurrently, retrying as update", remote.id)
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Failed to store workflow {remote.id}: {e}", provider_id=provider_id
                ) from e

        raise StorageError(f"Workflow {remote.id} could not be written", provider_id=provider_id)

    async def ensure_placeholder(
        self,
        provider_id: str,
        remote_id: str,
        name: str | None = None,
    ) -> WorkflowModel:
        """Return the workflow row for ``remote_id``, inserting a placeholder if absent."""
        try:
            async with self._db.writer() as session, session.begin():
                repo = WorkflowRepository(session)
                existing = await repo.get_by_remote_id(provider_id, remote_id)
                if existing is not None:
                    return existing
                workflow = await repo.create_placeholder(provider_id, remote_id, name)
            logger.info("Created placeholder workflow %s for provider %s", remote_id, provider_id)
            return workflow
        except IntegrityError:
            pass
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to create placeholder for workflow {remote_id}: {e}",
                provider_id=provider_id,
            ) from e

        # Lost an insert race; the winner's row is there now
        async with self._db.session() as session:
            existing = await WorkflowRepository(session).get_by_remote_id(provider_id, remote_id)
        if existing is None:
            raise StorageError(
                f"Placeholder for workflow {remote_id} could not be created",
                provider_id=provider_id,
            )
        return existing

    async def _sync_one(
        self,
        provider: ProviderModel,
        client: N8nClient,
        summary: RemoteWorkflow,
        existing: WorkflowModel | None,
    ) -> str:
        if existing is not None and not workflow_needs_definition(
            existing.updated_at, summary.updated_at, exists=True
        ):
            return await self._refresh_active(provider.id, summary)

        remote = await client.get_workflow(summary.id)

        if existing is not None:
            if definition_content_changed(existing.workflow_data, remote.nodes, remote.connections):
                logger.info("Workflow %s (%s): content changed", remote.name, remote.id)
            else:
                logger.info("Workflow %s (%s): metadata changed", remote.name, remote.id)

        _, inserted = await self.store_definition(provider.id, remote)
        return "inserted" if inserted else "updated"

    async def _refresh_active(self, provider_id: str, summary: RemoteWorkflow) -> str:
        try:
            async with self._db.writer() as session, session.begin():
                repo = WorkflowRepository(session)
                workflow = await repo.get_by_remote_id(provider_id, summary.id)
                if workflow is None:
                    return "skipped"
                changed = await repo.refresh_active(workflow, summary.active)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to refresh workflow {summary.id}: {e}", provider_id=provider_id
            ) from e
        return "updated" if changed else "skipped"

    async def _archive_missing(self, provider: ProviderModel, seen: set[str]) -> int:
        try:
            async with self._db.writer() as session, session.begin():
                archived = await WorkflowRepository(session).archive_missing(provider.id, seen)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to archive missing workflows: {e}", provider_id=provider.id
            ) from e

        if archived:
            logger.info("Archived %d workflows missing from provider %s", archived, provider.name)
        return archived
