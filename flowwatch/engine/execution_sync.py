"""Execution sync engine: incremental pull of execution history for one provider."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from ..core.exceptions import (
    FlowwatchError,
    RemoteApiError,
    RemoteTimeoutError,
    StorageError,
    WorkflowNotFoundError,
)
from ..repositories.execution_repository import ExecutionRepository
from ..repositories.workflow_repository import WorkflowRepository
from ..schemas.payloads import ExecutionMetadata, WorkflowDefinition
from .change_detection import WriteDecision, classify_page, prefer_page_refetch
from .trigger_modes import infer_trigger_mode
from .types import ExecutionSyncResult, SyncOptions, duration_ms, map_status, to_utc_naive
from .usage_metrics import extract_usage_metrics

if TYPE_CHECKING:
    from ..clients.n8n_client import N8nClient
    from ..db.models import ProviderModel, WorkflowModel
    from ..db.session import Database
    from ..schemas.remote import ExecutionPage, RemoteExecution, RemoteWorkflow
    from .workflow_sync import WorkflowSyncEngine

logger = logging.getLogger(__name__)

_REMOTE_ERRORS = (RemoteApiError, RemoteTimeoutError)


@dataclass
class ResolvedWorkflow:
    """Local workflow row an execution belongs to."""

    id: str
    name: str
    nodes: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class PageOutcome:
    needed: int = 0
    fetched: int = 0
    fetch_failures: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0


class ExecutionSyncEngine:
    """Pulls execution pages newest-first and reconciles them into storage.

    Flow per run: optional workflow pre-sync, then a loop of
    fetch-summary-page, classify, fetch full data for the subset that needs
    it, apply the page in one transaction; finally a bulk relationship
    repair. Pagination stops at the first page with nothing to fetch unless
    ``deep_sync`` is set.
    """

    def __init__(
        self,
        database: Database,
        workflow_engine: WorkflowSyncEngine,
        page_size: int = 100,
        fetch_concurrency: int = 5,
        max_incremental_pages: int = 0,
    ) -> None:
        self._db = database
        self._workflows = workflow_engine
        self._page_size = page_size
        self._fetch_concurrency = max(1, fetch_concurrency)
        self._max_incremental_pages = max_incremental_pages

    async def sync_provider(
        self,
        provider: ProviderModel,
        client: N8nClient,
        options: SyncOptions | None = None,
        presync_workflows: bool = True,
    ) -> ExecutionSyncResult:
        """Run one incremental (or deep) execution sync for ``provider``.

        A failure on the first page propagates. Later page failures end
        pagination and are reported in ``errors`` of the partial result.
        """
        options = options or SyncOptions()
        batch_size = options.batch_size or self._page_size
        result = ExecutionSyncResult()

        if presync_workflows:
            try:
                await self._workflows.sync_provider(provider, client)
            except FlowwatchError as e:
                logger.warning("Workflow pre-sync failed for %s: %s", provider.name, e.message)

        cursor: str | None = None
        while True:
            if (
                not options.deep_sync
                and self._max_incremental_pages
                and result.pages >= self._max_incremental_pages
            ):
                logger.info("Page limit reached for %s after %d pages", provider.name, result.pages)
                break

            try:
                page = await client.list_executions(limit=batch_size, cursor=cursor)
            except _REMOTE_ERRORS as e:
                if result.pages == 0:
                    raise
                logger.warning("Execution listing for %s stopped: %s", provider.name, e.message)
                result.errors.append(e.message)
                break

            result.pages += 1
            if not page.items:
                break

            try:
                outcome = await self._process_page(provider, client, page, cursor, batch_size)
            except StorageError as e:
                if result.pages == 1:
                    raise
                logger.error("Page %d for %s rolled back: %s", result.pages, provider.name, e.message)
                result.errors.append(e.message)
                break

            result.processed += len(page.items)
            result.skipped += len(page.items) - outcome.needed + outcome.unchanged
            result.fetched += outcome.fetched
            result.fetch_failures += outcome.fetch_failures
            result.inserted += outcome.inserted
            result.updated += outcome.updated
            result.last_cursor = page.next_cursor

            if outcome.needed == 0 and not options.deep_sync:
                result.stopped_early = page.next_cursor is not None
                break
            if not page.next_cursor:
                break
            cursor = page.next_cursor

        result.repaired = await self._repair_relationships(provider)

        logger.info(
            "Execution sync for %s: %d processed, %d inserted, %d updated, %d skipped over %d pages",
            provider.name,
            result.processed,
            result.inserted,
            result.updated,
            result.skipped,
            result.pages,
        )
        return result

    async def _process_page(
        self,
        provider: ProviderModel,
        client: N8nClient,
        page: ExecutionPage,
        cursor: str | None,
        batch_size: int,
    ) -> PageOutcome:
        outcome = PageOutcome()

        async with self._db.session() as session:
            statuses = await ExecutionRepository(session).get_statuses(
                provider.id, [item.id for item in page.items]
            )

        needed = classify_page(page.items, statuses)
        outcome.needed = len(needed)
        if not needed:
            return outcome

        full = await self._fetch_full_data(client, needed, cursor, batch_size, len(page.items), outcome)
        if not full:
            return outcome

        workflows = await self._resolve_workflows(provider, client, full)
        rows: list[dict[str, Any]] = []
        for execution in full:
            try:
                rows.append(self._build_row(execution, workflows.get(execution.workflow_id or "")))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Execution %s has an unusable payload: %s", execution.id, e)
                outcome.fetch_failures += 1
        if not rows:
            return outcome

        try:
            async with self._db.writer() as session, session.begin():
                repo = ExecutionRepository(session)
                decisions = [await repo.upsert(provider.id, row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to apply execution page: {e}", provider_id=provider.id
            ) from e

        outcome.inserted = decisions.count(WriteDecision.INSERT)
        outcome.updated = decisions.count(WriteDecision.UPDATE)
        outcome.unchanged = decisions.count(WriteDecision.SKIP)
        return outcome

    async def _fetch_full_data(
        self,
        client: N8nClient,
        needed: list[RemoteExecution],
        cursor: str | None,
        batch_size: int,
        page_len: int,
        outcome: PageOutcome,
    ) -> list[RemoteExecution]:
        """Full payloads for ``needed``, in page order; failed fetches are dropped."""
        by_id: dict[str, RemoteExecution] = {}

        if prefer_page_refetch(len(needed), page_len):
            try:
                data_page = await client.list_executions(
                    limit=batch_size, cursor=cursor, include_data=True
                )
            except _REMOTE_ERRORS as e:
                logger.warning("Page re-fetch with data failed, fetching individually: %s", e.message)
            else:
                wanted = {item.id for item in needed}
                by_id = {e.id: e for e in data_page.items if e.id in wanted and e.has_data}

        missing = [item for item in needed if item.id not in by_id]
        if missing:
            by_id.update(await self._fetch_individually(client, missing, outcome))

        outcome.fetched = len(by_id)
        return [by_id[item.id] for item in needed if item.id in by_id]

    async def _fetch_individually(
        self,
        client: N8nClient,
        items: list[RemoteExecution],
        outcome: PageOutcome,
    ) -> dict[str, RemoteExecution]:
        semaphore = asyncio.Semaphore(self._fetch_concurrency)

        async def fetch(item: RemoteExecution) -> RemoteExecution:
            async with semaphore:
                return await client.get_execution(item.id)

        results = await asyncio.gather(*(fetch(item) for item in items), return_exceptions=True)

        fetched: dict[str, RemoteExecution] = {}
        for item, res in zip(items, results):
            if isinstance(res, FlowwatchError):
                logger.warning("Failed to fetch execution %s: %s", item.id, res.message)
                outcome.fetch_failures += 1
            elif isinstance(res, Exception):
                logger.error("Failed to fetch execution %s", item.id, exc_info=res)
                outcome.fetch_failures += 1
            elif isinstance(res, BaseException):
                raise res
            else:
                fetched[item.id] = res
        return fetched

    async def _resolve_workflows(
        self,
        provider: ProviderModel,
        client: N8nClient,
        executions: list[RemoteExecution],
    ) -> dict[str, ResolvedWorkflow]:
        """Map remote workflow ids to local rows, creating any that are missing.

        Only a 404 from the provider creates a placeholder. Any other
        failure leaves the id unresolved for this page.
        """
        remote_ids = {e.workflow_id for e in executions if e.workflow_id}
        if not remote_ids:
            return {}

        async with self._db.session() as session:
            stored = await WorkflowRepository(session).get_many_by_remote_ids(provider.id, remote_ids)
        resolved = {rid: _resolved(w) for rid, w in stored.items()}

        for remote_id in sorted(remote_ids - resolved.keys()):
            hint = next(
                (
                    (e.workflow_data or {}).get("name")
                    for e in executions
                    if e.workflow_id == remote_id and e.workflow_data
                ),
                None,
            )
            try:
                remote = await self._fetch_remote_workflow(client, provider.id, remote_id)
                workflow, _ = await self._workflows.store_definition(provider.id, remote)
            except WorkflowNotFoundError as e:
                logger.info("%s; using a placeholder", e.message)
                workflow = await self._workflows.ensure_placeholder(provider.id, remote_id, hint)
            except FlowwatchError as e:
                # Stored unlinked; relationship repair links it once the workflow exists
                logger.warning("Workflow %s unresolved for this page: %s", remote_id, e.message)
                continue
            resolved[remote_id] = _resolved(workflow)

        return resolved

    async def _fetch_remote_workflow(
        self,
        client: N8nClient,
        provider_id: str,
        remote_id: str,
    ) -> RemoteWorkflow:
        try:
            return await client.get_workflow(remote_id)
        except RemoteApiError as e:
            if e.status == 404:
                raise WorkflowNotFoundError(remote_id, provider_id) from e
            raise

    def _build_row(
        self,
        execution: RemoteExecution,
        workflow: ResolvedWorkflow | None,
    ) -> dict[str, Any]:
        """Column values for one execution row."""
        started_at = to_utc_naive(execution.started_at)
        stopped_at = to_utc_naive(execution.stopped_at)
        metrics = extract_usage_metrics(execution.data)

        nodes = workflow.nodes if workflow and workflow.nodes else None
        if nodes is None and execution.workflow_data:
            # Snapshot of the definition the run used
            nodes = execution.workflow_data.get("nodes")

        metadata = ExecutionMetadata(
            workflow_name=workflow.name if workflow else None,
            remote_status=execution.status,
            remote_mode=execution.mode,
            wait_till=execution.wait_till,
            ai_model=metrics.ai_model,
            node_usage=metrics.node_usage,
        )

        return {
            "workflow_id": workflow.id if workflow else None,
            "provider_execution_id": execution.id,
            "provider_workflow_id": execution.workflow_id,
            "status": map_status(execution.status),
            "mode": infer_trigger_mode(nodes, execution.mode),
            "started_at": started_at,
            "stopped_at": stopped_at,
            "duration": duration_ms(started_at, stopped_at),
            "finished": execution.finished,
            "retry_of": execution.retry_of,
            "retry_success_id": execution.retry_success_id,
            "execution_data": execution.data,
            "total_tokens": metrics.total_tokens,
            "input_tokens": metrics.input_tokens,
            "output_tokens": metrics.output_tokens,
            "ai_cost": round(metrics.ai_cost, 6),
            "ai_provider": metrics.ai_provider,
            "execution_metadata": metadata.dump(),
        }

    async def _repair_relationships(self, provider: ProviderModel) -> int:
        try:
            async with self._db.writer() as session, session.begin():
                repaired = await ExecutionRepository(session).repair_workflow_links(provider.id)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Relationship repair failed: {e}", provider_id=provider.id
            ) from e

        if repaired:
            logger.info("Repaired workflow links on %d executions for %s", repaired, provider.name)
        return repaired


def _resolved(workflow: WorkflowModel) -> ResolvedWorkflow:
    definition = WorkflowDefinition.load(workflow.workflow_data)
    return ResolvedWorkflow(
        id=workflow.id,
        name=workflow.name,
        nodes=definition.nodes if definition else [],
    )
