"""Workflow repository for database persistence."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..db.models import WorkflowModel, generate_id, utcnow
from ..engine.trigger_modes import extract_schedules
from ..engine.types import to_utc_naive
from ..schemas.payloads import WorkflowDefinition, dump_schedules

if TYPE_CHECKING:
    from ..schemas.remote import RemoteWorkflow


class WorkflowRepository:
    """Repository for mirrored workflows.

    Never commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_remote_id(self, provider_id: str, remote_id: str) -> WorkflowModel | None:
        statement = select(WorkflowModel).where(
            WorkflowModel.provider_id == provider_id,
            WorkflowModel.provider_workflow_id == remote_id,
        )
        result = await self._session.execute(statement)
        return result.scalars().first()

    async def get_many_by_remote_ids(
        self,
        provider_id: str,
        remote_ids: Iterable[str],
    ) -> dict[str, WorkflowModel]:
        """Stored workflows keyed by remote id; unknown ids are absent."""
        ids = list(set(remote_ids))
        if not ids:
            return {}
        statement = select(WorkflowModel).where(
            WorkflowModel.provider_id == provider_id,
            WorkflowModel.provider_workflow_id.in_(ids),
        )
        result = await self._session.execute(statement)
        return {w.provider_workflow_id: w for w in result.scalars().all()}

    async def list_for_provider(
        self,
        provider_id: str,
        include_archived: bool = True,
    ) -> list[WorkflowModel]:
        statement = select(WorkflowModel).where(WorkflowModel.provider_id == provider_id)
        if not include_archived:
            statement = statement.where(WorkflowModel.is_archived == False)  # noqa: E712
        result = await self._session.execute(statement.order_by(WorkflowModel.name))
        return list(result.scalars().all())

    async def save_definition(
        self,
        provider_id: str,
        remote: RemoteWorkflow,
        existing: WorkflowModel | None = None,
        backup_time: datetime | None = None,
    ) -> WorkflowModel:
        """Insert or overwrite a workflow from its full remote definition.

        Passing ``backup_time`` also stamps the row as backed up.
        """
        nodes = remote.nodes or []
        definition = WorkflowDefinition(
            remote_id=remote.id,
            name=remote.name,
            active=remote.active,
            nodes=nodes,
            connections=remote.connections or {},
            settings=remote.settings or {},
            tags=remote.tag_names,
            remote_created_at=remote.created_at,
            remote_updated_at=remote.updated_at,
            backup_timestamp=backup_time,
        )

        workflow = existing or WorkflowModel(
            id=generate_id("wf"),
            provider_id=provider_id,
            provider_workflow_id=remote.id,
            name=remote.name,
            created_at=to_utc_naive(remote.created_at) or utcnow(),
        )
        workflow.name = remote.name
        workflow.is_active = remote.active
        workflow.is_archived = False
        workflow.tags = remote.tag_names
        workflow.node_count = len(nodes)
        workflow.workflow_data = definition.dump()
        workflow.cron_schedules = dump_schedules(extract_schedules(nodes))
        workflow.updated_at = to_utc_naive(remote.updated_at) or utcnow()
        if backup_time is not None:
            workflow.backed_up_at = backup_time

        self._session.add(workflow)
        await self._session.flush()
        return workflow

    async def refresh_active(self, workflow: WorkflowModel, active: bool) -> bool:
        """Cheap write for an unchanged workflow; returns whether anything changed."""
        if workflow.is_active == active and not workflow.is_archived:
            return False
        workflow.is_active = active
        workflow.is_archived = False
        self._session.add(workflow)
        await self._session.flush()
        return True

    async def create_placeholder(
        self,
        provider_id: str,
        remote_id: str,
        name: str | None = None,
    ) -> WorkflowModel:
        """Insert a stand-in row for a workflow the provider cannot return."""
        workflow = WorkflowModel(
            id=generate_id("wf"),
            provider_id=provider_id,
            provider_workflow_id=remote_id,
            name=name or f"Workflow {remote_id}",
            is_active=False,
            workflow_data=None,
            updated_at=None,
        )
        self._session.add(workflow)
        await self._session.flush()
        return workflow

    async def archive_missing(self, provider_id: str, seen_remote_ids: Iterable[str]) -> int:
        """Soft-delete stored workflows absent from a fresh remote listing."""
        statement = (
            update(WorkflowModel)
            .where(WorkflowModel.provider_id == provider_id)
            .where(WorkflowModel.is_archived == False)  # noqa: E712
            .values(is_active=False, is_archived=True)
            .execution_options(synchronize_session=False)
        )
        seen = list(set(seen_remote_ids))
        if seen:
            statement = statement.where(WorkflowModel.provider_workflow_id.not_in(seen))
        result = await self._session.execute(statement)
        return result.rowcount or 0
