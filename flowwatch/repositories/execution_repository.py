"""Execution repository for database persistence."""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import and_, select as sa_select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..db.models import ExecutionModel, WorkflowModel, generate_id, utcnow
from ..engine.change_detection import WriteDecision, decide_execution_write


class ExecutionRepository:
    """Repository for mirrored executions.

    Never commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_remote_id(self, provider_id: str, remote_id: str) -> ExecutionModel | None:
        statement = select(ExecutionModel).where(
            ExecutionModel.provider_id == provider_id,
            ExecutionModel.provider_execution_id == remote_id,
        )
        result = await self._session.execute(statement)
        return result.scalars().first()

    async def get_statuses(self, provider_id: str, remote_ids: Iterable[str]) -> dict[str, str]:
        """Stored status per remote execution id; unknown ids are absent."""
        ids = list(set(remote_ids))
        if not ids:
            return {}
        statement = sa_select(
            ExecutionModel.provider_execution_id, ExecutionModel.status
        ).where(
            ExecutionModel.provider_id == provider_id,
            ExecutionModel.provider_execution_id.in_(ids),
        )
        result = await self._session.execute(statement)
        return {remote_id: status for remote_id, status in result.all()}

    async def upsert(self, provider_id: str, values: dict[str, Any]) -> WriteDecision:
        """Insert, update or skip one execution keyed by its remote id."""
        remote_id = values["provider_execution_id"]
        existing = await self.get_by_remote_id(provider_id, remote_id)
        decision = decide_execution_write(existing, values)

        if decision is WriteDecision.INSERT:
            self._session.add(
                ExecutionModel(id=generate_id("exec"), provider_id=provider_id, **values)
            )
        elif decision is WriteDecision.UPDATE:
            for name, value in values.items():
                if name == "execution_data" and value is None:
                    continue
                setattr(existing, name, value)
            existing.updated_at = utcnow()
            self._session.add(existing)

        if decision is not WriteDecision.SKIP:
            await self._session.flush()
        return decision

    async def repair_workflow_links(self, provider_id: str) -> int:
        """Point every execution at the workflow row matching its remote workflow id.

        Fixes rows written before their workflow existed locally, and rows
        whose ``workflow_id`` no longer matches.
        """
        matching = (
            sa_select(WorkflowModel.id)
            .where(
                and_(
                    WorkflowModel.provider_id == ExecutionModel.provider_id,
                    WorkflowModel.provider_workflow_id == ExecutionModel.provider_workflow_id,
                )
            )
            .limit(1)
            .scalar_subquery()
        )
        has_match = (
            sa_select(WorkflowModel.id)
            .where(
                and_(
                    WorkflowModel.provider_id == ExecutionModel.provider_id,
                    WorkflowModel.provider_workflow_id == ExecutionModel.provider_workflow_id,
                )
            )
            .exists()
        )
        statement = (
            update(ExecutionModel)
            .where(ExecutionModel.provider_id == provider_id)
            .where(ExecutionModel.provider_workflow_id.is_not(None))
            .where(has_match)
            .where(
                (ExecutionModel.workflow_id.is_(None))
                | (ExecutionModel.workflow_id != matching)
            )
            .values(workflow_id=matching, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(statement)
        return result.rowcount or 0

    async def list_for_provider(self, provider_id: str, limit: int = 100) -> list[ExecutionModel]:
        statement = (
            select(ExecutionModel)
            .where(ExecutionModel.provider_id == provider_id)
            .order_by(ExecutionModel.started_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(statement)
        return list(result.scalars().all())
