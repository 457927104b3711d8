"""Sync log repository for database persistence."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..db.models import SyncLogModel, generate_id, utcnow


class SyncLogRepository:
    """Repository for sync job records.

    Never commits; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def start(self, provider_id: str, sync_type: str) -> SyncLogModel:
        """Create a running log entry for a job."""
        log = SyncLogModel(
            id=generate_id("sync"),
            provider_id=provider_id,
            sync_type=sync_type,
            status="running",
        )
        self._session.add(log)
        await self._session.flush()
        return log

    async def complete(
        self,
        log_id: str,
        status: str,
        processed: int = 0,
        inserted: int = 0,
        updated: int = 0,
        error_message: str | None = None,
        metadata: dict[str, Any] | None = None,
        last_cursor: str | None = None,
    ) -> SyncLogModel | None:
        """Move a log entry to a terminal status."""
        log = await self._session.get(SyncLogModel, log_id)
        if log is None:
            return None

        log.status = status
        log.completed_at = utcnow()
        log.records_processed = processed
        log.records_inserted = inserted
        log.records_updated = updated
        log.error_message = error_message
        log.log_metadata = metadata or {}
        log.last_cursor = last_cursor
        self._session.add(log)
        await self._session.flush()
        return log

    async def recent(self, provider_id: str | None = None, limit: int = 20) -> list[SyncLogModel]:
        """Newest log entries, optionally for one provider."""
        statement = select(SyncLogModel)
        if provider_id:
            statement = statement.where(SyncLogModel.provider_id == provider_id)
        statement = statement.order_by(SyncLogModel.created_at.desc()).limit(limit)
        result = await self._session.execute(statement)
        return list(result.scalars().all())
