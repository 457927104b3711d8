"""SQLModel database models."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlmodel import Column, Field, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every plain ``DateTime`` column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_id(prefix: str) -> str:
    """Time-ordered id such as ``wf_1718000000000_3f9a1c2``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


class ProviderModel(SQLModel, table=True):
    """A configured remote n8n instance."""

    __tablename__ = "providers"

    id: str = Field(primary_key=True)
    user_id: str | None = Field(default=None, index=True)
    name: str
    base_url: str
    api_key_encrypted: str
    is_connected: bool = Field(default=True, index=True)
    status: str = Field(default="healthy", index=True)  # healthy, warning, error, unknown
    last_checked_at: datetime | None = Field(default=None, sa_column=Column(DateTime))

    # Free-form provider metadata (last error, instance info)
    provider_metadata: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )


class WorkflowModel(SQLModel, table=True):
    """Local mirror of a remote workflow definition."""

    __tablename__ = "workflows"
    __table_args__ = (
        UniqueConstraint("provider_id", "provider_workflow_id", name="uq_workflow_provider_remote"),
    )

    id: str = Field(primary_key=True)
    provider_id: str = Field(foreign_key="providers.id", index=True)
    provider_workflow_id: str = Field(index=True)
    name: str
    is_active: bool = Field(default=True, index=True)
    is_archived: bool = Field(default=False, index=True)
    tags: list[Any] = Field(default_factory=list, sa_column=Column(JSON))
    node_count: int = Field(default=0)

    # Versioned WorkflowDefinition blob (nodes, connections, settings)
    workflow_data: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    # List of versioned schedule descriptors extracted from trigger nodes
    cron_schedules: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    backed_up_at: datetime | None = Field(default=None, sa_column=Column(DateTime))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    # Mirrors the remote updatedAt, used for change detection
    updated_at: datetime | None = Field(default_factory=utcnow, sa_column=Column(DateTime))


class ExecutionModel(SQLModel, table=True):
    """Local mirror of one run of a remote workflow."""

    __tablename__ = "executions"
    __table_args__ = (
        UniqueConstraint("provider_id", "provider_execution_id", name="uq_execution_provider_remote"),
    )

    id: str = Field(primary_key=True)
    provider_id: str = Field(foreign_key="providers.id", index=True)
    workflow_id: str | None = Field(default=None, foreign_key="workflows.id", index=True)
    provider_execution_id: str = Field(index=True)
    provider_workflow_id: str | None = Field(default=None, index=True)

    status: str = Field(index=True)  # success, error, running, waiting, canceled, unknown
    mode: str  # manual, webhook, cron, error, unknown

    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime, index=True))
    stopped_at: datetime | None = Field(default=None, sa_column=Column(DateTime))
    duration: int | None = Field(default=None)  # milliseconds
    finished: bool = Field(default=False)
    retry_of: str | None = Field(default=None)
    retry_success_id: str | None = Field(default=None)

    # Full node-level payload, only present once fetched with data
    execution_data: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))

    total_tokens: int = Field(default=0)
    input_tokens: int = Field(default=0)
    output_tokens: int = Field(default=0)
    ai_cost: float = Field(default=0.0)
    ai_provider: str | None = Field(default=None)

    # Versioned ExecutionMetadata blob
    execution_metadata: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )

    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False))


class SyncLogModel(SQLModel, table=True):
    """One record per sync job invocation for a provider."""

    __tablename__ = "sync_logs"

    id: str = Field(primary_key=True)
    provider_id: str = Field(foreign_key="providers.id", index=True)
    sync_type: str = Field(index=True)
    status: str = Field(default="running", index=True)  # running, success, error
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime))
    records_processed: int = Field(default=0)
    records_inserted: int = Field(default=0)
    records_updated: int = Field(default=0)
    error_message: str | None = Field(default=None)
    log_metadata: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )
    last_cursor: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime, nullable=False, index=True)
    )
