"""Versioned JSON blobs stored in relational columns.

Every blob carries ``schema_version`` so readers can branch on it instead
of probing for keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

WORKFLOW_DEFINITION_VERSION = 1
EXECUTION_METADATA_VERSION = 1
SCHEDULE_VERSION = 1


class WorkflowDefinition(BaseModel):
    """Stored in ``workflows.workflow_data``."""

    schema_version: int = WORKFLOW_DEFINITION_VERSION
    remote_id: str
    name: str
    active: bool = False
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    connections: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    remote_created_at: datetime | None = None
    remote_updated_at: datetime | None = None
    backup_timestamp: datetime | None = None

    @classmethod
    def load(cls, blob: dict[str, Any] | None) -> WorkflowDefinition | None:
        if not blob:
            return None
        return cls.model_validate(blob)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class NodeUsage(BaseModel):
    """Token usage attributed to a single node run."""

    node_name: str
    node_type: str
    tokens: int
    cost: float
    model: str | None = None


class ExecutionMetadata(BaseModel):
    """Stored in ``executions.metadata``."""

    schema_version: int = EXECUTION_METADATA_VERSION
    workflow_name: str | None = None
    remote_status: str | None = None
    remote_mode: str | None = None
    wait_till: datetime | None = None
    ai_model: str | None = None
    node_usage: list[NodeUsage] = Field(default_factory=list)

    def dump(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class CronExpressionSchedule(BaseModel):
    """A trigger driven by a cron expression."""

    kind: Literal["cron"] = "cron"
    schema_version: int = SCHEDULE_VERSION
    node_name: str
    node_type: str
    expression: str


class IntervalSchedule(BaseModel):
    """A trigger firing every ``count`` ``unit``."""

    kind: Literal["interval"] = "interval"
    schema_version: int = SCHEDULE_VERSION
    node_name: str
    node_type: str
    unit: Literal["seconds", "minutes", "hours", "days", "weeks", "months"]
    count: int = 1
    at_hour: int | None = None
    at_minute: int | None = None


class UnrecognizedSchedule(BaseModel):
    """A schedule node whose parameters did not match a known shape."""

    kind: Literal["unrecognized"] = "unrecognized"
    schema_version: int = SCHEDULE_VERSION
    node_name: str
    node_type: str
    raw: dict[str, Any] = Field(default_factory=dict)


Schedule = Annotated[
    Union[CronExpressionSchedule, IntervalSchedule, UnrecognizedSchedule],
    Field(discriminator="kind"),
]

schedule_list_adapter: TypeAdapter[list[Schedule]] = TypeAdapter(list[Schedule])


def dump_schedules(schedules: list[Schedule]) -> list[dict[str, Any]]:
    return [s.model_dump(mode="json") for s in schedules]


def load_schedules(blob: list[dict[str, Any]] | None) -> list[Schedule]:
    return schedule_list_adapter.validate_python(blob or [])
