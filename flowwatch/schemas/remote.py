"""Pydantic models for the n8n public API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _coerce_id(value: Any) -> Any:
    # n8n returns numeric ids on some versions and strings on others
    if value is None:
        return None
    return str(value)


RemoteId = Annotated[str, BeforeValidator(_coerce_id)]


class RemoteModel(BaseModel):
    """Base for remote payloads; unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class RemoteTag(RemoteModel):
    """Workflow tag."""

    id: RemoteId | None = None
    name: str


class RemoteWorkflow(RemoteModel):
    """A workflow as returned by ``/workflows``.

    Listing responses may omit ``nodes`` and ``connections``; single
    workflow responses carry them.
    """

    id: RemoteId
    name: str = "Untitled Workflow"
    active: bool = False
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    nodes: list[dict[str, Any]] | None = None
    connections: dict[str, Any] | None = None
    settings: dict[str, Any] | None = None
    tags: list[RemoteTag] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value: Any) -> Any:
        return value or []

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]


class RemoteExecution(RemoteModel):
    """An execution as returned by ``/executions``."""

    id: RemoteId
    workflow_id: RemoteId | None = Field(default=None, alias="workflowId")
    status: str | None = None
    mode: str | None = None
    finished: bool = False
    started_at: datetime | None = Field(default=None, alias="startedAt")
    stopped_at: datetime | None = Field(default=None, alias="stoppedAt")
    wait_till: datetime | None = Field(default=None, alias="waitTill")
    retry_of: RemoteId | None = Field(default=None, alias="retryOf")
    retry_success_id: RemoteId | None = Field(default=None, alias="retrySuccessId")

    # Only present when requested with includeData=true
    data: dict[str, Any] | None = None
    workflow_data: dict[str, Any] | None = Field(default=None, alias="workflowData")

    @field_validator("finished", mode="before")
    @classmethod
    def _finished_default(cls, value: Any) -> Any:
        return bool(value)

    @property
    def has_data(self) -> bool:
        return self.data is not None


class ExecutionPage(BaseModel):
    """One page of an execution listing."""

    items: list[RemoteExecution]
    next_cursor: str | None = None


class WorkflowListing(BaseModel):
    """Every workflow a listing returned.

    ``complete`` is False when the listing hit its page bound or dropped
    malformed entries, so absence from ``items`` proves nothing.
    """

    items: list[RemoteWorkflow]
    complete: bool = True
