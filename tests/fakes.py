"""In-memory stand-ins for the n8n API used across the test suite."""

from __future__ import annotations

from collections import Counter
from typing import Any

from flowwatch.core.exceptions import RemoteApiError, RemoteTimeoutError
from flowwatch.schemas.remote import ExecutionPage, RemoteExecution, RemoteWorkflow, WorkflowListing

SCHEDULE_NODES = [
    {
        "name": "Every Hour",
        "type": "n8n-nodes-base.scheduleTrigger",
        "parameters": {"rule": {"interval": [{"field": "hours", "hoursInterval": 1}]}},
    },
    {"name": "Fetch", "type": "n8n-nodes-base.httpRequest", "parameters": {}},
]

WEBHOOK_NODES = [
    {"name": "Hook", "type": "n8n-nodes-base.webhook", "parameters": {"path": "in"}},
    {"name": "Set", "type": "n8n-nodes-base.set", "parameters": {}},
]


def make_workflow(
    remote_id: str,
    name: str | None = None,
    updated_at: str = "2024-05-01T09:00:00.000Z",
    active: bool = True,
    nodes: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    return {
        "id": remote_id,
        "name": name or f"Workflow {remote_id.upper()}",
        "active": active,
        "createdAt": "2024-04-01T09:00:00.000Z",
        "updatedAt": updated_at,
        "nodes": SCHEDULE_NODES if nodes is None else nodes,
        "connections": {"Every Hour": {"main": [[{"node": "Fetch", "type": "main", "index": 0}]]}},
        "settings": {"executionOrder": "v1"},
        "tags": [{"id": "1", "name": "prod"}],
    }


def make_execution(
    remote_id: str,
    workflow_id: str = "wf1",
    status: str = "success",
    mode: str = "trigger",
    started_at: str = "2024-05-01T10:00:00.000Z",
    stopped_at: str | None = "2024-05-01T10:00:02.500Z",
    run_data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "id": remote_id,
        "workflowId": workflow_id,
        "status": status,
        "mode": mode,
        "finished": status == "success",
        "startedAt": started_at,
        "stoppedAt": stopped_at,
        "retryOf": None,
        "retrySuccessId": None,
        "data": {"resultData": {"runData": run_data or {}}},
        "workflowData": {"id": workflow_id, "name": f"Snapshot {workflow_id}"},
    }


class FakeN8nClient:
    """Serves workflows and executions from lists and counts every call.

    ``executions`` are kept newest first, like the real listing. Cursors are
    stringified offsets.
    """

    def __init__(
        self,
        workflows: list[dict[str, Any]] | None = None,
        executions: list[dict[str, Any]] | None = None,
    ) -> None:
        self.workflows: dict[str, dict[str, Any]] = {w["id"]: w for w in workflows or []}
        self.executions: list[dict[str, Any]] = list(executions or [])
        self.calls: Counter[str] = Counter()
        self.fetched_ids: list[str] = []
        self.failing_executions: set[str] = set()
        self.list_error: Exception | None = None
        self.connection_error: Exception | None = None
        self.workflow_error: Exception | None = None
        self.listing_complete = True

    async def __aenter__(self) -> FakeN8nClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None

    def set_execution(self, execution: dict[str, Any]) -> None:
        for i, existing in enumerate(self.executions):
            if existing["id"] == execution["id"]:
                self.executions[i] = execution
                return
        self.executions.insert(0, execution)

    async def list_workflows(self) -> WorkflowListing:
        self.calls["list_workflows"] += 1
        summaries = []
        for workflow in self.workflows.values():
            summary = {k: v for k, v in workflow.items() if k not in ("nodes", "connections")}
            summaries.append(RemoteWorkflow.model_validate(summary))
        return WorkflowListing(items=summaries, complete=self.listing_complete)

    async def get_workflow(self, remote_id: str) -> RemoteWorkflow:
        self.calls["get_workflow"] += 1
        if self.workflow_error is not None:
            raise self.workflow_error
        if remote_id not in self.workflows:
            raise RemoteApiError(404, "Not Found")
        return RemoteWorkflow.model_validate(self.workflows[remote_id])

    async def list_executions(
        self,
        limit: int = 100,
        cursor: str | None = None,
        include_data: bool = False,
    ) -> ExecutionPage:
        self.calls["list_executions"] += 1
        if include_data:
            self.calls["list_executions_with_data"] += 1
        if self.list_error is not None:
            raise self.list_error

        start = int(cursor or 0)
        chunk = self.executions[start:start + limit]
        items = []
        for execution in chunk:
            if not include_data:
                execution = {k: v for k, v in execution.items() if k not in ("data", "workflowData")}
            items.append(RemoteExecution.model_validate(execution))

        next_offset = start + limit
        return ExecutionPage(
            items=items,
            next_cursor=str(next_offset) if next_offset < len(self.executions) else None,
        )

    async def get_execution(self, remote_id: str) -> RemoteExecution:
        self.calls["get_execution"] += 1
        self.fetched_ids.append(remote_id)
        if remote_id in self.failing_executions:
            raise RemoteTimeoutError(f"http://n8n.test/api/v1/executions/{remote_id}", 10.0)
        for execution in self.executions:
            if execution["id"] == remote_id:
                return RemoteExecution.model_validate(execution)
        raise RemoteApiError(404, "Not Found")

    async def test_connection(self) -> bool:
        self.calls["test_connection"] += 1
        if self.connection_error is not None:
            raise self.connection_error
        return True
