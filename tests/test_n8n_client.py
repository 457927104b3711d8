"""Tests for the n8n API client against a mocked transport."""

import httpx
import pytest

from flowwatch.clients import n8n_client
from flowwatch.clients.n8n_client import N8nClient
from flowwatch.core.exceptions import RemoteApiError, RemoteTimeoutError


class Recorder:
    """Collects requests and answers from a route table."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)


def make_client(handler, **kwargs) -> tuple[N8nClient, Recorder]:
    recorder = Recorder(handler)
    client = N8nClient(
        "http://n8n.test/",
        "secret-key",
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )
    return client, recorder


async def test_list_workflows_follows_cursor():
    pages = {
        None: {"data": [{"id": 1, "name": "One"}], "nextCursor": "abc"},
        "abc": {"data": [{"id": "2", "name": "Two", "tags": None}], "nextCursor": None},
    }

    def handler(request):
        return httpx.Response(200, json=pages[request.url.params.get("cursor")])

    client, recorder = make_client(handler, page_size=1)
    async with client:
        listing = await client.list_workflows()

    workflows = listing.items
    assert listing.complete is True
    assert [w.id for w in workflows] == ["1", "2"]
    assert workflows[1].tags == []
    assert len(recorder.requests) == 2
    first = recorder.requests[0]
    assert first.url.path == "/api/v1/workflows"
    assert first.url.params["limit"] == "1"
    assert first.headers["X-N8N-API-KEY"] == "secret-key"


async def test_list_executions_only_includes_data_when_asked():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "data": [{"id": 7, "workflowId": 3, "status": "success", "finished": None}],
                "nextCursor": "next",
            },
        )

    client, recorder = make_client(handler)
    async with client:
        page = await client.list_executions(limit=20)
        await client.list_executions(limit=20, cursor="next", include_data=True)

    assert page.next_cursor == "next"
    execution = page.items[0]
    assert execution.id == "7"
    assert execution.workflow_id == "3"
    assert execution.finished is False
    assert execution.has_data is False

    plain, with_data = recorder.requests
    assert "includeData" not in plain.url.params
    assert "cursor" not in plain.url.params
    assert with_data.url.params["includeData"] == "true"
    assert with_data.url.params["cursor"] == "next"


async def test_get_execution_requests_full_payload():
    def handler(request):
        return httpx.Response(
            200,
            json={"id": "9", "status": "error", "data": {"resultData": {"runData": {}}}},
        )

    client, recorder = make_client(handler)
    async with client:
        execution = await client.get_execution("9")

    assert execution.has_data is True
    assert recorder.requests[0].url.path == "/api/v1/executions/9"
    assert recorder.requests[0].url.params["includeData"] == "true"


async def test_error_status_carries_remote_message():
    def handler(request):
        return httpx.Response(404, json={"message": "Workflow not found"})

    client, _ = make_client(handler)
    async with client:
        with pytest.raises(RemoteApiError) as exc_info:
            await client.get_workflow("missing")

    assert exc_info.value.status == 404
    assert "Workflow not found" in exc_info.value.message
    assert exc_info.value.url.endswith("/api/v1/workflows/missing")


async def test_error_status_without_json_body():
    def handler(request):
        return httpx.Response(502, text="<html>bad gateway</html>")

    client, _ = make_client(handler)
    async with client:
        with pytest.raises(RemoteApiError) as exc_info:
            await client.test_connection()

    assert exc_info.value.status == 502


async def test_timeout_is_reported_as_remote_timeout():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    client, _ = make_client(handler, timeout=2.5)
    async with client:
        with pytest.raises(RemoteTimeoutError) as exc_info:
            await client.list_executions()

    assert exc_info.value.timeout == 2.5


async def test_connection_failure_is_a_remote_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client, _ = make_client(handler)
    async with client:
        with pytest.raises(RemoteApiError) as exc_info:
            await client.test_connection()

    assert exc_info.value.status == 0


async def test_workflow_listing_past_page_bound_is_incomplete(monkeypatch):
    monkeypatch.setattr(n8n_client, "MAX_WORKFLOW_PAGES", 2)

    def handler(request):
        page = int(request.url.params.get("cursor") or 0)
        return httpx.Response(
            200, json={"data": [{"id": page, "name": f"W{page}"}], "nextCursor": str(page + 1)}
        )

    client, recorder = make_client(handler)
    async with client:
        listing = await client.list_workflows()

    assert [w.id for w in listing.items] == ["0", "1"]
    assert listing.complete is False
    assert len(recorder.requests) == 2


async def test_malformed_workflow_entry_is_dropped_and_listing_incomplete():
    def handler(request):
        return httpx.Response(
            200,
            json={"data": [{"id": "1", "name": "Good"}, {"name": "no id"}], "nextCursor": None},
        )

    client, _ = make_client(handler)
    async with client:
        listing = await client.list_workflows()

    assert [w.id for w in listing.items] == ["1"]
    assert listing.complete is False


async def test_malformed_execution_entry_is_dropped_from_page():
    def handler(request):
        return httpx.Response(
            200,
            json={
                "data": [{"id": "1", "status": "success"}, {"id": "2", "startedAt": "yesterday"}],
                "nextCursor": None,
            },
        )

    client, _ = make_client(handler)
    async with client:
        page = await client.list_executions()

    assert [e.id for e in page.items] == ["1"]


async def test_invalid_execution_body_is_a_remote_error():
    def handler(request):
        return httpx.Response(200, json={"id": "9", "startedAt": "yesterday"})

    client, _ = make_client(handler)
    async with client:
        with pytest.raises(RemoteApiError) as exc_info:
            await client.get_execution("9")

    assert "invalid RemoteExecution payload" in exc_info.value.message
    assert exc_info.value.url.endswith("/api/v1/executions/9")


async def test_non_json_success_body_is_a_remote_error():
    def handler(request):
        return httpx.Response(200, text="<html>login</html>")

    client, _ = make_client(handler)
    async with client:
        with pytest.raises(RemoteApiError) as exc_info:
            await client.get_workflow("1")

    assert exc_info.value.status == 200
    assert "invalid JSON body" in exc_info.value.message
