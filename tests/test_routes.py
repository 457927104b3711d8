"""API tests against the full application, lifespan included."""

import pytest
from httpx import ASGITransport, AsyncClient

from flowwatch.main import create_app

from tests.fakes import FakeN8nClient, make_execution, make_workflow


@pytest.fixture
def fake_client():
    return FakeN8nClient(
        workflows=[make_workflow("wf1")],
        executions=[make_execution("e2"), make_execution("e1")],
    )


@pytest.fixture
async def app(settings, fake_client):
    app = create_app(settings, client_factory=lambda provider, api_key: fake_client)
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def test_root_and_health(client):
    root = await client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "running"

    health = await client.get("/health")
    assert health.status_code == 200
    body = health.json()
    assert body["status"] == "healthy"
    assert body["scheduler_running"] is False


async def test_trigger_without_providers(client):
    response = await client.post("/api/sync/executions")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["skipped"] is False
    assert body["providers"] == 0
    assert body["results"] == []


async def test_unknown_sync_type_is_rejected(client):
    response = await client.post("/api/sync/bogus")

    assert response.status_code == 422


async def test_batch_size_is_bounded(client):
    response = await client.post("/api/sync/executions", params={"batch_size": 1000})

    assert response.status_code == 422


async def test_trigger_syncs_registered_provider(app, client, fake_client):
    provider = await app.state.provider_service.register("Primary n8n", "http://n8n.test", "key")

    response = await client.post("/api/sync/executions", params={"batch_size": 50})

    assert response.status_code == 200
    body = response.json()
    assert body["providers"] == 1
    assert body["successful"] == 1
    result = body["results"][0]
    assert result["provider_id"] == provider.id
    assert result["result"]["inserted"] == 2

    status = await client.get("/api/sync/status", params={"provider_id": provider.id})
    assert status.status_code == 200
    logs = status.json()["recent_logs"]
    assert len(logs) == 1
    assert logs[0]["status"] == "success"
    assert logs[0]["records_inserted"] == 2


async def test_status_reports_scheduler_state(client):
    response = await client.get("/api/sync/status")

    assert response.status_code == 200
    body = response.json()
    assert body["scheduler"]["running"] is False
    assert body["scheduler"]["in_flight"] == []
    assert set(body["scheduler"]["intervals"]) == {"executions", "workflows", "backups"}
    assert body["recent_logs"] == []
