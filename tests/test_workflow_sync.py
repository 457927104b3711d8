"""Tests for the workflow sync engine."""

from flowwatch.core.exceptions import RemoteTimeoutError
from flowwatch.repositories import WorkflowRepository
from flowwatch.schemas.payloads import WorkflowDefinition, load_schedules

from tests.fakes import WEBHOOK_NODES, FakeN8nClient, make_workflow


async def stored_workflows(database, provider_id):
    async with database.session() as session:
        rows = await WorkflowRepository(session).list_for_provider(provider_id)
    return {w.provider_workflow_id: w for w in rows}


async def test_new_workflows_are_inserted_with_definition(database, provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1"), make_workflow("wf2", nodes=WEBHOOK_NODES)])

    result = await workflow_engine.sync_provider(provider, client)

    assert result.inserted == 2
    assert client.calls["get_workflow"] == 2

    rows = await stored_workflows(database, provider.id)
    wf1 = rows["wf1"]
    assert wf1.name == "Workflow WF1"
    assert wf1.node_count == 2
    assert wf1.tags == ["prod"]
    assert wf1.is_active is True

    definition = WorkflowDefinition.load(wf1.workflow_data)
    assert definition.schema_version == 1
    assert definition.remote_id == "wf1"
    assert [n["name"] for n in definition.nodes] == ["Every Hour", "Fetch"]

    schedules = load_schedules(wf1.cron_schedules)
    assert len(schedules) == 1
    assert schedules[0].kind == "interval"
    assert schedules[0].unit == "hours"
    assert rows["wf2"].cron_schedules == []


async def test_unchanged_workflows_skip_the_full_fetch(provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1"), make_workflow("wf2")])
    await workflow_engine.sync_provider(provider, client)

    result = await workflow_engine.sync_provider(provider, client)

    assert client.calls["get_workflow"] == 2
    assert result.skipped == 2
    assert result.updated == 0


async def test_changed_updated_at_triggers_full_fetch(database, provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1"), make_workflow("wf2")])
    await workflow_engine.sync_provider(provider, client)

    client.workflows["wf1"] = make_workflow(
        "wf1", name="Renamed", updated_at="2024-06-01T12:00:00.000Z", nodes=WEBHOOK_NODES
    )
    result = await workflow_engine.sync_provider(provider, client)

    assert client.calls["get_workflow"] == 3
    assert result.updated == 1
    assert result.skipped == 1
    row = (await stored_workflows(database, provider.id))["wf1"]
    assert row.name == "Renamed"
    assert row.cron_schedules == []


async def test_active_flag_is_refreshed_without_full_fetch(database, provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1")])
    await workflow_engine.sync_provider(provider, client)

    client.workflows["wf1"] = make_workflow("wf1", active=False)
    result = await workflow_engine.sync_provider(provider, client)

    assert client.calls["get_workflow"] == 1
    assert result.updated == 1
    assert (await stored_workflows(database, provider.id))["wf1"].is_active is False


async def test_missing_workflows_are_archived_not_deleted(database, provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1"), make_workflow("wf2")])
    await workflow_engine.sync_provider(provider, client)

    removed = client.workflows.pop("wf2")
    result = await workflow_engine.sync_provider(provider, client)

    assert result.archived == 1
    rows = await stored_workflows(database, provider.id)
    assert set(rows) == {"wf1", "wf2"}
    assert rows["wf2"].is_archived is True
    assert rows["wf2"].is_active is False
    assert rows["wf1"].is_archived is False

    # Coming back un-archives it
    client.workflows["wf2"] = removed
    result = await workflow_engine.sync_provider(provider, client)

    assert result.archived == 0
    rows = await stored_workflows(database, provider.id)
    assert rows["wf2"].is_archived is False
    assert rows["wf2"].is_active is True


async def test_backups_fetch_every_definition(database, provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1"), make_workflow("wf2")])
    await workflow_engine.sync_provider(provider, client)

    result = await workflow_engine.sync_workflow_backups(provider, client)

    assert result.backed_up == 2
    assert result.updated == 2
    assert client.calls["get_workflow"] == 4
    rows = await stored_workflows(database, provider.id)
    for row in rows.values():
        assert row.backed_up_at is not None
        assert WorkflowDefinition.load(row.workflow_data).backup_timestamp is not None


async def test_backup_failure_of_one_workflow_does_not_stop_the_rest(provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1"), make_workflow("wf2")])
    real_get = client.get_workflow

    async def flaky_get(remote_id):
        if remote_id == "wf1":
            raise RemoteTimeoutError("http://n8n.test/api/v1/workflows/wf1", 10.0)
        return await real_get(remote_id)

    client.get_workflow = flaky_get
    result = await workflow_engine.sync_workflow_backups(provider, client)

    assert result.backed_up == 1
    assert result.inserted == 1
    assert len(result.errors) == 1


async def test_incomplete_listing_archives_nothing(database, provider, workflow_engine):
    client = FakeN8nClient(workflows=[make_workflow("wf1"), make_workflow("wf2")])
    await workflow_engine.sync_provider(provider, client)

    # The second listing came back truncated without wf2
    client.workflows.pop("wf2")
    client.listing_complete = False
    result = await workflow_engine.sync_provider(provider, client)

    assert result.archived == 0
    assert result.errors == ["workflow listing incomplete, archival skipped"]
    rows = await stored_workflows(database, provider.id)
    assert rows["wf2"].is_archived is False
    assert rows["wf2"].is_active is True
