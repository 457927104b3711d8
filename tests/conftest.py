"""Shared fixtures: a throwaway SQLite database, a vault and engines."""

import pytest

from flowwatch.core.config import Settings
from flowwatch.db.session import Database
from flowwatch.engine.execution_sync import ExecutionSyncEngine
from flowwatch.engine.workflow_sync import WorkflowSyncEngine
from flowwatch.repositories import ProviderRepository
from flowwatch.services.credential_vault import CredentialVault


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'flowwatch-test.db'}"


@pytest.fixture
def settings(database_url):
    return Settings(
        _env_file=None,
        database_url=database_url,
        encryption_key="test-secret",
        encryption_salt="test-salt",
        enable_scheduler=False,
        sync_batch_size=10,
        fetch_concurrency=3,
    )


@pytest.fixture
async def database(database_url):
    db = Database(database_url)
    await db.init()
    yield db
    await db.dispose()


@pytest.fixture(scope="session")
def vault():
    return CredentialVault("test-secret", "test-salt")


@pytest.fixture
async def provider(database, vault):
    async with database.writer() as session, session.begin():
        created = await ProviderRepository(session).create(
            name="Primary n8n",
            base_url="http://n8n.test/",
            api_key_encrypted=vault.encrypt("n8n-api-key"),
        )
    return created


@pytest.fixture
def workflow_engine(database):
    return WorkflowSyncEngine(database)


@pytest.fixture
def execution_engine(database, workflow_engine):
    return ExecutionSyncEngine(database, workflow_engine, page_size=10, fetch_concurrency=3)
