"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from adapters.database.sqlite import SQLiteDatabaseAdapter
from api.deps import get_model_manager
from api.main import create_app
from core import events
from core.exceptions import RemoteUnavailableError
from core.interfaces import (
    IRemoteGateway,
    ModelEntity,
    ModelStatus,
    PullProgress,
    RemoteModelDetails,
    RemoteModelInfo,
)
from services.model_manager import ModelManager


class FakeGateway(IRemoteGateway):
    """In-memory stand-in for the Ollama server.

    Tests script its behaviour by setting the public attributes.
    """

    def __init__(self):
        self.installed: list[RemoteModelInfo] = []
        self.list_error: Exception | None = None
        self.pull_events: dict[str, list[PullProgress]] = {}
        self.pull_error: Exception | None = None
        self.pull_gate: asyncio.Event | None = None  # Blocks each event until set
        self.pulled: list[str] = []
        self.deleted: list[str] = []
        self.delete_error: Exception | None = None
        self.details: dict[str, RemoteModelDetails] = {}
        self.catalog: list[str] = []
        self.catalog_error: Exception | None = None
        self.catalog_calls = 0

    async def list_installed(self) -> list[RemoteModelInfo]:
        if self.list_error:
            raise self.list_error
        return list(self.installed)

    async def pull(self, name: str):
        self.pulled.append(name)
        if self.pull_error:
            raise self.pull_error
        events = self.pull_events.get(name, [PullProgress(status="success")])
        for event in events:
            if self.pull_gate is not None:
                await self.pull_gate.wait()
            yield event
            if event.is_success:
                self.installed.append(RemoteModelInfo(name=name, size=1000))

    async def delete(self, name: str) -> None:
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(name)
        self.installed = [m for m in self.installed if m.name != name]

    async def inspect(self, name: str) -> RemoteModelDetails:
        if name not in self.details:
            raise RemoteUnavailableError(f"model {name} not found")
        return self.details[name]

    async def list_catalog(self) -> list[str]:
        self.catalog_calls += 1
        if self.catalog_error:
            raise self.catalog_error
        return list(self.catalog)

    async def health_check(self) -> bool:
        return True


@pytest.fixture(autouse=True)
def _clean_event_handlers():
    """Event handlers are module-global; reset them around each test."""
    events.clear()
    yield
    events.clear()


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> AsyncGenerator[SQLiteDatabaseAdapter, None]:
    """Catalog database in a temporary SQLite file."""
    adapter = SQLiteDatabaseAdapter(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await adapter.initialize()
    yield adapter
    await adapter.close()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def manager(db, gateway) -> AsyncGenerator[ModelManager, None]:
    manager = ModelManager.create(db, gateway, download_timeout=5)
    yield manager
    await manager.shutdown()


@pytest.fixture
def make_model(db):
    """Create a catalog row directly, bypassing sync and downloads."""

    async def _make(name: str, status: str = ModelStatus.AVAILABLE, **fields) -> ModelEntity:
        async with db.session() as scope:
            return await scope.models.create(
                ModelEntity(id="", name=name, display_name=name, status=status, **fields)
            )

    return _make


@pytest_asyncio.fixture
async def client(manager: ModelManager) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with the model manager override.

    The lifespan is not run, so no real database or Ollama is touched.
    """
    app = create_app()
    app.dependency_overrides[get_model_manager] = lambda: manager

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
