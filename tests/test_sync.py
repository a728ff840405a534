"""Tests for catalog reconciliation against the Ollama model list."""

import pytest

from core.events import MODELS_SYNCED, on
from core.exceptions import RemoteUnavailableError
from core.interfaces import ModelStatus, RemoteModelInfo
from services.model_state import ModelStateMachine
from services.model_sync import ModelSynchronizer, generate_display_name


@pytest.fixture
def synchronizer(db, gateway) -> ModelSynchronizer:
    return ModelSynchronizer(db, gateway, ModelStateMachine(db))


async def _rows(db) -> dict:
    async with db.session() as scope:
        return {m.name: m for m in await scope.models.list_all()}


@pytest.mark.parametrize(
    "name,expected",
    [
        ("llama3.2:1b", "Llama3.2 1b"),
        ("codellama:7b-instruct", "Codellama 7b Instruct"),
        ("nomic_embed-TEXT:latest", "Nomic Embed Text Latest"),
        ("phi3", "Phi3"),
    ],
)
def test_generate_display_name(name, expected):
    assert generate_display_name(name) == expected


@pytest.mark.asyncio
async def test_sync_creates_new_and_removes_missing(db, gateway, synchronizer, make_model):
    """Local {A: available} and remote {B} give A removed and B created."""
    await make_model("model-a")
    gateway.installed = [RemoteModelInfo(name="model-b", size=42, family="llama")]

    report = await synchronizer.sync()

    rows = await _rows(db)
    assert rows["model-a"].status == ModelStatus.REMOVED
    assert rows["model-b"].status == ModelStatus.AVAILABLE
    assert rows["model-b"].display_name == "Model B"
    assert rows["model-b"].description == "Model: model-b"
    assert rows["model-b"].size == 42
    assert rows["model-b"].is_enabled is True
    assert report.created == ["model-b"]
    assert report.removed == ["model-a"]


@pytest.mark.asyncio
async def test_sync_leaves_non_available_missing_models(db, gateway, synchronizer, make_model):
    await make_model("pulling", status=ModelStatus.DOWNLOADING)
    await make_model("broken", status=ModelStatus.ERROR)
    await make_model("gone", status=ModelStatus.REMOVED)

    await synchronizer.sync()

    rows = await _rows(db)
    assert rows["pulling"].status == ModelStatus.DOWNLOADING
    assert rows["broken"].status == ModelStatus.ERROR
    assert rows["gone"].status == ModelStatus.REMOVED


@pytest.mark.asyncio
async def test_sync_revives_listed_models(db, gateway, synchronizer, make_model):
    await make_model("broken", status=ModelStatus.ERROR)
    await make_model("gone", status=ModelStatus.REMOVED)
    gateway.installed = [RemoteModelInfo(name="broken"), RemoteModelInfo(name="gone")]

    report = await synchronizer.sync()

    rows = await _rows(db)
    assert rows["broken"].status == ModelStatus.AVAILABLE
    assert rows["gone"].status == ModelStatus.AVAILABLE
    assert sorted(report.updated) == ["broken", "gone"]


@pytest.mark.asyncio
async def test_sync_never_blanks_metadata(db, gateway, synchronizer, make_model):
    await make_model("llama3:8b", family="llama", format="gguf", parameters="8.0B", size=10)
    gateway.installed = [
        RemoteModelInfo(name="llama3:8b", size=20, family="", format="gguf", quantization="Q4_0")
    ]

    await synchronizer.sync()

    model = (await _rows(db))["llama3:8b"]
    assert model.size == 20
    assert model.family == "llama"
    assert model.parameters == "8.0B"
    assert model.quantization == "Q4_0"


@pytest.mark.asyncio
async def test_sync_is_idempotent(db, gateway, synchronizer, make_model):
    await make_model("old")
    gateway.installed = [
        RemoteModelInfo(name="llama3:8b", size=20, family="llama", parameters="8.0B"),
        RemoteModelInfo(name="mistral:7b", size=30, family="mistral"),
    ]

    await synchronizer.sync()
    first = await _rows(db)
    report = await synchronizer.sync()
    second = await _rows(db)

    assert report.created == [] and report.updated == [] and report.removed == []
    assert set(first) == set(second)
    for name, row in first.items():
        other = second[name]
        assert (row.id, row.status, row.size, row.family, row.parameters, row.display_name) == (
            other.id,
            other.status,
            other.size,
            other.family,
            other.parameters,
            other.display_name,
        )


@pytest.mark.asyncio
async def test_sync_remote_failure_aborts(db, gateway, synchronizer, make_model):
    await make_model("model-a")
    gateway.list_error = RemoteUnavailableError("connection refused")

    with pytest.raises(RemoteUnavailableError):
        await synchronizer.sync()

    assert (await _rows(db))["model-a"].status == ModelStatus.AVAILABLE


@pytest.mark.asyncio
async def test_sync_failure_on_one_entry_continues(db, gateway, synchronizer, make_model):
    """An entry that cannot be processed is reported and the pass goes on."""
    await make_model("installing", status=ModelStatus.INSTALLING)
    gateway.installed = [
        RemoteModelInfo(name="installing"),
        RemoteModelInfo(name="fresh"),
    ]

    original_create = synchronizer._create

    async def flaky_create(remote):
        if remote.name == "fresh":
            raise RuntimeError("disk full")
        return await original_create(remote)

    synchronizer._create = flaky_create
    report = await synchronizer.sync()

    rows = await _rows(db)
    assert report.failed == ["fresh"]
    assert rows["installing"].status == ModelStatus.AVAILABLE
    assert "fresh" not in rows


@pytest.mark.asyncio
async def test_sync_emits_event(gateway, synchronizer):
    received = []

    async def handler(**kwargs):
        received.append(kwargs)

    on(MODELS_SYNCED, handler)
    gateway.installed = [RemoteModelInfo(name="gemma:2b")]

    await synchronizer.sync()

    assert received == [{"created": ["gemma:2b"], "updated": [], "removed": [], "failed": []}]
