"""Tests for settings and the adapter factory."""

import pytest

from adapters.database.sqlite import SQLiteDatabaseAdapter
from adapters.ollama import OllamaGateway
from core.config import Settings
from core.factory import AdapterConfig, AdapterFactory, create_factory_from_settings


@pytest.mark.parametrize(
    "host,expected",
    [
        ("localhost:11434", "http://localhost:11434"),
        ("http://gpu-box:11434/", "http://gpu-box:11434"),
        ("https://ollama.example.com", "https://ollama.example.com"),
    ],
)
def test_ollama_base_url(host, expected):
    assert Settings(OLLAMA_HOST=host).ollama_base_url == expected


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("MODELHUB_AVAILABLE_MODELS_CACHE_TTL_HOURS", "6")
    monkeypatch.setenv("MODELHUB_SYNC_ON_STARTUP", "false")
    monkeypatch.setenv("MODELHUB_AVAILABLE_MODELS_RETRY_MINUTES", "1")

    settings = Settings()

    assert settings.AVAILABLE_MODELS_CACHE_TTL_HOURS == 6
    assert settings.SYNC_ON_STARTUP is False
    assert settings.AVAILABLE_MODELS_RETRY_MINUTES == 1
    assert settings.MODEL_DOWNLOAD_TIMEOUT == 1800


def test_factory_from_settings():
    settings = Settings(OLLAMA_HOST="gpu-box:11434", LIBRARY_FETCH_CONCURRENCY=2)
    factory = create_factory_from_settings(settings)

    assert factory.config.ollama_base_url == "http://gpu-box:11434"
    assert factory.config.library_fetch_concurrency == 2
    assert isinstance(factory.create_remote_gateway(), OllamaGateway)


@pytest.mark.asyncio
async def test_factory_creates_initialized_database(tmp_path):
    factory = AdapterFactory(AdapterConfig(database_url=f"sqlite+aiosqlite:///{tmp_path / 'f.db'}"))

    db = await factory.create_database_adapter()
    try:
        assert isinstance(db, SQLiteDatabaseAdapter)
        assert await db.health_check() is True
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_factory_rejects_other_databases():
    factory = AdapterFactory(AdapterConfig(database_url="postgresql+asyncpg://localhost/models"))
    with pytest.raises(NotImplementedError):
        await factory.create_database_adapter()
