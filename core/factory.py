"""Adapter factory for dependency injection.

Builds the catalog database and the inference server gateway from
settings, so services and tests only see the interfaces.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .config import Settings

if TYPE_CHECKING:
    from core.interfaces import IDatabaseAdapter, IRemoteGateway

logger = logging.getLogger(__name__)


@dataclass
class AdapterConfig:
    """Configuration for adapter selection."""

    # Database
    database_url: str

    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    ollama_timeout: float = 30.0
    ollama_library_url: str = "https://ollama.com/library"
    library_fetch_concurrency: int = 8


class AdapterFactory:
    """Factory for creating adapter instances.

    Usage:
        from core.config import settings
        from core.factory import create_factory_from_settings

        factory = create_factory_from_settings(settings)
        db = await factory.create_database_adapter()
        gateway = factory.create_remote_gateway()
    """

    def __init__(self, config: AdapterConfig):
        self._config = config

    @property
    def config(self) -> AdapterConfig:
        return self._config

    async def create_database_adapter(self) -> "IDatabaseAdapter":
        """Create and initialize a database adapter.

        Only SQLite URLs are supported.

        Returns:
            Initialized database adapter
        """
        if not self._config.database_url.startswith("sqlite"):
            raise NotImplementedError(
                f"Unsupported database URL: {self._config.database_url}. Use sqlite+aiosqlite."
            )

        from adapters.database.sqlite import SQLiteDatabaseAdapter

        logger.info("Creating SQLite database adapter")
        adapter = SQLiteDatabaseAdapter(self._config.database_url)
        await adapter.initialize()
        return adapter

    def create_remote_gateway(self) -> "IRemoteGateway":
        """Create the Ollama gateway."""
        from adapters.ollama import OllamaGateway, OllamaLibraryScraper

        logger.info("Creating Ollama gateway (url=%s)", self._config.ollama_base_url)
        library = OllamaLibraryScraper(
            library_url=self._config.ollama_library_url,
            timeout=self._config.ollama_timeout,
            concurrency=self._config.library_fetch_concurrency,
        )
        return OllamaGateway(
            base_url=self._config.ollama_base_url,
            timeout=self._config.ollama_timeout,
            library=library,
        )


def create_factory_from_settings(settings: Settings) -> AdapterFactory:
    """Create an AdapterFactory from application settings."""
    config = AdapterConfig(
        database_url=settings.DATABASE_URL,
        ollama_base_url=settings.ollama_base_url,
        ollama_timeout=settings.OLLAMA_TIMEOUT,
        ollama_library_url=settings.OLLAMA_LIBRARY_URL,
        library_fetch_concurrency=settings.LIBRARY_FETCH_CONCURRENCY,
    )
    return AdapterFactory(config)


def get_factory() -> AdapterFactory:
    """Get the adapter factory using global settings."""
    from .config import settings
    return create_factory_from_settings(settings)
