"""Database adapter interface definitions.

This module defines the contracts for model catalog storage,
allowing different implementations (SQLite, PostgreSQL, etc.)
to be swapped transparently.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class ModelStatus:
    """Legal values of ``ModelEntity.status``."""

    AVAILABLE = "available"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    ERROR = "error"
    REMOVED = "removed"

    ALL = (AVAILABLE, DOWNLOADING, INSTALLING, ERROR, REMOVED)

    @classmethod
    def is_valid(cls, status: str) -> bool:
        return status in cls.ALL


@dataclass
class ModelEntity:
    """Catalog entry for one model known to the inference server."""

    id: str
    name: str
    display_name: str = ""
    description: str = ""
    size: int = 0
    family: str = ""
    format: str = ""
    parameters: str = ""
    quantization: str = ""
    status: str = ModelStatus.AVAILABLE
    is_default: bool = False
    is_enabled: bool = True
    supports_embeddings: bool = False
    embedding_dimensions: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_used_at: datetime | None = None


@dataclass
class ModelConfigEntity:
    """Generation parameters for a model."""

    id: str
    model_id: str
    temperature: float | None = 0.7
    top_p: float | None = 0.9
    top_k: int | None = 40
    repeat_penalty: float | None = 1.1
    context_length: int | None = 4096
    max_tokens: int | None = 2048
    system_prompt: str = ""
    custom_options: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None


# Columns an administrator or the synchronizer may change through update_fields().
# Status, size and default flag have dedicated operations.
MODEL_UPDATABLE_FIELDS = frozenset(
    {
        "display_name",
        "description",
        "family",
        "format",
        "parameters",
        "quantization",
        "is_enabled",
        "supports_embeddings",
        "embedding_dimensions",
    }
)

CONFIG_UPDATABLE_FIELDS = frozenset(
    {
        "temperature",
        "top_p",
        "top_k",
        "repeat_penalty",
        "context_length",
        "max_tokens",
        "system_prompt",
        "custom_options",
    }
)


class IModelRepository(ABC):
    """Interface for model catalog operations."""

    @abstractmethod
    async def create(self, entity: ModelEntity) -> ModelEntity:
        """Create a model together with its default configuration."""
        ...

    @abstractmethod
    async def get(self, model_id: str) -> ModelEntity | None:
        """Get a model by ID."""
        ...

    @abstractmethod
    async def get_by_name(self, name: str) -> ModelEntity | None:
        """Get a model by its unique name."""
        ...

    @abstractmethod
    async def list_all(self) -> list[ModelEntity]:
        """List every model, default first, then by name."""
        ...

    @abstractmethod
    async def list_available(self) -> list[ModelEntity]:
        """List models that are available and enabled."""
        ...

    @abstractmethod
    async def get_default(self) -> ModelEntity | None:
        """Get the default model if it is available and enabled."""
        ...

    @abstractmethod
    async def update_fields(self, model_id: str, **fields: Any) -> ModelEntity:
        """Change only the given fields.

        Raises:
            ModelValidationError: If no fields (or unknown fields) are given.
            ModelNotFoundError: If the model does not exist.
        """
        ...

    @abstractmethod
    async def update_status(self, model_id: str, status: str) -> ModelEntity:
        """Set the status column without transition checks."""
        ...

    @abstractmethod
    async def update_size(self, model_id: str, size: int) -> ModelEntity:
        """Set the size in bytes."""
        ...

    @abstractmethod
    async def set_default_flag(self, model_id: str, is_default: bool) -> ModelEntity:
        """Set the default flag on one model."""
        ...

    @abstractmethod
    async def clear_default(self, except_id: str | None = None) -> int:
        """Clear the default flag on every model but ``except_id``. Returns rows changed."""
        ...

    @abstractmethod
    async def mark_used(self, name: str) -> bool:
        """Bump last_used_at for a model name. Returns False if unknown."""
        ...

    @abstractmethod
    async def hard_delete(self, model_id: str) -> None:
        """Delete the configuration row, then the model row."""
        ...


class IModelConfigRepository(ABC):
    """Interface for per-model generation configuration."""

    @abstractmethod
    async def get(self, model_id: str) -> ModelConfigEntity | None:
        """Get the configuration for a model."""
        ...

    @abstractmethod
    async def create_default(self, model_id: str) -> ModelConfigEntity:
        """Create a configuration row with default values."""
        ...

    @abstractmethod
    async def update(self, model_id: str, **fields: Any) -> ModelConfigEntity:
        """Change only the given configuration fields."""
        ...


@dataclass
class CatalogScope:
    """Repositories bound to a single database transaction."""

    models: IModelRepository
    configs: IModelConfigRepository


class IDatabaseAdapter(ABC):
    """Main database adapter interface.

    Provides transactional access to the repositories and manages
    database lifecycle.
    """

    @abstractmethod
    def session(self) -> AbstractAsyncContextManager[CatalogScope]:
        """Open a transaction. Commits on exit, rolls back on error."""
        ...

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the database (create tables, run migrations, etc.)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close database connections and cleanup."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if database is healthy and accessible."""
        ...
