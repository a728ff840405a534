"""Model manager: the single entry point for chat and admin callers."""

import logging
from typing import Any

from core.exceptions import (
    ModelConfigNotFoundError,
    ModelDisabledError,
    ModelNotFoundError,
    ModelUnavailableError,
    ModelValidationError,
    RemoteUnavailableError,
)
from core.interfaces import (
    IDatabaseAdapter,
    IRemoteGateway,
    ModelConfigEntity,
    ModelEntity,
    ModelStatus,
)

from .availability_cache import AvailabilityCache
from .model_downloads import DownloadOrchestrator, DownloadStatus, DownloadTicket
from .model_state import ModelStateMachine
from .model_sync import ModelSynchronizer, SyncReport

logger = logging.getLogger(__name__)


class ModelManager:
    """Wires the catalog, state machine, synchronizer, downloads and cache together.

    Usage:
        manager = ModelManager.create(db, gateway)
        await manager.sync()
        model = await manager.validate("llama3.2:1b")
    """

    def __init__(
        self,
        db: IDatabaseAdapter,
        gateway: IRemoteGateway,
        state_machine: ModelStateMachine,
        synchronizer: ModelSynchronizer,
        downloads: DownloadOrchestrator,
        cache: AvailabilityCache,
    ):
        self._db = db
        self._gateway = gateway
        self.state = state_machine
        self.synchronizer = synchronizer
        self.downloads = downloads
        self.cache = cache

    @classmethod
    def create(
        cls,
        db: IDatabaseAdapter,
        gateway: IRemoteGateway,
        download_timeout: float = 30 * 60,
        cache_ttl_hours: float = 24.0,
        cache_retry_minutes: float = 5.0,
    ) -> "ModelManager":
        """Build a manager and its collaborators from a database and a gateway."""
        state = ModelStateMachine(db)
        synchronizer = ModelSynchronizer(db, gateway, state)
        downloads = DownloadOrchestrator(db, gateway, state, synchronizer, timeout=download_timeout)
        cache = AvailabilityCache(
            db, gateway, ttl_hours=cache_ttl_hours, retry_minutes=cache_retry_minutes
        )
        return cls(db, gateway, state, synchronizer, downloads, cache)

    async def _require(self, model_id: str) -> ModelEntity:
        async with self._db.session() as scope:
            model = await scope.models.get(model_id)
        if model is None:
            raise ModelNotFoundError(f"Model not found: {model_id}")
        return model

    # Chat-facing

    async def validate(self, name: str) -> ModelEntity:
        """Check that a model can be used for chat.

        Raises:
            ModelNotFoundError: Unknown model name.
            ModelDisabledError: The model is disabled.
            ModelUnavailableError: The model is not in the available state.
        """
        async with self._db.session() as scope:
            model = await scope.models.get_by_name(name)
        if model is None:
            raise ModelNotFoundError(f"Model not found: {name}")
        if not model.is_enabled:
            raise ModelDisabledError(f"Model is disabled: {name}")
        if model.status != ModelStatus.AVAILABLE:
            raise ModelUnavailableError(f"Model is not available: {name} (status: {model.status})")
        return model

    async def get_default(self) -> ModelEntity:
        async with self._db.session() as scope:
            model = await scope.models.get_default()
        if model is None:
            raise ModelNotFoundError("No default model configured")
        return model

    async def mark_used(self, name: str) -> bool:
        """Record that a chat message referenced the model."""
        async with self._db.session() as scope:
            return await scope.models.mark_used(name)

    # Admin

    async def list_models(self, available_only: bool = False) -> list[ModelEntity]:
        async with self._db.session() as scope:
            if available_only:
                return await scope.models.list_available()
            return await scope.models.list_all()

    async def get_model(self, model_id: str) -> ModelEntity:
        return await self._require(model_id)

    async def get_details(self, model_id: str) -> tuple[ModelEntity, ModelConfigEntity | None]:
        """Get a model together with its configuration (None if it has none)."""
        async with self._db.session() as scope:
            model = await scope.models.get(model_id)
            if model is None:
                raise ModelNotFoundError(f"Model not found: {model_id}")
            config = await scope.configs.get(model_id)
        return model, config

    async def update_model(
        self,
        model_id: str,
        display_name: str | None = None,
        description: str | None = None,
        is_default: bool | None = None,
        is_enabled: bool | None = None,
    ) -> ModelEntity:
        """Apply an administrative update. Only given values change.

        Raises:
            ModelNotFoundError: If the model does not exist.
            ModelValidationError: If nothing is given, or the model cannot be default.
        """
        fields: dict[str, Any] = {}
        if display_name is not None:
            fields["display_name"] = display_name
        if description is not None:
            fields["description"] = description
        if is_enabled is not None:
            fields["is_enabled"] = is_enabled
        if not fields and is_default is None:
            raise ModelValidationError("No fields to update")

        # One transaction: a rejected default flag discards the other changes too
        async with self.state.default_lock, self._db.session() as scope:
            model = await scope.models.get(model_id)
            if model is None:
                raise ModelNotFoundError(f"Model not found: {model_id}")
            if fields:
                model = await scope.models.update_fields(model_id, **fields)
            if is_default is True or (is_default is False and model.is_default):
                model = await self.state.apply_default(scope.models, model_id, is_default)

        logger.info("Model updated: %s", model.name)
        return model

    async def set_default(self, model_id: str) -> ModelEntity:
        return await self.state.set_default(model_id)

    async def soft_delete(self, model_id: str) -> ModelEntity:
        return await self.state.soft_delete(model_id)

    async def hard_delete(self, model_id: str) -> None:
        """Remove a model and its configuration from the catalog.

        Available models are also deleted from the server; a server
        failure is logged and does not stop the catalog deletion.
        """
        model = await self._require(model_id)

        if self.downloads.is_running(model_id):
            await self.downloads.cancel(model_id)

        if model.status == ModelStatus.AVAILABLE:
            try:
                await self._gateway.delete(model.name)
            except RemoteUnavailableError as e:
                logger.warning("Failed to delete model %s from Ollama: %s", model.name, e)

        async with self._db.session() as scope:
            await scope.models.hard_delete(model_id)
        logger.info("Model hard deleted: %s", model.name)

    async def restore(self, model_id: str) -> ModelEntity:
        """Bring back a removed model.

        The model becomes available if the server still has it, and
        errored otherwise.

        Raises:
            ModelNotFoundError: If the model does not exist.
            ModelValidationError: If the model is not removed.
            RemoteUnavailableError: If the server cannot be asked.
        """
        model = await self._require(model_id)
        if model.status != ModelStatus.REMOVED:
            raise ModelValidationError(f"Model is not removed: {model.name} (status: {model.status})")

        installed = {m.name for m in await self._gateway.list_installed()}
        if model.name in installed:
            restored = await self.state.transition(model_id, ModelStatus.AVAILABLE)
            logger.info("Model restored: %s", model.name)
        else:
            restored = await self.state.transition(model_id, ModelStatus.ERROR)
            logger.warning("Model %s is no longer installed in Ollama", model.name)
        return restored

    async def get_config(self, model_id: str) -> ModelConfigEntity:
        _, config = await self.get_details(model_id)
        if config is None:
            raise ModelConfigNotFoundError(f"Model config not found: {model_id}")
        return config

    async def update_config(self, model_id: str, **fields: Any) -> ModelConfigEntity:
        await self._require(model_id)
        async with self._db.session() as scope:
            config = await scope.configs.update(model_id, **fields)
        logger.info("Model config updated for %s", model_id)
        return config

    async def sync(self) -> SyncReport:
        return await self.synchronizer.sync()

    async def download(
        self,
        name: str,
        display_name: str | None = None,
        description: str | None = None,
    ) -> DownloadTicket:
        return await self.downloads.download(name, display_name, description)

    async def get_download_status(self, model_id: str) -> DownloadStatus:
        return await self.downloads.get_download_status(model_id)

    async def cancel_download(self, model_id: str) -> bool:
        await self._require(model_id)
        return await self.downloads.cancel(model_id)

    async def get_available(self) -> list[str]:
        return await self.cache.get_available()

    async def refresh_available(self) -> list[str]:
        return await self.cache.refresh()

    def cache_info(self) -> dict[str, Any]:
        return self.cache.cache_info()

    async def shutdown(self) -> None:
        await self.downloads.shutdown()
