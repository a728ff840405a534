"""Reconcile the local model catalog with the models installed on the server."""

import logging
import re
from dataclasses import dataclass, field

from core.events import MODELS_SYNCED, emit
from core.interfaces import (
    IDatabaseAdapter,
    IRemoteGateway,
    ModelEntity,
    ModelStatus,
    RemoteModelInfo,
)

from .model_state import ModelStateMachine

logger = logging.getLogger(__name__)

_NAME_SEPARATORS = re.compile(r"[:\-_]")

# Metadata refreshed from the server. An empty server value never
# overwrites a known one.
_METADATA_FIELDS = ("family", "format", "parameters", "quantization")


def generate_display_name(name: str) -> str:
    """Turn ``llama3.2:1b`` into ``Llama3.2 1b``."""
    words = _NAME_SEPARATORS.sub(" ", name).split()
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


@dataclass
class SyncReport:
    """Names touched by one sync pass."""

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total_remote(self) -> int:
        return len(self.created) + len(self.updated) + len(self.failed)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "created": list(self.created),
            "updated": list(self.updated),
            "removed": list(self.removed),
            "failed": list(self.failed),
        }


class ModelSynchronizer:
    """Brings catalog rows in line with a snapshot of the server's models.

    Every remote model ends up ``available`` in the catalog (created if
    unknown), and every ``available`` row the server no longer lists is
    marked ``removed``. Rows that are downloading, errored or already
    removed are left alone unless the server lists them.
    """

    def __init__(
        self,
        db: IDatabaseAdapter,
        gateway: IRemoteGateway,
        state_machine: ModelStateMachine,
    ):
        self._db = db
        self._gateway = gateway
        self._state = state_machine

    async def sync(self) -> SyncReport:
        """Run one reconciliation pass.

        Returns:
            What was created, updated, removed, and what failed.

        Raises:
            RemoteUnavailableError: If the server's model list cannot be fetched.
        """
        logger.info("Starting model synchronization with Ollama")
        remote_models = await self._gateway.list_installed()

        async with self._db.session() as scope:
            local_models = {m.name: m for m in await scope.models.list_all()}

        report = SyncReport()
        remote_names: set[str] = set()

        for remote in remote_models:
            remote_names.add(remote.name)
            try:
                local = local_models.get(remote.name)
                if local is None:
                    await self._create(remote)
                    report.created.append(remote.name)
                elif await self._refresh(local, remote):
                    report.updated.append(remote.name)
            except Exception:
                logger.exception("Failed to sync model %s", remote.name)
                report.failed.append(remote.name)

        for name, local in local_models.items():
            if name in remote_names or local.status != ModelStatus.AVAILABLE:
                continue
            try:
                await self._state.transition(local.id, ModelStatus.REMOVED)
                report.removed.append(name)
            except Exception:
                logger.exception("Failed to mark model %s as removed", name)
                report.failed.append(name)

        logger.info(
            "Model synchronization completed: %d created, %d updated, %d removed, %d failed",
            len(report.created),
            len(report.updated),
            len(report.removed),
            len(report.failed),
        )
        await emit(MODELS_SYNCED, **report.to_dict())
        return report

    async def _create(self, remote: RemoteModelInfo) -> ModelEntity:
        entity = ModelEntity(
            id="",
            name=remote.name,
            display_name=generate_display_name(remote.name),
            description=f"Model: {remote.name}",
            size=remote.size,
            family=remote.family,
            format=remote.format,
            parameters=remote.parameters,
            quantization=remote.quantization,
            status=ModelStatus.AVAILABLE,
            is_enabled=True,
        )
        async with self._db.session() as scope:
            return await scope.models.create(entity)

    async def _refresh(self, local: ModelEntity, remote: RemoteModelInfo) -> bool:
        """Update one existing row in a single transaction. Returns True if anything changed."""
        changed = False
        async with self._db.session() as scope:
            if local.status != ModelStatus.AVAILABLE:
                await self._state.apply(scope.models, local.id, ModelStatus.AVAILABLE)
                changed = True

            if remote.size and local.size != remote.size:
                await scope.models.update_size(local.id, remote.size)
                changed = True

            metadata = {
                name: getattr(remote, name)
                for name in _METADATA_FIELDS
                if getattr(remote, name) and getattr(remote, name) != getattr(local, name)
            }
            if metadata:
                await scope.models.update_fields(local.id, **metadata)
                changed = True

        if changed:
            logger.debug("Refreshed model %s", local.name)
        return changed
