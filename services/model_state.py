"""Model status transitions and the single-default rule."""

import asyncio
import logging

from core.exceptions import ModelNotFoundError, ModelValidationError
from core.interfaces import IDatabaseAdapter, IModelRepository, ModelEntity, ModelStatus

logger = logging.getLogger(__name__)

# Allowed target statuses per current status. A model never "transitions" to
# the status it already has; such calls are no-ops.
TRANSITIONS: dict[str, frozenset[str]] = {
    ModelStatus.AVAILABLE: frozenset({ModelStatus.REMOVED}),
    ModelStatus.DOWNLOADING: frozenset({ModelStatus.AVAILABLE, ModelStatus.ERROR}),
    ModelStatus.INSTALLING: frozenset(
        {ModelStatus.AVAILABLE, ModelStatus.ERROR, ModelStatus.DOWNLOADING}
    ),
    ModelStatus.ERROR: frozenset(
        {ModelStatus.AVAILABLE, ModelStatus.DOWNLOADING, ModelStatus.REMOVED}
    ),
    ModelStatus.REMOVED: frozenset(
        {ModelStatus.AVAILABLE, ModelStatus.ERROR, ModelStatus.DOWNLOADING}
    ),
}


def can_transition(current: str, target: str) -> bool:
    """Check whether ``current -> target`` is a legal status change."""
    return target in TRANSITIONS.get(current, frozenset())


class ModelStateMachine:
    """Applies status changes to catalog rows, rejecting illegal ones."""

    def __init__(self, db: IDatabaseAdapter):
        self._db = db
        # Serialises check-then-write of the default flag within this process
        self._default_lock = asyncio.Lock()

    async def transition(self, model_id: str, target: str) -> ModelEntity:
        """Move a model to ``target`` status in its own transaction.

        Raises:
            ModelNotFoundError: If the model does not exist.
            ModelValidationError: If the status is unknown or the move is illegal.
        """
        async with self._db.session() as scope:
            return await self.apply(scope.models, model_id, target)

    async def apply(self, models: IModelRepository, model_id: str, target: str) -> ModelEntity:
        """Same as ``transition`` but inside a caller-owned transaction."""
        if not ModelStatus.is_valid(target):
            raise ModelValidationError(f"Invalid status: {target}")

        model = await models.get(model_id)
        if model is None:
            raise ModelNotFoundError(f"Model not found: {model_id}")
        if model.status == target:
            return model
        if not can_transition(model.status, target):
            raise ModelValidationError(
                f"Cannot change status of {model.name} from {model.status} to {target}"
            )

        logger.info("Model %s: %s -> %s", model.name, model.status, target)
        updated = await models.update_status(model_id, target)
        if updated.is_default and target != ModelStatus.AVAILABLE:
            # A default model must be usable
            updated = await models.set_default_flag(model_id, False)
        return updated

    @property
    def default_lock(self) -> asyncio.Lock:
        """Held while the default flag is checked and written."""
        return self._default_lock

    async def apply_default(
        self, models: IModelRepository, model_id: str, is_default: bool
    ) -> ModelEntity:
        """Set or clear the default flag inside a caller-owned transaction.

        Callers hold ``default_lock`` for the whole transaction.

        Raises:
            ModelNotFoundError: If the model does not exist.
            ModelValidationError: If the model should become default but is not available.
        """
        model = await models.get(model_id)
        if model is None:
            raise ModelNotFoundError(f"Model not found: {model_id}")
        if not is_default:
            return await models.set_default_flag(model_id, False)

        if model.status != ModelStatus.AVAILABLE:
            raise ModelValidationError(
                f"Only available models can be default; {model.name} is {model.status}"
            )
        cleared = await models.clear_default(except_id=model_id)
        if cleared:
            logger.debug("Cleared default flag on %d model(s)", cleared)
        return await models.set_default_flag(model_id, True)

    async def set_default(self, model_id: str) -> ModelEntity:
        """Make a model the only default model.

        Clearing the other defaults and setting this one happen in one
        transaction, so readers never see two defaults.

        Raises:
            ModelNotFoundError: If the model does not exist.
            ModelValidationError: If the model is not available.
        """
        async with self._default_lock, self._db.session() as scope:
            result = await self.apply_default(scope.models, model_id, True)

        logger.info("Default model set to %s", result.name)
        return result

    async def unset_default(self, model_id: str) -> ModelEntity:
        async with self._default_lock, self._db.session() as scope:
            return await self.apply_default(scope.models, model_id, False)

    async def soft_delete(self, model_id: str) -> ModelEntity:
        """Mark a model removed. The row and its configuration are kept."""
        return await self.transition(model_id, ModelStatus.REMOVED)
