"""SQLite repository implementations."""

import logging
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ModelConfigNotFoundError, ModelNotFoundError, ModelValidationError
from core.interfaces import (
    CONFIG_UPDATABLE_FIELDS,
    MODEL_UPDATABLE_FIELDS,
    IModelConfigRepository,
    IModelRepository,
    ModelConfigEntity,
    ModelEntity,
    ModelStatus,
)
from persistence.models import Model, ModelConfig, generate_uuid

from .mappers import config_to_entity, entity_to_config, entity_to_model, model_to_entity

logger = logging.getLogger(__name__)


class SQLiteModelRepository(IModelRepository):
    """SQLite implementation of the model catalog."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_row(self, model_id: str) -> Model:
        model = await self._session.get(Model, model_id)
        if model is None:
            raise ModelNotFoundError(f"Model {model_id} not found")
        return model

    async def _save(self, model: Model) -> ModelEntity:
        model.updated_at = func.now()
        await self._session.flush()
        await self._session.refresh(model)
        return model_to_entity(model)

    async def create(self, entity: ModelEntity) -> ModelEntity:
        if not ModelStatus.is_valid(entity.status):
            raise ModelValidationError(f"Invalid model status: {entity.status}")

        model = entity_to_model(entity)
        if not model.id:
            model.id = generate_uuid()
        self._session.add(model)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ModelValidationError(f"Model {entity.name} already exists") from e

        defaults = ModelConfigEntity(id=generate_uuid(), model_id=model.id)
        self._session.add(entity_to_config(defaults))
        await self._session.flush()
        await self._session.refresh(model)
        logger.info("Model created: %s (%s)", model.name, model.id)
        return model_to_entity(model)

    async def get(self, model_id: str) -> ModelEntity | None:
        result = await self._session.get(Model, model_id)
        return model_to_entity(result) if result else None

    async def get_by_name(self, name: str) -> ModelEntity | None:
        result = await self._session.execute(select(Model).where(Model.name == name))
        model = result.scalar_one_or_none()
        return model_to_entity(model) if model else None

    async def list_all(self) -> list[ModelEntity]:
        query = select(Model).order_by(Model.is_default.desc(), Model.name.asc())
        result = await self._session.execute(query)
        return [model_to_entity(m) for m in result.scalars().all()]

    async def list_available(self) -> list[ModelEntity]:
        query = (
            select(Model)
            .where(Model.status == ModelStatus.AVAILABLE, Model.is_enabled.is_(True))
            .order_by(Model.is_default.desc(), Model.name.asc())
        )
        result = await self._session.execute(query)
        return [model_to_entity(m) for m in result.scalars().all()]

    async def get_default(self) -> ModelEntity | None:
        query = (
            select(Model)
            .where(
                Model.is_default.is_(True),
                Model.is_enabled.is_(True),
                Model.status == ModelStatus.AVAILABLE,
            )
            .limit(1)
        )
        result = await self._session.execute(query)
        model = result.scalar_one_or_none()
        return model_to_entity(model) if model else None

    async def update_fields(self, model_id: str, **fields: Any) -> ModelEntity:
        if not fields:
            raise ModelValidationError("No fields to update")
        unknown = set(fields) - MODEL_UPDATABLE_FIELDS
        if unknown:
            raise ModelValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        model = await self._get_row(model_id)
        for key, value in fields.items():
            setattr(model, key, value)
        return await self._save(model)

    async def update_status(self, model_id: str, status: str) -> ModelEntity:
        if not ModelStatus.is_valid(status):
            raise ModelValidationError(f"Invalid model status: {status}")
        model = await self._get_row(model_id)
        model.status = status
        return await self._save(model)

    async def update_size(self, model_id: str, size: int) -> ModelEntity:
        model = await self._get_row(model_id)
        model.size = size
        return await self._save(model)

    async def set_default_flag(self, model_id: str, is_default: bool) -> ModelEntity:
        model = await self._get_row(model_id)
        model.is_default = is_default
        return await self._save(model)

    async def clear_default(self, except_id: str | None = None) -> int:
        stmt = update(Model).where(Model.is_default.is_(True))
        if except_id is not None:
            stmt = stmt.where(Model.id != except_id)
        stmt = stmt.values(is_default=False, updated_at=func.now())
        result = await self._session.execute(stmt.execution_options(synchronize_session="fetch"))
        return result.rowcount or 0

    async def mark_used(self, name: str) -> bool:
        stmt = (
            update(Model)
            .where(Model.name == name)
            .values(last_used_at=func.now())
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        return bool(result.rowcount)

    async def hard_delete(self, model_id: str) -> None:
        # Config first, even though the foreign key cascades
        await self._session.execute(delete(ModelConfig).where(ModelConfig.model_id == model_id))
        result = await self._session.execute(
            delete(Model).where(Model.id == model_id).execution_options(synchronize_session="fetch")
        )
        if not result.rowcount:
            raise ModelNotFoundError(f"Model {model_id} not found")
        logger.info("Model %s deleted from catalog", model_id)


class SQLiteModelConfigRepository(IModelConfigRepository):
    """SQLite implementation of model configuration storage."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_row(self, model_id: str) -> ModelConfig | None:
        result = await self._session.execute(
            select(ModelConfig).where(ModelConfig.model_id == model_id)
        )
        return result.scalar_one_or_none()

    async def get(self, model_id: str) -> ModelConfigEntity | None:
        config = await self._get_row(model_id)
        return config_to_entity(config) if config else None

    async def create_default(self, model_id: str) -> ModelConfigEntity:
        if await self._session.get(Model, model_id) is None:
            raise ModelNotFoundError(f"Model {model_id} not found")
        config = entity_to_config(ModelConfigEntity(id=generate_uuid(), model_id=model_id))
        self._session.add(config)
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise ModelValidationError(f"Model {model_id} already has a configuration") from e
        await self._session.refresh(config)
        return config_to_entity(config)

    async def update(self, model_id: str, **fields: Any) -> ModelConfigEntity:
        if not fields:
            raise ModelValidationError("No fields to update")
        unknown = set(fields) - CONFIG_UPDATABLE_FIELDS
        if unknown:
            raise ModelValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        config = await self._get_row(model_id)
        if config is None:
            raise ModelConfigNotFoundError(f"Configuration for model {model_id} not found")

        for key, value in fields.items():
            if key == "custom_options":
                value = dict(value or {})
            elif key == "system_prompt":
                value = value or ""
            setattr(config, key, value)
        config.updated_at = func.now()
        await self._session.flush()
        await self._session.refresh(config)
        return config_to_entity(config)
