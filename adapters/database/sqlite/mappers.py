"""Entity mappers between SQLAlchemy models and domain entities."""

from core.interfaces import ModelConfigEntity, ModelEntity
from persistence.models import Model, ModelConfig


def model_to_entity(model: Model) -> ModelEntity:
    """Convert Model row to ModelEntity."""
    return ModelEntity(
        id=model.id,
        name=model.name,
        display_name=model.display_name,
        description=model.description or "",
        size=model.size or 0,
        family=model.family or "",
        format=model.format or "",
        parameters=model.parameters or "",
        quantization=model.quantization or "",
        status=model.status,
        is_default=bool(model.is_default),
        is_enabled=bool(model.is_enabled),
        supports_embeddings=bool(model.supports_embeddings),
        embedding_dimensions=model.embedding_dimensions or 0,
        created_at=model.created_at,
        updated_at=model.updated_at,
        last_used_at=model.last_used_at,
    )


def entity_to_model(entity: ModelEntity, model: Model | None = None) -> Model:
    """Convert ModelEntity to Model row. Timestamps are owned by the database."""
    if model is None:
        model = Model()
    model.id = entity.id
    model.name = entity.name
    model.display_name = entity.display_name
    model.description = entity.description
    model.size = entity.size
    model.family = entity.family
    model.format = entity.format
    model.parameters = entity.parameters
    model.quantization = entity.quantization
    model.status = entity.status
    model.is_default = entity.is_default
    model.is_enabled = entity.is_enabled
    model.supports_embeddings = entity.supports_embeddings
    model.embedding_dimensions = entity.embedding_dimensions
    return model


def config_to_entity(model: ModelConfig) -> ModelConfigEntity:
    """Convert ModelConfig row to ModelConfigEntity."""
    return ModelConfigEntity(
        id=model.id,
        model_id=model.model_id,
        temperature=model.temperature,
        top_p=model.top_p,
        top_k=model.top_k,
        repeat_penalty=model.repeat_penalty,
        context_length=model.context_length,
        max_tokens=model.max_tokens,
        system_prompt=model.system_prompt or "",
        custom_options=dict(model.custom_options or {}),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_config(entity: ModelConfigEntity, model: ModelConfig | None = None) -> ModelConfig:
    """Convert ModelConfigEntity to ModelConfig row."""
    if model is None:
        model = ModelConfig()
    model.id = entity.id
    model.model_id = entity.model_id
    model.temperature = entity.temperature
    model.top_p = entity.top_p
    model.top_k = entity.top_k
    model.repeat_penalty = entity.repeat_penalty
    model.context_length = entity.context_length
    model.max_tokens = entity.max_tokens
    model.system_prompt = entity.system_prompt
    model.custom_options = dict(entity.custom_options or {})
    return model
