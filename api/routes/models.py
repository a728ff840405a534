"""Model catalog management endpoints."""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from api.deps import get_model_manager
from core.exceptions import (
    ModelConfigNotFoundError,
    ModelDisabledError,
    ModelError,
    ModelNotFoundError,
    ModelUnavailableError,
    ModelValidationError,
    RemoteUnavailableError,
)
from services.model_manager import ModelManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["models"])

Manager = Annotated[ModelManager, Depends(get_model_manager)]


class ModelResponse(BaseModel):
    """Response model for a catalog entry."""

    id: str
    name: str
    display_name: str
    description: str
    size: int
    family: str
    format: str
    parameters: str
    quantization: str
    status: str
    is_default: bool
    is_enabled: bool
    supports_embeddings: bool
    embedding_dimensions: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_used_at: datetime | None = None

    class Config:
        from_attributes = True


class ModelListResponse(BaseModel):
    items: list[ModelResponse]
    total: int


class ModelConfigResponse(BaseModel):
    """Response model for a model's generation parameters."""

    id: str
    model_id: str
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    repeat_penalty: float | None = None
    context_length: int | None = None
    max_tokens: int | None = None
    system_prompt: str = ""
    custom_options: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
        protected_namespaces = ()


class ModelDetailResponse(ModelResponse):
    config: ModelConfigResponse | None = None


class ModelUpdateRequest(BaseModel):
    """Request model for an administrative update. Omitted fields are unchanged."""

    display_name: str | None = Field(None, min_length=1)
    description: str | None = None
    is_default: bool | None = None
    is_enabled: bool | None = None


class ModelConfigUpdateRequest(BaseModel):
    temperature: float | None = Field(None, ge=0, le=2)
    top_p: float | None = Field(None, ge=0, le=1)
    top_k: int | None = Field(None, ge=1)
    repeat_penalty: float | None = Field(None, ge=0)
    context_length: int | None = Field(None, ge=1)
    max_tokens: int | None = Field(None, ge=1)
    system_prompt: str | None = None
    custom_options: dict[str, Any] | None = None


class DownloadRequest(BaseModel):
    name: str = Field(..., min_length=1)
    display_name: str | None = None
    description: str | None = None


class DownloadResponse(BaseModel):
    id: str
    name: str
    status: str
    message: str


class DownloadStatusResponse(BaseModel):
    id: str
    name: str
    status: str
    progress: float | None = None


class SyncResponse(BaseModel):
    message: str
    created: list[str]
    updated: list[str]
    removed: list[str]
    failed: list[str]


class AvailableModelsResponse(BaseModel):
    models: list[str]
    total: int


class CacheInfoResponse(BaseModel):
    cached_models_count: int
    last_updated: datetime | None = None
    ttl_hours: float
    is_expired: bool
    seconds_until_expiry: int


class ValidateRequest(BaseModel):
    name: str = Field(..., min_length=1)


class ValidateResponse(BaseModel):
    valid: bool
    message: str
    model: ModelResponse | None = None


class MessageResponse(BaseModel):
    """Response model for simple messages."""

    message: str
    id: str | None = None


def _http_error(e: ModelError) -> HTTPException:
    """Map a model lifecycle error to an HTTP error."""
    if isinstance(e, (ModelNotFoundError, ModelConfigNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, ModelValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, (ModelDisabledError, ModelUnavailableError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, RemoteUnavailableError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        logger.exception("Model operation failed")
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal error",
        )
    return HTTPException(status_code=code, detail=str(e))


def _available_response(models: list[str]) -> AvailableModelsResponse:
    return AvailableModelsResponse(models=models, total=len(models))


@router.get("", response_model=ModelListResponse)
async def list_models(
    manager: Manager,
    available: Annotated[
        bool,
        Query(description="Only models that are available and enabled"),
    ] = False,
) -> ModelListResponse:
    """List catalog models, default first."""
    try:
        models = await manager.list_models(available_only=available)
    except ModelError as e:
        raise _http_error(e) from e
    return ModelListResponse(
        items=[ModelResponse.model_validate(m) for m in models],
        total=len(models),
    )


@router.get("/available", response_model=AvailableModelsResponse)
async def get_available_models(manager: Manager) -> AvailableModelsResponse:
    """List library models that are not installed yet."""
    return _available_response(await manager.get_available())


@router.post("/available/refresh", response_model=AvailableModelsResponse)
async def refresh_available_models(manager: Manager) -> AvailableModelsResponse:
    """Drop the cached library list and fetch it again."""
    return _available_response(await manager.refresh_available())


@router.get("/cache-info", response_model=CacheInfoResponse)
async def get_cache_info(manager: Manager) -> CacheInfoResponse:
    return CacheInfoResponse(**manager.cache_info())


@router.get("/default", response_model=ModelResponse)
async def get_default_model(manager: Manager) -> ModelResponse:
    """Get the default chat model.

    Raises:
        HTTPException: 404 if no usable default model is set.
    """
    try:
        return ModelResponse.model_validate(await manager.get_default())
    except ModelError as e:
        raise _http_error(e) from e


@router.post("/validate", response_model=ValidateResponse)
async def validate_model(request: ValidateRequest, manager: Manager) -> ValidateResponse:
    """Check whether a model can be used for chat.

    Reasons are not exposed; any problem reads as "Model unavailable".
    """
    try:
        model = await manager.validate(request.name)
    except (ModelNotFoundError, ModelDisabledError, ModelUnavailableError) as e:
        logger.info("Model validation failed for %s: %s", request.name, e)
        return ValidateResponse(valid=False, message="Model unavailable")
    except ModelError as e:
        raise _http_error(e) from e
    return ValidateResponse(valid=True, message="Model available", model=ModelResponse.model_validate(model))


@router.post("/sync", response_model=SyncResponse)
async def sync_models(manager: Manager) -> SyncResponse:
    """Reconcile the catalog with the models installed in Ollama.

    Raises:
        HTTPException: 503 if Ollama cannot be reached.
    """
    try:
        report = await manager.sync()
    except ModelError as e:
        raise _http_error(e) from e
    return SyncResponse(message="Models synchronized successfully", **report.to_dict())


@router.post("/download", response_model=DownloadResponse, status_code=status.HTTP_202_ACCEPTED)
async def download_model(request: DownloadRequest, manager: Manager) -> DownloadResponse:
    """Start downloading a model in the background.

    Args:
        request: Model name and optional display name and description.

    Returns:
        The catalog id to poll with the download-status endpoint.

    Raises:
        HTTPException: 400 if the model is installed or already downloading.
    """
    try:
        ticket = await manager.download(request.name, request.display_name, request.description)
    except ModelError as e:
        raise _http_error(e) from e
    return DownloadResponse(
        id=ticket.id,
        name=ticket.name,
        status=ticket.status,
        message=ticket.message,
    )


@router.get("/{model_id}", response_model=ModelDetailResponse)
async def get_model(model_id: str, manager: Manager) -> ModelDetailResponse:
    """Get a model with its configuration."""
    try:
        model, config = await manager.get_details(model_id)
    except ModelError as e:
        raise _http_error(e) from e
    return ModelDetailResponse(
        **ModelResponse.model_validate(model).model_dump(),
        config=ModelConfigResponse.model_validate(config) if config else None,
    )


@router.put("/{model_id}", response_model=ModelResponse)
async def update_model(
    model_id: str,
    request: ModelUpdateRequest,
    manager: Manager,
) -> ModelResponse:
    """Update display name, description, default or enabled flag.

    Raises:
        HTTPException: 404 if not found, 400 for an empty update or a
            default flag on a model that is not available.
    """
    try:
        model = await manager.update_model(model_id, **request.model_dump(exclude_unset=True))
    except ModelError as e:
        raise _http_error(e) from e
    return ModelResponse.model_validate(model)


@router.delete("/{model_id}", response_model=MessageResponse)
async def delete_model(model_id: str, manager: Manager) -> MessageResponse:
    """Soft delete: mark the model removed."""
    try:
        await manager.soft_delete(model_id)
    except ModelError as e:
        raise _http_error(e) from e
    return MessageResponse(message="Model deleted successfully", id=model_id)


@router.delete("/{model_id}/hard", response_model=MessageResponse)
async def hard_delete_model(model_id: str, manager: Manager) -> MessageResponse:
    """Delete the model and its configuration, and remove it from Ollama."""
    try:
        await manager.hard_delete(model_id)
    except ModelError as e:
        raise _http_error(e) from e
    return MessageResponse(message="Model permanently deleted", id=model_id)


@router.post("/{model_id}/restore", response_model=ModelResponse)
async def restore_model(model_id: str, manager: Manager) -> ModelResponse:
    """Restore a removed model.

    The model comes back as available if Ollama still has it, or as
    error otherwise.
    """
    try:
        return ModelResponse.model_validate(await manager.restore(model_id))
    except ModelError as e:
        raise _http_error(e) from e


@router.post("/{model_id}/default", response_model=ModelResponse)
async def set_default_model(model_id: str, manager: Manager) -> ModelResponse:
    try:
        return ModelResponse.model_validate(await manager.set_default(model_id))
    except ModelError as e:
        raise _http_error(e) from e


@router.get("/{model_id}/config", response_model=ModelConfigResponse)
async def get_model_config(model_id: str, manager: Manager) -> ModelConfigResponse:
    try:
        return ModelConfigResponse.model_validate(await manager.get_config(model_id))
    except ModelError as e:
        raise _http_error(e) from e


@router.put("/{model_id}/config", response_model=ModelConfigResponse)
async def update_model_config(
    model_id: str,
    request: ModelConfigUpdateRequest,
    manager: Manager,
) -> ModelConfigResponse:
    """Update generation parameters. Omitted fields are unchanged."""
    try:
        config = await manager.update_config(model_id, **request.model_dump(exclude_unset=True))
    except ModelError as e:
        raise _http_error(e) from e
    return ModelConfigResponse.model_validate(config)


@router.get("/{model_id}/download-status", response_model=DownloadStatusResponse)
async def get_download_status(model_id: str, manager: Manager) -> DownloadStatusResponse:
    """Get the model status and, while downloading, the progress percentage."""
    try:
        result = await manager.get_download_status(model_id)
    except ModelError as e:
        raise _http_error(e) from e
    return DownloadStatusResponse(
        id=result.model.id,
        name=result.model.name,
        status=result.model.status,
        progress=result.progress,
    )


@router.post("/{model_id}/download/cancel", response_model=MessageResponse)
async def cancel_download(model_id: str, manager: Manager) -> MessageResponse:
    """Cancel a running download. The model is marked error."""
    try:
        cancelled = await manager.cancel_download(model_id)
    except ModelError as e:
        raise _http_error(e) from e
    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No download in progress for this model",
        )
    return MessageResponse(message="Download cancelled", id=model_id)
