"""FastAPI dependencies."""

from fastapi import HTTPException, Request, status

from services.model_manager import ModelManager


def get_model_manager(request: Request) -> ModelManager:
    """Return the model manager created during application startup."""
    manager = getattr(request.app.state, "model_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Model manager is not initialized",
        )
    return manager
