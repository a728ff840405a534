"""Database persistence layer."""

from .database import create_engine, create_session_factory, init_db
from .models import (
    MODEL_STATUSES,
    Base,
    Model,
    ModelConfig,
)

__all__ = [
    "create_engine",
    "create_session_factory",
    "init_db",
    "MODEL_STATUSES",
    "Base",
    "Model",
    "ModelConfig",
]
