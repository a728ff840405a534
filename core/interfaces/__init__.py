"""Core interfaces for the adapter pattern.

These interfaces define contracts that allow swapping implementations
of the catalog store and of the inference server protocol.
"""

from .database import (
    CONFIG_UPDATABLE_FIELDS,
    MODEL_UPDATABLE_FIELDS,
    CatalogScope,
    IDatabaseAdapter,
    IModelConfigRepository,
    IModelRepository,
    # Domain entities
    ModelConfigEntity,
    ModelEntity,
    ModelStatus,
)
from .gateway import (
    IRemoteGateway,
    PullProgress,
    RemoteModelDetails,
    RemoteModelInfo,
)

__all__ = [
    # Database interfaces
    "IDatabaseAdapter",
    "IModelRepository",
    "IModelConfigRepository",
    "CatalogScope",
    # Database entities
    "ModelEntity",
    "ModelConfigEntity",
    "ModelStatus",
    "MODEL_UPDATABLE_FIELDS",
    "CONFIG_UPDATABLE_FIELDS",
    # Remote gateway
    "IRemoteGateway",
    "PullProgress",
    "RemoteModelDetails",
    "RemoteModelInfo",
]
