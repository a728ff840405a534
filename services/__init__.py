"""Services layer: model lifecycle on top of the catalog and the Ollama gateway."""

from .availability_cache import AvailabilityCache
from .model_downloads import DownloadOrchestrator
from .model_manager import ModelManager
from .model_state import ModelStateMachine
from .model_sync import ModelSynchronizer, SyncReport

__all__ = [
    "AvailabilityCache",
    "DownloadOrchestrator",
    "ModelManager",
    "ModelStateMachine",
    "ModelSynchronizer",
    "SyncReport",
]
