"""Core configuration, interfaces, and adapter factory.

This module provides the foundation for the adapter pattern architecture:
- Settings: Application configuration
- Interfaces: Contracts for the catalog store and the inference server
- Factory: Creates the configured adapters
"""

from .config import Settings, settings
from .factory import (
    AdapterConfig,
    AdapterFactory,
    create_factory_from_settings,
    get_factory,
)

__all__ = [
    # Configuration
    "Settings",
    "settings",
    # Factory
    "AdapterConfig",
    "AdapterFactory",
    "create_factory_from_settings",
    "get_factory",
]
