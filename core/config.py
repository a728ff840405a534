"""Application configuration."""

import os
import sys
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


def _default_data_dir() -> Path:
    """Return the platform-specific default data directory."""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming"))
        return Path(base) / "ModelHub"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "ModelHub"
    return Path.home() / ".local" / "share" / "modelhub"


class Settings(BaseSettings):
    """Application settings."""

    # API settings
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8080

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./modelhub.db"

    # Data paths
    DATA_DIR: Path = _default_data_dir()

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Ollama server
    OLLAMA_HOST: str = "localhost:11434"  # host:port or full URL
    OLLAMA_TIMEOUT: float = 30.0  # Seconds, for non-streaming calls
    OLLAMA_LIBRARY_URL: str = "https://ollama.com/library"

    # Model lifecycle
    MODEL_DOWNLOAD_TIMEOUT: float = 30 * 60  # Deadline for one pull, in seconds
    AVAILABLE_MODELS_CACHE_TTL_HOURS: float = 24.0
    AVAILABLE_MODELS_RETRY_MINUTES: float = 5.0  # Wait after a failed library fetch
    LIBRARY_FETCH_CONCURRENCY: int = 8  # Parallel family page requests
    SYNC_ON_STARTUP: bool = True
    SYNC_INTERVAL_SECONDS: int = 0  # 0 disables periodic sync

    @property
    def ollama_base_url(self) -> str:
        """Ollama base URL with scheme."""
        host = self.OLLAMA_HOST.rstrip("/")
        if host.startswith(("http://", "https://")):
            return host
        return f"http://{host}"

    def ensure_directories(self) -> None:
        """Create required directories."""
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)

    model_config = {"env_prefix": "MODELHUB_", "env_file": ".env"}


settings = Settings()
