"""Cached list of models that can be downloaded."""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from core.exceptions import ModelError
from core.interfaces import IDatabaseAdapter, IRemoteGateway

logger = logging.getLogger(__name__)

# Served when the library has never been fetched successfully
FALLBACK_MODELS = (
    "llama3.2:1b",
    "llama3.2:3b",
    "llama3.1:8b",
    "llama3.1:70b",
    "mistral:7b",
    "codellama:7b",
    "phi3:mini",
    "gemma:2b",
    "gemma:7b",
    "qwen2:0.5b",
    "qwen2:1.5b",
    "qwen2:7b",
)


@dataclass(frozen=True)
class _CacheEntry:
    models: tuple[str, ...]
    updated_at: datetime
    fetched_monotonic: float


class AvailabilityCache:
    """TTL cache of the library's model names, minus what is already installed.

    Failed fetches never raise: a stale list is served if one exists, the
    built-in fallback list otherwise. After a failure the library is not
    asked again for `retry_minutes`. Only one fetch runs at a time; callers
    that arrive while it runs reuse its result.
    """

    def __init__(
        self,
        db: IDatabaseAdapter,
        gateway: IRemoteGateway,
        ttl_hours: float = 24.0,
        retry_minutes: float = 5.0,
        clock=time.monotonic,
    ):
        self._db = db
        self._gateway = gateway
        self._ttl_seconds = ttl_hours * 3600
        self._retry_seconds = retry_minutes * 60
        self._clock = clock
        self._entry: _CacheEntry | None = None
        # Monotonic time before which a failed fetch is not retried
        self._retry_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def ttl_hours(self) -> float:
        return self._ttl_seconds / 3600

    def _is_fresh(self, entry: _CacheEntry | None) -> bool:
        return (
            entry is not None
            and bool(entry.models)
            and self._clock() - entry.fetched_monotonic < self._ttl_seconds
        )

    def _backing_off(self) -> bool:
        return self._retry_at is not None and self._clock() < self._retry_at

    @staticmethod
    def _degraded(entry: _CacheEntry | None) -> tuple[str, ...]:
        return entry.models if entry is not None and entry.models else FALLBACK_MODELS

    async def get_available(self) -> list[str]:
        """Return downloadable model names not yet in the catalog."""
        names = await self._get_library()
        return await self._without_installed(names)

    async def refresh(self) -> list[str]:
        """Drop the cached list and fetch it again."""
        async with self._lock:
            self._entry = None
            self._retry_at = None
        logger.info("Available models cache invalidated")
        return await self.get_available()

    async def _get_library(self) -> tuple[str, ...]:
        entry = self._entry
        if self._is_fresh(entry):
            return entry.models
        if self._backing_off():
            return self._degraded(entry)

        async with self._lock:
            # Another caller may have refreshed while we waited
            entry = self._entry
            if self._is_fresh(entry):
                return entry.models
            if self._backing_off():
                return self._degraded(entry)

            try:
                models = tuple(await self._gateway.list_catalog())
            except ModelError as e:
                self._retry_at = self._clock() + self._retry_seconds
                if entry is not None and entry.models:
                    logger.warning("Failed to refresh available models, serving stale cache: %s", e)
                else:
                    logger.warning("Failed to fetch available models, using fallback list: %s", e)
                return self._degraded(entry)

            if not models:
                self._retry_at = self._clock() + self._retry_seconds
                logger.warning("Library returned no models, keeping previous list")
                return self._degraded(entry)

            self._retry_at = None
            self._entry = _CacheEntry(
                models=models,
                updated_at=datetime.now(UTC),
                fetched_monotonic=self._clock(),
            )
            logger.info("Available models cache updated with %d models", len(models))
            return models

    async def _without_installed(self, names: tuple[str, ...]) -> list[str]:
        try:
            async with self._db.session() as scope:
                installed = {m.name for m in await scope.models.list_all()}
        except ModelError:
            logger.exception("Failed to read catalog, returning unfiltered model list")
            return list(names)
        return [name for name in names if name not in installed]

    def cache_info(self) -> dict[str, Any]:
        """Describe the cache state."""
        entry = self._entry
        if entry is None:
            return {
                "cached_models_count": 0,
                "last_updated": None,
                "ttl_hours": self.ttl_hours,
                "is_expired": True,
                "seconds_until_expiry": 0,
            }

        remaining = self._ttl_seconds - (self._clock() - entry.fetched_monotonic)
        return {
            "cached_models_count": len(entry.models),
            "last_updated": entry.updated_at,
            "ttl_hours": self.ttl_hours,
            "is_expired": remaining <= 0,
            "seconds_until_expiry": max(0, int(remaining)),
        }
