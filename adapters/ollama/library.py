"""Ollama public library listing.

ollama.com has no API for the downloadable catalog, so the names are
scraped from the library HTML: the index page links every model family
as ``/library/<family>`` and each family page mentions its tags as
``<family>:<tag>``. Page layout changes break this, which is why
callers treat an empty result as a failure and keep their cached list.
"""

import asyncio
import logging
import re

import httpx

from core.exceptions import RemoteUnavailableError

logger = logging.getLogger(__name__)

_FAMILY_LINK = re.compile(r'href="/library/([^"/?#]+)"')


def extract_model_families(content: str) -> list[str]:
    """Return unique family names linked from the library index page, in page order."""
    families: list[str] = []
    seen: set[str] = set()
    for match in _FAMILY_LINK.finditer(content):
        family = match.group(1).strip()
        if family and family not in seen:
            seen.add(family)
            families.append(family)
    return families


def extract_model_variants(content: str, family: str) -> list[str]:
    """Return unique ``family:tag`` names mentioned on a family page, in page order."""
    pattern = re.compile(r"(?<![\w.\-/])" + re.escape(family) + r":[^\s\"'<>]+")
    variants: list[str] = []
    seen: set[str] = set()
    for match in pattern.finditer(content):
        variant = match.group(0).rstrip(".,;:")
        # Drop matches that were only punctuation after the colon
        if ":" not in variant or variant in seen:
            continue
        seen.add(variant)
        variants.append(variant)
    return variants


class OllamaLibraryScraper:
    """Fetches downloadable model names from the Ollama library website."""

    def __init__(
        self,
        library_url: str = "https://ollama.com/library",
        timeout: float = 30.0,
        concurrency: int = 8,
        client: httpx.AsyncClient | None = None,
    ):
        self._library_url = library_url.rstrip("/")
        self._timeout = timeout
        self._concurrency = max(1, concurrency)
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_models(self) -> list[str]:
        """List every ``family:tag`` name in the library.

        Raises:
            RemoteUnavailableError: If the index page cannot be fetched or
                no families can be found on it.
        """
        client = await self._get_client()
        logger.info("Fetching models from Ollama library: %s", self._library_url)
        try:
            response = await client.get(self._library_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(f"Failed to fetch library page: {e}") from e

        families = extract_model_families(response.text)
        if not families:
            raise RemoteUnavailableError("No model families found on library page")
        logger.info("Found %d model families", len(families))

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _variants(family: str) -> list[str]:
            async with semaphore:
                try:
                    return await self._fetch_variants(client, family)
                except httpx.HTTPError as e:
                    logger.warning("Failed to get variants for model family %s: %s", family, e)
                    return [f"{family}:latest"]

        results = await asyncio.gather(*(_variants(f) for f in families))
        models = [name for variants in results for name in variants]
        logger.info("Fetched %d models from library", len(models))
        return models

    async def _fetch_variants(self, client: httpx.AsyncClient, family: str) -> list[str]:
        response = await client.get(f"{self._library_url}/{family}")
        response.raise_for_status()
        return extract_model_variants(response.text, family) or [f"{family}:latest"]
