"""Ollama remote gateway adapter.

Implements IRemoteGateway against the Ollama HTTP API:
- GET /api/tags - Installed models with details
- POST /api/pull - Pull a model, streaming NDJSON progress
- DELETE /api/delete - Remove a model
- POST /api/show - Model details
- GET /api/version - Liveness
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from core.exceptions import RemoteUnavailableError
from core.interfaces import IRemoteGateway, PullProgress, RemoteModelDetails, RemoteModelInfo

from .library import OllamaLibraryScraper

logger = logging.getLogger(__name__)


def _progress_from_line(data: dict[str, Any]) -> PullProgress:
    error = data.get("error")
    return PullProgress(
        status=data.get("status") or ("error" if error else ""),
        digest=data.get("digest"),
        total=data.get("total"),
        completed=data.get("completed"),
        error=error,
    )


class OllamaGateway(IRemoteGateway):
    """Ollama server access via HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        library: OllamaLibraryScraper | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the gateway.

        Args:
            base_url: Base URL of the Ollama server (e.g., http://localhost:11434)
            timeout: Request timeout in seconds for non-streaming calls
            library: Scraper used for the downloadable catalog
            transport: Optional httpx transport (tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._library = library or OllamaLibraryScraper(timeout=timeout)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self._library.close()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(f"Ollama request {method} {path} failed: {e}") from e
        if response.status_code != 200:
            raise RemoteUnavailableError(
                f"Ollama returned status {response.status_code} for {path}: {response.text}"
            )
        return response

    async def list_installed(self) -> list[RemoteModelInfo]:
        response = await self._request("GET", "/api/tags")
        try:
            models = response.json().get("models") or []
        except ValueError as e:
            raise RemoteUnavailableError(f"Failed to decode model list: {e}") from e

        result = []
        for model in models:
            details = model.get("details") or {}
            result.append(
                RemoteModelInfo(
                    name=model["name"],
                    size=model.get("size") or 0,
                    family=details.get("family") or "",
                    format=details.get("format") or "",
                    parameters=details.get("parameter_size") or "",
                    quantization=details.get("quantization_level") or "",
                )
            )
        return result

    async def pull(self, name: str) -> AsyncIterator[PullProgress]:
        client = await self._get_client()
        logger.info("Starting model download from Ollama: %s", name)
        try:
            async with client.stream(
                "POST",
                "/api/pull",
                json={"name": name, "stream": True},
                # Layers can take minutes between progress lines
                timeout=httpx.Timeout(self._timeout, read=None),
            ) as response:
                if response.status_code != 200:
                    body = (await response.aread()).decode(errors="replace")
                    yield PullProgress(
                        status="error",
                        error=f"Ollama returned status {response.status_code}: {body}",
                    )
                    return

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        yield PullProgress(
                            status="error",
                            error=f"Failed to decode streaming response: {line[:200]}",
                        )
                        return

                    progress = _progress_from_line(data)
                    yield progress
                    if progress.error or progress.is_success:
                        break
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(f"Failed to pull {name}: {e}") from e
        logger.info("Model download stream finished: %s", name)

    async def delete(self, name: str) -> None:
        logger.info("Deleting model from Ollama: %s", name)
        await self._request("DELETE", "/api/delete", json={"name": name})

    async def inspect(self, name: str) -> RemoteModelDetails:
        response = await self._request("POST", "/api/show", json={"name": name})
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteUnavailableError(f"Failed to decode model info: {e}") from e

        details = data.get("details") or {}
        return RemoteModelDetails(
            family=details.get("family") or "",
            format=details.get("format") or "",
            parameter_size=details.get("parameter_size") or "",
            quantization=details.get("quantization_level") or "",
            families=details.get("families") or [],
            license=data.get("license"),
            template=data.get("template"),
            system=data.get("system"),
            model_info=data.get("model_info") or {},
        )

    async def list_catalog(self) -> list[str]:
        return await self._library.fetch_models()

    async def health_check(self) -> bool:
        try:
            await self._request("GET", "/api/version")
            return True
        except RemoteUnavailableError:
            return False
