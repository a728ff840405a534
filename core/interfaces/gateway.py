"""Remote inference server interface definitions.

This module defines the contract for talking to the process that actually
stores and runs models (Ollama locally, possibly another server later),
allowing the catalog services to be tested and swapped independently of
the wire protocol.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator


@dataclass
class RemoteModelInfo:
    """A model installed on the inference server."""

    name: str
    size: int = 0
    family: str = ""
    format: str = ""
    parameters: str = ""  # e.g. "8.0B"
    quantization: str = ""  # e.g. "Q4_K_M"


@dataclass
class PullProgress:
    """One progress event of a model pull."""

    status: str
    digest: str | None = None
    total: int | None = None
    completed: int | None = None
    error: str | None = None

    @property
    def percentage(self) -> float | None:
        """Completed share in percent, or None if the total is unknown."""
        if not self.total or self.total <= 0:
            return None
        return (self.completed or 0) / self.total * 100

    @property
    def is_success(self) -> bool:
        return "success" in (self.status or "")


@dataclass
class RemoteModelDetails:
    """Details reported by the inference server for one model."""

    family: str = ""
    format: str = ""
    parameter_size: str = ""
    quantization: str = ""
    families: list[str] = field(default_factory=list)
    license: str | None = None
    template: str | None = None
    system: str | None = None
    model_info: dict[str, Any] = field(default_factory=dict)


class IRemoteGateway(ABC):
    """Interface for inference server model operations.

    Implementations raise ``RemoteUnavailableError`` when the server
    cannot be reached or answers with an error.
    """

    @abstractmethod
    async def list_installed(self) -> list[RemoteModelInfo]:
        """List models installed on the server, with metadata."""
        ...

    @abstractmethod
    def pull(self, name: str) -> AsyncIterator[PullProgress]:
        """Pull a model, yielding progress events until the server is done.

        Failures after the request was accepted are reported as a final
        event with ``error`` set rather than raised.
        """
        ...

    @abstractmethod
    async def delete(self, name: str) -> None:
        """Delete a model's artifacts from the server."""
        ...

    @abstractmethod
    async def inspect(self, name: str) -> RemoteModelDetails:
        """Get details for one installed model."""
        ...

    @abstractmethod
    async def list_catalog(self) -> list[str]:
        """List model names that can be downloaded (``family:tag``)."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the server is reachable."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None
