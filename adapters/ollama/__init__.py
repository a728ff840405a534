"""Ollama inference server adapter."""

from .gateway import OllamaGateway
from .library import OllamaLibraryScraper

__all__ = ["OllamaGateway", "OllamaLibraryScraper"]
