"""Ollama (NDJSON) provider adapter."""

from .provider import OllamaProvider, OllamaStreamParser, create_provider

__all__ = ['OllamaProvider', 'OllamaStreamParser', 'create_provider']
