"""OpenAI-compatible (SSE) provider adapter."""

from .provider import OpenAIProvider, OpenAIStreamParser, create_provider

__all__ = ['OpenAIProvider', 'OpenAIStreamParser', 'create_provider']
