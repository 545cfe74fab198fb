"""LM Studio provider adapter (OpenAI-compatible or native API)."""

from .provider import LMStudioProvider, LMStudioStreamParser, create_provider, normalize_base_url

__all__ = ['LMStudioProvider', 'LMStudioStreamParser', 'create_provider', 'normalize_base_url']
