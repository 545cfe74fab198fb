"""OpenRouter provider adapter."""

from .provider import OpenRouterProvider, create_provider

__all__ = ['OpenRouterProvider', 'create_provider']
