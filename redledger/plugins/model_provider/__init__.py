"""Model provider adapters and the canonical streaming types.

Usage:
    from redledger.plugins.model_provider import create_default_registry

    registry = create_default_registry()
    provider = registry.create("openai", settings.provider("openai"))
    handle = provider.send_streaming(options, on_chunk)
    handle.abort()
"""

from .base import AbortHandle, LLMProvider, StreamCallback
from .registry import ProviderEntry, ProviderRegistry, create_default_registry
from .streaming import ChunkEmitter, HTTPStatusError, LineBuffer, StreamHandle
from .types import (
    CancelToken,
    ChunkType,
    LLMMessage,
    ProviderSendOptions,
    StreamChunk,
    ToolCall,
    ToolDefinition,
)

__all__ = [
    'AbortHandle',
    'CancelToken',
    'ChunkEmitter',
    'ChunkType',
    'HTTPStatusError',
    'LLMMessage',
    'LLMProvider',
    'LineBuffer',
    'ProviderEntry',
    'ProviderRegistry',
    'ProviderSendOptions',
    'StreamCallback',
    'StreamChunk',
    'StreamHandle',
    'ToolCall',
    'ToolDefinition',
    'create_default_registry',
]
