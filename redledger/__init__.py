# RedLedger orchestration core
#
# Unified import surface for the desktop shell:
#
#   from redledger import (
#       create_orchestrator, ChatRequest, load_settings, StreamChunk,
#   )
#
# Lazy loading: imports are deferred via __getattr__ so that importing a
# single submodule (e.g. redledger.path_jail) does not pull in requests.

# Mapping from public name -> (module_path, attribute_name)
_LAZY_IMPORTS = {
    # Orchestration
    "ToolOrchestrator": (".orchestrator", "ToolOrchestrator"),
    "ChatRequest": (".orchestrator", "ChatRequest"),
    "StreamContext": (".orchestrator", "StreamContext"),
    "create_orchestrator": (".orchestrator", "create_orchestrator"),
    # Tool execution
    "ToolExecutor": (".ai_tool_runner", "ToolExecutor"),
    "ToolRegistry": (".plugins.registry", "ToolRegistry"),
    "ToolContext": (".plugins.registry", "ToolContext"),
    # Configuration
    "Settings": (".config", "Settings"),
    "ProviderSettings": (".config", "ProviderSettings"),
    "load_settings": (".config", "load_settings"),
    # Errors
    "ErrorCode": (".errors", "ErrorCode"),
    "RedLedgerError": (".errors", "RedLedgerError"),
    "PathJailError": (".errors", "PathJailError"),
    "ProviderError": (".errors", "ProviderError"),
    # Model provider
    "ProviderRegistry": (".plugins.model_provider.registry", "ProviderRegistry"),
    "create_default_registry": (".plugins.model_provider.registry", "create_default_registry"),
    # Provider-agnostic types
    "StreamChunk": (".plugins.model_provider.types", "StreamChunk"),
    "ChunkType": (".plugins.model_provider.types", "ChunkType"),
    "ToolCall": (".plugins.model_provider.types", "ToolCall"),
    "LLMMessage": (".plugins.model_provider.types", "LLMMessage"),
    "ToolDefinition": (".plugins.model_provider.types", "ToolDefinition"),
    # Workspace and search services
    "WorkspaceService": (".workspace", "WorkspaceService"),
    "ConfirmationRequest": (".workspace", "ConfirmationRequest"),
    "SearchService": (".search", "SearchService"),
    "resolve_workspace_path": (".path_jail", "resolve_workspace_path"),
}


def __getattr__(name):
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        import importlib
        module = importlib.import_module(module_path, __name__)
        value = getattr(module, attr_name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_LAZY_IMPORTS)
