"""Tool plugins and model provider adapters.

Usage:
    from redledger.plugins.registry import ToolRegistry
    from redledger.plugins.file_tools import create_plugin as create_file_tools

    registry = ToolRegistry()
    create_file_tools(workspace).register(registry)
"""
