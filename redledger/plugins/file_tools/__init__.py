"""Workspace file tools (read_file, write_file, append_file, list_files)."""

from .plugin import FileToolsPlugin, create_plugin

__all__ = ['FileToolsPlugin', 'create_plugin']
