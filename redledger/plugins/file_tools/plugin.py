"""File tools: read, write, append and list files in the workspace.

Every tool goes through WorkspaceService, so the path jail, strict-mode
prompts and overwrite confirmation apply to model-initiated access
exactly as they do to the UI's own file operations.
"""

from typing import Any, Callable, Dict, List

from ...trace import trace
from ...workspace import WorkspaceService
from ..args import optional_string_arg, require_object_args, require_string_arg
from ..model_provider.types import ToolDefinition
from ..registry import ToolContext, ToolRegistry


READ_FILE = ToolDefinition(
    name="read_file",
    description="Read the contents of a file in the user's workspace directory.",
    parameters={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": 'Relative path to the file within the workspace (e.g. "src/index.ts")',
            },
        },
        "required": ["path"],
    },
)

WRITE_FILE = ToolDefinition(
    name="write_file",
    description=(
        "Write content to a file in the user's workspace directory. Creates the file "
        "if it doesn't exist, or overwrites it if it does (with user confirmation)."
    ),
    parameters={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Relative path to the file within the workspace"},
            "content": {"type": "string", "description": "The full content to write to the file"},
        },
        "required": ["path", "content"],
    },
)

APPEND_FILE = ToolDefinition(
    name="append_file",
    description="Append content to the end of an existing file in the user's workspace directory.",
    parameters={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "Relative path to the file within the workspace"},
            "content": {"type": "string", "description": "Content to append to the file"},
        },
        "required": ["path", "content"],
    },
)

LIST_FILES = ToolDefinition(
    name="list_files",
    description=(
        "List all files and directories in the user's workspace (or a subdirectory "
        "within it). Returns a tree structure. Skips node_modules, .git, and dotfiles."
    ),
    parameters={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Optional relative subdirectory path. Omit to list the entire workspace root.",
            },
        },
        "required": [],
    },
)


class FileToolsPlugin:
    """Registers the workspace file tools."""

    def __init__(self, workspace: WorkspaceService):
        self._workspace = workspace

    @property
    def name(self) -> str:
        return "file_tools"

    def get_tool_definitions(self) -> List[ToolDefinition]:
        return [READ_FILE, WRITE_FILE, APPEND_FILE, LIST_FILES]

    def get_executors(self) -> Dict[str, Callable[[Dict[str, Any], ToolContext], Any]]:
        return {
            "read_file": self._read_file,
            "write_file": self._write_file,
            "append_file": self._append_file,
            "list_files": self._list_files,
        }

    def register(self, registry: ToolRegistry) -> None:
        executors = self.get_executors()
        for definition in self.get_tool_definitions():
            registry.register(definition, executors[definition.name])

    def _read_file(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        payload = require_object_args(args, "read_file")
        path = require_string_arg(payload, "path", "read_file")
        content = self._workspace.read_file(path, context.dialog)
        trace("FileTools", f"read_file {path} ({len(content)} chars)")
        return {"content": content, "path": path}

    def _write_file(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        payload = require_object_args(args, "write_file")
        path = require_string_arg(payload, "path", "write_file")
        content = require_string_arg(payload, "content", "write_file", trim=False, allow_empty=True)
        self._workspace.write_file(path, content, context.dialog)
        return {"success": True, "path": path}

    def _append_file(self, args: Dict[str, Any], context: ToolContext) -> Dict[str, Any]:
        payload = require_object_args(args, "append_file")
        path = require_string_arg(payload, "path", "append_file")
        content = require_string_arg(payload, "content", "append_file", trim=False, allow_empty=True)
        self._workspace.append_file(path, content, context.dialog)
        return {"success": True, "path": path}

    def _list_files(self, args: Dict[str, Any], context: ToolContext) -> List[Dict[str, Any]]:
        payload = require_object_args(args if args is not None else {}, "list_files")
        path = optional_string_arg(payload, "path", "list_files", allow_empty=True)
        return self._workspace.list_files(path or None)


def create_plugin(workspace: WorkspaceService) -> FileToolsPlugin:
    """Factory function for plugin creation."""
    return FileToolsPlugin(workspace)
