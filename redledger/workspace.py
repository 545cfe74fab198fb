"""Workspace file operations behind the path jail.

WorkspaceService owns the selected workspace directory and is the only
code that touches it on behalf of the model. Every path goes through
:func:`resolve_workspace_path` first; user confirmation is delegated to a
:class:`DialogAdapter` supplied by the desktop shell (a mock in tests).
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

from .config import Settings
from .errors import ErrorCode, PathJailError
from .path_jail import resolve_workspace_path
from .trace import trace
from .utils.gitignore import GitignoreParser

logger = logging.getLogger(__name__)

SKIP_NAMES = frozenset({"node_modules", ".git", ".DS_Store", "Thumbs.db"})

FileNode = Dict[str, Any]


@dataclass
class ConfirmationRequest:
    """What the user is asked before a sensitive file operation.

    Attributes:
        kind: "question" or "warning"; lets the shell pick an icon.
        title: Dialog title.
        message: Main line of the dialog.
        detail: Secondary text (path, consequences).
        confirm_label: Label of the accepting button.
        cancel_label: Label of the refusing (default) button.
    """
    kind: str
    title: str
    message: str
    detail: str = ""
    confirm_label: str = "Allow"
    cancel_label: str = "Deny"


class DialogAdapter(Protocol):
    """Confirmation collaborator implemented by the desktop shell."""

    def confirm(self, request: ConfirmationRequest) -> bool:
        """Return True if the user accepted."""
        ...


class WorkspaceService:
    """Read, write, append and list files inside one workspace directory.

    Args:
        get_settings: Returns the current settings (strict mode is read on
            every operation, so a settings change applies immediately).
        workspace_path: Initial workspace directory, if already selected.
    """

    def __init__(
        self,
        get_settings: Callable[[], Settings],
        workspace_path: Optional[str] = None,
    ):
        self._get_settings = get_settings
        self._workspace_path = workspace_path

    def get_workspace_path(self) -> Optional[str]:
        return self._workspace_path

    def set_workspace_path(self, path: Optional[str]) -> None:
        self._workspace_path = path
        trace("Workspace", f"workspace set to {path!r}")

    def _require_workspace(self) -> str:
        if not self._workspace_path:
            raise PathJailError(ErrorCode.WORKSPACE_NOT_SET, "No workspace directory selected")
        return self._workspace_path

    @staticmethod
    def _ask(dialog: Optional[DialogAdapter], request: ConfirmationRequest, denial: str) -> None:
        if dialog is None:
            return
        if not dialog.confirm(request):
            trace("Workspace", f"user denied: {request.title}")
            raise PathJailError(ErrorCode.USER_DENIED, denial)

    # --- File Operations ---

    def read_file(self, relative_path: str, dialog: Optional[DialogAdapter] = None) -> str:
        """Read a UTF-8 text file from the workspace.

        In strict mode the user must confirm the read.

        Raises:
            PathJailError: WORKSPACE_NOT_SET, PATH_TRAVERSAL, USER_DENIED,
                FILE_NOT_FOUND.
        """
        root = self._require_workspace()
        full_path = resolve_workspace_path(root, relative_path)

        if self._get_settings().strict_mode:
            self._ask(dialog, ConfirmationRequest(
                kind="question",
                title="File Read Request",
                message=f"The assistant wants to read: {relative_path}",
                detail="Do you want to allow this file read?",
            ), "User denied file read")

        if not os.path.isfile(full_path):
            raise PathJailError(ErrorCode.FILE_NOT_FOUND, f"File not found: {relative_path}")

        with open(full_path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()

    def write_file(
        self,
        relative_path: str,
        content: str,
        dialog: Optional[DialogAdapter] = None,
        append: bool = False,
    ) -> str:
        """Write (or append) text to a workspace file.

        Overwriting an existing file always needs confirmation; creating a
        new file needs it in strict mode. Missing parent directories are
        created once the path has passed the jail.

        Returns:
            The absolute path written.
        """
        root = self._require_workspace()
        full_path = resolve_workspace_path(root, relative_path)
        exists = os.path.exists(full_path)

        if exists and os.path.isdir(full_path):
            raise PathJailError(ErrorCode.INVALID_INPUT,
                                f"Path is a directory: {relative_path}")

        if exists and not append:
            self._ask(dialog, ConfirmationRequest(
                kind="warning",
                title="Overwrite File",
                message="Overwrite existing file? This cannot be undone.",
                detail=full_path,
                confirm_label="Overwrite",
                cancel_label="Cancel",
            ), "User cancelled file overwrite")

        if not exists and self._get_settings().strict_mode:
            self._ask(dialog, ConfirmationRequest(
                kind="question",
                title="File Write Request",
                message=f"The assistant wants to create: {relative_path}",
                detail="Do you want to allow this file creation?",
            ), "User denied file creation")

        parent = os.path.dirname(full_path)
        if parent and not os.path.isdir(parent):
            os.makedirs(parent, exist_ok=True)

        mode = "a" if append else "w"
        with open(full_path, mode, encoding="utf-8", newline="") as f:
            f.write(content)

        trace("Workspace", f"{'appended' if append else 'wrote'} {len(content)} chars "
                           f"to {relative_path}")
        return full_path

    def append_file(self, relative_path: str, content: str,
                    dialog: Optional[DialogAdapter] = None) -> str:
        return self.write_file(relative_path, content, dialog, append=True)

    def list_files(self, relative_path: Optional[str] = None) -> List[FileNode]:
        """Tree of files under ``relative_path`` (the root if omitted).

        Returns:
            Nodes ``{name, path, type, children?}``; paths are relative to the
            workspace root with forward slashes.
        """
        root = self._require_workspace()
        root = os.path.normpath(os.path.abspath(root))
        target = resolve_workspace_path(root, relative_path) if relative_path else root

        if not os.path.isdir(target):
            raise PathJailError(ErrorCode.FILE_NOT_FOUND, "Directory not found")

        return self._list_directory(target, root, GitignoreParser(root))

    # --- Directory Listing ---

    def _list_directory(self, dir_path: str, root: str, gitignore: GitignoreParser) -> List[FileNode]:
        nodes: List[FileNode] = []
        try:
            entries = list(os.scandir(dir_path))
        except OSError as exc:
            logger.debug("Cannot list %s: %s", dir_path, exc)
            return nodes

        for entry in entries:
            # Dotfiles and well-known noise
            if entry.name.startswith(".") or entry.name in SKIP_NAMES:
                continue
            try:
                if entry.is_symlink():
                    continue
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue

            relative = os.path.relpath(entry.path, root).replace(os.sep, "/")
            if gitignore.is_ignored(relative, is_dir):
                continue

            if is_dir:
                nodes.append({
                    "name": entry.name,
                    "path": relative,
                    "type": "directory",
                    "children": self._list_directory(entry.path, root, gitignore),
                })
            else:
                nodes.append({"name": entry.name, "path": relative, "type": "file"})

        nodes.sort(key=lambda node: (node["type"] != "directory", node["name"].lower(), node["name"]))
        return nodes
