"""Path jail: workspace containment and symlink rejection for file tools.

Every file tool resolves its model-supplied path through
:func:`resolve_workspace_path` before touching the disk. The function
performs no writes and never prompts; it either returns a normalized
absolute path inside the workspace or raises :class:`PathJailError`.

Checks, in order:
    1. Empty root or path                      -> INVALID_INPUT
    2. NUL bytes / control characters          -> PATH_TRAVERSAL
    3. Windows-invalid characters (Windows)    -> PATH_TRAVERSAL
    4. Traversal patterns (../, ~, /, C:\\, UNC) -> PATH_TRAVERSAL
    5. Lexical containment after normalization -> PATH_TRAVERSAL
    6. Any existing component below the root being a symlink
                                               -> PATH_TRAVERSAL

Example:
    Workspace: /home/user/project

    ALLOWED:
        notes/todo.md          -> /home/user/project/notes/todo.md
        new_dir/new_file.txt   -> (trailing components may not exist yet)

    BLOCKED:
        ../secret.txt          (traversal pattern)
        /etc/passwd            (absolute path)
        link/file.txt          (link is a symlink, even to a sibling dir)
"""

import os
import re
import stat
import sys
from typing import List, Optional

from .errors import ErrorCode, PathJailError


IS_WINDOWS = sys.platform == "win32"

TRAVERSAL_PATTERNS = [
    re.compile(r"\.\./"),             # ../
    re.compile(r"\.\.\\"),            # ..\
    re.compile(r"^~[/\\]"),            # ~/ or ~\
    re.compile(r"^/"),                # absolute POSIX
    re.compile(r"^[A-Za-z]:[/\\]"),   # absolute Windows (C:\ or C:/)
    re.compile(r"^\\\\"),             # UNC (\\server\share)
    re.compile(r"^//"),               # UNC with forward slashes
]

CONTROL_CHARS = re.compile(r"[\x00-\x1f\x80-\x9f]")
WINDOWS_INVALID = re.compile(r'[<>:"|?*]')


def _is_contained(candidate: str, root: str) -> bool:
    """Lexical containment; normcase makes it case-insensitive on Windows."""
    candidate_cmp = os.path.normcase(candidate)
    root_cmp = os.path.normcase(root)
    if candidate_cmp == root_cmp:
        return True
    prefix = root_cmp if root_cmp.endswith(os.sep) else root_cmp + os.sep
    return candidate_cmp.startswith(prefix)


def _components_from_root(root: str, target: str) -> List[str]:
    """Absolute paths of ``root`` and each component below it down to ``target``."""
    paths = [root]
    relative = os.path.relpath(target, root)
    if relative == os.curdir:
        return paths
    current = root
    for part in relative.split(os.sep):
        if not part or part == os.curdir:
            continue
        current = os.path.join(current, part)
        paths.append(current)
    return paths


def assert_no_symlinks_in_path(workspace_root: str, target_path: str) -> None:
    """Walk every component from the root down to the target, rejecting symlinks.

    Walking stops at the first component that does not exist, so a write to
    a not-yet-created file (or directory chain) is permitted.

    Args:
        workspace_root: Normalized absolute workspace root.
        target_path: Normalized absolute path inside the root.

    Raises:
        PathJailError: PATH_TRAVERSAL when a component is a symbolic link,
            PERMISSION_DENIED when a component cannot be inspected.
    """
    for component in _components_from_root(workspace_root, target_path):
        try:
            mode = os.lstat(component).st_mode
        except FileNotFoundError:
            break
        except OSError as exc:
            raise PathJailError(
                ErrorCode.PERMISSION_DENIED,
                "Unable to verify path safety before file access",
                {"path": component, "reason": str(exc)},
            ) from exc
        if stat.S_ISLNK(mode):
            raise PathJailError(
                ErrorCode.PATH_TRAVERSAL,
                "Symbolic links are not allowed",
                {"path": component},
            )


def resolve_workspace_path(
    workspace_root: Optional[str],
    relative_path: Optional[str],
    *,
    windows: Optional[bool] = None,
) -> str:
    """Resolve a workspace-relative path, rejecting anything unsafe.

    Args:
        workspace_root: Absolute workspace directory.
        relative_path: Path supplied by the model or the UI.
        windows: Force Windows character rules on or off (defaults to the
            running platform).

    Returns:
        The normalized absolute path inside the workspace.

    Raises:
        PathJailError: On any traversal, escape, invalid input or symlink.
    """
    if not relative_path or not workspace_root:
        raise PathJailError(ErrorCode.INVALID_INPUT, "Path cannot be empty")

    if "\0" in relative_path or "\0" in workspace_root:
        raise PathJailError(ErrorCode.PATH_TRAVERSAL, "Path contains null bytes")

    if CONTROL_CHARS.search(relative_path):
        raise PathJailError(ErrorCode.PATH_TRAVERSAL, "Path contains control characters")

    if (IS_WINDOWS if windows is None else windows) and WINDOWS_INVALID.search(relative_path):
        raise PathJailError(ErrorCode.PATH_TRAVERSAL, "Path contains invalid characters")

    for pattern in TRAVERSAL_PATTERNS:
        if pattern.search(relative_path):
            raise PathJailError(
                ErrorCode.PATH_TRAVERSAL,
                f"Path contains disallowed pattern: {relative_path}",
            )

    root = os.path.normpath(os.path.abspath(workspace_root))
    resolved = os.path.normpath(os.path.join(root, relative_path))

    if not _is_contained(resolved, root):
        raise PathJailError(ErrorCode.PATH_TRAVERSAL, "Path escapes workspace directory")

    assert_no_symlinks_in_path(root, resolved)

    return resolved


__all__ = [
    "PathJailError",
    "assert_no_symlinks_in_path",
    "resolve_workspace_path",
]
