"""Tests for the workspace path jail."""

import os

import pytest

from ..errors import ErrorCode, PathJailError
from ..path_jail import _is_contained, assert_no_symlinks_in_path, resolve_workspace_path


def _symlink_or_skip(target, link, target_is_directory=False):
    try:
        os.symlink(target, link, target_is_directory=target_is_directory)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported on this platform")


def _code(excinfo) -> str:
    return excinfo.value.code


class TestResolveWorkspacePath:
    """Tests for resolve_workspace_path."""

    def test_plain_relative_path(self, tmp_path):
        """A simple relative path resolves inside the root."""
        resolved = resolve_workspace_path(str(tmp_path), "notes/todo.md")
        assert resolved == os.path.join(str(tmp_path), "notes", "todo.md")

    def test_nonexistent_trailing_components_allowed(self, tmp_path):
        """Paths that do not exist yet are permitted (write to new file)."""
        resolved = resolve_workspace_path(str(tmp_path), "a/b/c/new.txt")
        assert resolved.startswith(str(tmp_path))

    def test_inner_dotdot_that_stays_inside(self, tmp_path):
        """Normalization that stays inside the root is fine when no pattern matches."""
        assert resolve_workspace_path(str(tmp_path), "a/..") == os.path.normpath(str(tmp_path))

    @pytest.mark.parametrize("path", ["", None])
    def test_empty_path(self, tmp_path, path):
        """Empty input is INVALID_INPUT."""
        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path(str(tmp_path), path)
        assert _code(excinfo) == ErrorCode.INVALID_INPUT

    def test_empty_root(self):
        """A missing workspace root is INVALID_INPUT."""
        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path("", "a.txt")
        assert _code(excinfo) == ErrorCode.INVALID_INPUT

    @pytest.mark.parametrize("path", [
        "a\x00b.txt",
        "a\nb.txt",
        "tab\there",
        "esc\x1b[31m",
        "c1\x85char",
    ])
    def test_control_characters(self, tmp_path, path):
        """NUL and control characters are rejected."""
        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path(str(tmp_path), path)
        assert _code(excinfo) == ErrorCode.PATH_TRAVERSAL

    @pytest.mark.parametrize("path", [
        "../secret.txt",
        "notes/../../secret.txt",
        "..\\secret.txt",
        "~/.ssh/id_rsa",
        "~\\Documents",
        "/etc/passwd",
        "C:\\Windows\\system32",
        "c:/Windows",
        "\\\\server\\share",
        "//server/share",
    ])
    def test_traversal_patterns(self, tmp_path, path):
        """Each traversal pattern is rejected before resolution."""
        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path(str(tmp_path), path)
        assert _code(excinfo) == ErrorCode.PATH_TRAVERSAL

    @pytest.mark.parametrize("path", ["~draft.md", "notes/~backup.txt"])
    def test_tilde_inside_name_allowed(self, tmp_path, path):
        """Only a leading ~ followed by a separator is a home-directory reference."""
        resolved = resolve_workspace_path(str(tmp_path), path)
        assert resolved == os.path.join(str(tmp_path), *path.split("/"))

    def test_bare_dotdot_escapes(self, tmp_path):
        """'..' alone matches no pattern but fails containment."""
        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path(str(tmp_path), "..")
        assert _code(excinfo) == ErrorCode.PATH_TRAVERSAL
        assert "escapes" in excinfo.value.message

    def test_sibling_prefix_not_contained(self, tmp_path):
        """A sibling sharing the root's name prefix is outside the root."""
        root = os.path.join(str(tmp_path), "work")
        assert _is_contained(os.path.join(root, "a.txt"), root)
        assert _is_contained(root, root)
        assert not _is_contained(root + "-evil", root)
        assert not _is_contained(os.path.join(root + "-evil", "x"), root)

    @pytest.mark.parametrize("path", ["a<b", "a>b", 'a"b', "a|b", "a?b", "a*b", "a:b"])
    def test_windows_invalid_characters(self, tmp_path, path):
        """Windows-invalid characters are rejected when Windows rules apply."""
        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path(str(tmp_path), path, windows=True)
        assert _code(excinfo) == ErrorCode.PATH_TRAVERSAL

    def test_windows_characters_allowed_elsewhere(self, tmp_path):
        """The same characters are legal file names on POSIX."""
        resolved = resolve_workspace_path(str(tmp_path), "a:b", windows=False)
        assert os.path.basename(resolved) == "a:b"


class TestSymlinkRejection:
    """Tests for symlink detection along the path."""

    def test_symlinked_directory_rejected(self, tmp_path):
        """A symlink anywhere along the path is rejected, even pointing inside."""
        (tmp_path / "real").mkdir()
        (tmp_path / "real" / "file.txt").write_text("x", encoding="utf-8")
        _symlink_or_skip(str(tmp_path / "real"), str(tmp_path / "link"), target_is_directory=True)

        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path(str(tmp_path), "link/file.txt")
        assert _code(excinfo) == ErrorCode.PATH_TRAVERSAL
        assert excinfo.value.message == "Symbolic links are not allowed"

    def test_symlinked_file_rejected(self, tmp_path):
        """A symlinked leaf pointing outside the workspace is rejected."""
        outside = tmp_path / "outside.txt"
        outside.write_text("secret", encoding="utf-8")
        root = tmp_path / "ws"
        root.mkdir()
        _symlink_or_skip(str(outside), str(root / "leak.txt"))

        with pytest.raises(PathJailError):
            resolve_workspace_path(str(root), "leak.txt")

    def test_dangling_symlink_rejected(self, tmp_path):
        """A dangling symlink is still a symlink (lstat, not stat)."""
        _symlink_or_skip(str(tmp_path / "missing"), str(tmp_path / "dangling"))
        with pytest.raises(PathJailError):
            resolve_workspace_path(str(tmp_path), "dangling/new.txt")

    def test_walk_stops_at_first_missing_component(self, tmp_path):
        """Components below a missing one are not inspected."""
        assert_no_symlinks_in_path(str(tmp_path), str(tmp_path / "missing" / "deeper" / "x"))

    def test_symlinked_root_rejected(self, tmp_path):
        """The walk starts at the workspace root, so a symlinked root is rejected."""
        real = tmp_path / "real"
        real.mkdir()
        _symlink_or_skip(str(real), str(tmp_path / "alias"), target_is_directory=True)

        with pytest.raises(PathJailError) as excinfo:
            resolve_workspace_path(str(tmp_path / "alias"), "file.txt")
        assert _code(excinfo) == ErrorCode.PATH_TRAVERSAL
        assert excinfo.value.message == "Symbolic links are not allowed"

    def test_walk_includes_root_when_target_is_root(self, tmp_path):
        """Resolving to the root still inspects the root."""
        real = tmp_path / "real"
        real.mkdir()
        _symlink_or_skip(str(real), str(tmp_path / "alias"), target_is_directory=True)
        with pytest.raises(PathJailError):
            assert_no_symlinks_in_path(str(tmp_path / "alias"), str(tmp_path / "alias"))
