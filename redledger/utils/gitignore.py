"""Gitignore pattern matching utility.

Translates the workspace's root ``.gitignore`` into regular-expression
rules and checks workspace-relative paths against them.

Supports:
- Glob patterns (``*``, ``**``, ``?``, ``[...]``)
- Directory-only patterns (trailing ``/``)
- Negation patterns (leading ``!``), later rules override earlier ones
- Root-anchored patterns (leading ``/`` or any inner ``/``)
- Nested .gitignore is NOT supported (only root .gitignore)
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Pattern, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitignoreRule:
    """One parsed .gitignore line.

    Attributes:
        regex: Compiled full-match pattern over forward-slash relative paths.
        negation: True for ``!pattern`` lines (re-include).
        directory_only: True for ``pattern/`` lines.
    """
    regex: Pattern[str]
    negation: bool
    directory_only: bool


def glob_to_regex(pattern: str) -> Pattern[str]:
    """Convert a single gitignore glob to an anchored regex.

    ``**/`` matches zero or more leading directories, ``**`` anything,
    ``*`` anything except ``/``, ``?`` one non-``/`` character. Character
    classes pass through (``[!...]`` becomes ``[^...]``); everything else
    is escaped.
    """
    out = []
    i = 0
    length = len(pattern)
    while i < length:
        ch = pattern[i]
        if ch == "*" and pattern[i + 1:i + 2] == "*":
            if pattern[i + 2:i + 3] == "/":
                out.append("(?:.+/)?")
                i += 3
            else:
                out.append(".*")
                i += 2
        elif ch == "*":
            out.append("[^/]*")
            i += 1
        elif ch == "?":
            out.append("[^/]")
            i += 1
        elif ch == "[":
            close = pattern.find("]", i + 1)
            if close == -1:
                out.append(re.escape(ch))
                i += 1
            else:
                body = pattern[i + 1:close]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = close + 1
        else:
            out.append(re.escape(ch))
            i += 1
    return re.compile("^" + "".join(out) + "$")


def parse_gitignore(content: str) -> List[GitignoreRule]:
    """Parse .gitignore text into rules, in file order."""
    rules: List[GitignoreRule] = []
    for line in content.splitlines():
        line = line.rstrip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        negation = line.startswith("!")
        if negation:
            line = line[1:]

        directory_only = line.endswith("/")
        if directory_only:
            line = line[:-1]

        if not line:
            continue

        # A pattern without a slash matches at any depth; one with a slash
        # is relative to the root.
        if "/" not in line:
            glob = "**/" + line
        elif line.startswith("/"):
            glob = line[1:]
        else:
            glob = line

        try:
            regex = glob_to_regex(glob)
        except re.error as exc:
            logger.debug("Skipping unparseable .gitignore pattern %r: %s", line, exc)
            continue
        rules.append(GitignoreRule(regex, negation, directory_only))
    return rules


def is_ignored(relative_path: str, is_directory: bool, rules: List[GitignoreRule]) -> bool:
    """Apply rules in order; the last matching rule decides."""
    ignored = False
    for rule in rules:
        if rule.directory_only and not is_directory:
            continue
        if rule.regex.match(relative_path):
            ignored = not rule.negation
    return ignored


class GitignoreParser:
    """Rules loaded from a workspace's root .gitignore.

    Example:
        parser = GitignoreParser(Path("/home/user/project"))
        parser.is_ignored("build", is_directory=True)
    """

    def __init__(
        self,
        workspace_root: Union[str, Path],
        extra_patterns: Optional[List[str]] = None,
    ):
        """Initialize with workspace root.

        Args:
            workspace_root: Directory holding the .gitignore.
            extra_patterns: Additional patterns applied after the file's.
        """
        self._workspace_root = Path(workspace_root)
        self._rules: List[GitignoreRule] = []
        self._load_gitignore()
        if extra_patterns:
            self._rules.extend(parse_gitignore("\n".join(extra_patterns)))

    @property
    def rules(self) -> List[GitignoreRule]:
        return list(self._rules)

    def _load_gitignore(self) -> None:
        gitignore_path = self._workspace_root / ".gitignore"
        if not gitignore_path.is_file():
            return
        try:
            content = gitignore_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Cannot read %s: %s", gitignore_path, exc)
            return
        self._rules = parse_gitignore(content)

    def is_ignored(self, relative_path: str, is_directory: bool = False) -> bool:
        """Check a forward-slash path relative to the workspace root."""
        return is_ignored(relative_path.replace("\\", "/"), is_directory, self._rules)
