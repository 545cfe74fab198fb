"""Tests for gitignore pattern matching."""

import pytest

from ..gitignore import GitignoreParser, glob_to_regex, is_ignored, parse_gitignore


class TestGlobToRegex:
    """Tests for glob translation."""

    @pytest.mark.parametrize("glob,path,expected", [
        ("*.log", "debug.log", True),
        ("*.log", "logs/debug.log", False),
        ("**/*.log", "logs/debug.log", True),
        ("**/*.log", "debug.log", True),
        ("docs/**", "docs/a/b.md", True),
        ("file?.txt", "file1.txt", True),
        ("file?.txt", "file10.txt", False),
        ("file[0-9].txt", "file7.txt", True),
        ("file[!0-9].txt", "file7.txt", False),
        ("file[!0-9].txt", "fileA.txt", True),
        ("a+b.txt", "a+b.txt", True),
        ("a+b.txt", "aab.txt", False),
    ])
    def test_translation(self, glob, path, expected):
        """Glob metacharacters translate; everything else is literal."""
        assert bool(glob_to_regex(glob).match(path)) is expected


class TestParseAndMatch:
    """Tests for rule parsing and ordered application."""

    def test_comments_and_blank_lines_skipped(self):
        """Only pattern lines become rules."""
        rules = parse_gitignore("# comment\n\n*.tmp   \n")
        assert len(rules) == 1
        assert is_ignored("a/b.tmp", False, rules)

    def test_unanchored_matches_any_depth(self):
        """A slash-free pattern matches in any directory."""
        rules = parse_gitignore("secrets.env")
        assert is_ignored("secrets.env", False, rules)
        assert is_ignored("config/secrets.env", False, rules)

    def test_anchored_patterns(self):
        """Leading or inner slashes anchor to the root."""
        rules = parse_gitignore("/dist\ndocs/*.pdf")
        assert is_ignored("dist", True, rules)
        assert not is_ignored("src/dist", True, rules)
        assert is_ignored("docs/report.pdf", False, rules)
        assert not is_ignored("other/docs/report.pdf", False, rules)

    def test_directory_only(self):
        """Trailing-slash rules apply only to directories."""
        rules = parse_gitignore("build/")
        assert is_ignored("build", True, rules)
        assert not is_ignored("build", False, rules)

    def test_later_negation_wins(self):
        """Negations re-include, and the last matching rule decides."""
        rules = parse_gitignore("*.log\n!keep.log")
        assert is_ignored("trace.log", False, rules)
        assert not is_ignored("keep.log", False, rules)

        rules = parse_gitignore("!keep.log\n*.log")
        assert is_ignored("keep.log", False, rules)


class TestGitignoreParser:
    """Tests for loading a workspace .gitignore."""

    def test_loads_root_gitignore(self, tmp_path):
        """Rules come from <root>/.gitignore, plus any extra patterns."""
        (tmp_path / ".gitignore").write_text("*.pyc\n__pycache__/\n", encoding="utf-8")
        parser = GitignoreParser(tmp_path, extra_patterns=["*.bak"])
        assert parser.is_ignored("pkg/mod.pyc")
        assert parser.is_ignored("pkg/__pycache__", is_directory=True)
        assert parser.is_ignored("notes.bak")
        assert not parser.is_ignored("pkg/mod.py")

    def test_backslash_paths_normalized(self, tmp_path):
        """Windows-style separators are matched like forward slashes."""
        (tmp_path / ".gitignore").write_text("/out/*.o\n", encoding="utf-8")
        assert GitignoreParser(tmp_path).is_ignored("out\\main.o")

    def test_missing_gitignore(self, tmp_path):
        """Without a .gitignore nothing is ignored."""
        parser = GitignoreParser(tmp_path)
        assert parser.rules == []
        assert not parser.is_ignored("anything")
