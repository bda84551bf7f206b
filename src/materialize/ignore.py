"""Path exclusion rules for copied packages.

Patterns follow the ``.npmignore`` grammar: one glob per line, ``#``
comments, ``!`` to re-include, a trailing ``/`` for directories only. A
pattern without ``/`` matches a base name at any depth; a pattern with ``/``
is matched segment by segment against the whole path, ``**`` spanning any
number of segments. The last matching pattern wins.
"""

from __future__ import annotations

import logging
import os
from fnmatch import fnmatchcase
from typing import Callable, Iterable, List, Optional, Sequence

from constants import Constants
from errors import ConfigError

logger = logging.getLogger(__name__)

PathPredicate = Callable[[str], bool]


def parse_pattern_list(text: str) -> List[str]:
    """Split an ignore-file body into patterns, dropping blanks and comments."""
    patterns = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)
    return patterns


def load_pattern_file(path: str) -> List[str]:
    """Read a pattern list file.

    Raises:
        ConfigError: If the file cannot be read.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return parse_pattern_list(fh.read())
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"cannot read pattern list {path}: {e}") from e


def _match_segments(pattern: Sequence[str], parts: Sequence[str]) -> bool:
    if not pattern:
        return not parts
    head = pattern[0]
    if head == "**":
        return any(_match_segments(pattern[1:], parts[i:]) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatchcase(parts[0], head) and _match_segments(pattern[1:], parts[1:])


class IgnoreRule:
    """One parsed pattern line."""

    def __init__(self, pattern: str):
        self.source = pattern
        self.negated = pattern.startswith("!")
        body = pattern[1:] if self.negated else pattern
        self.dir_only = body.endswith("/")
        body = body.rstrip("/")
        self.anchored = "/" in body
        self.segments = [s for s in body.split("/") if s]

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """Match a ``/``-separated path (relative, or absolute without the leading ``/``)."""
        if self.dir_only and not is_dir:
            return False
        if not self.segments:
            return False
        parts = [p for p in path.split("/") if p]
        if not parts:
            return False
        if not self.anchored:
            return fnmatchcase(parts[-1], self.segments[0])
        return _match_segments(self.segments, parts)

    def __repr__(self) -> str:
        return f"IgnoreRule({self.source!r})"


class PatternList:
    """Ordered list of ignore rules evaluated with last-match-wins."""

    def __init__(self, patterns: Iterable[str]):
        self.rules = [IgnoreRule(p) for p in patterns if p and p != "!"]

    def verdict(self, paths: Sequence[str], is_dir: bool = False) -> Optional[bool]:
        """True if excluded, False if re-included, None when no rule matched."""
        result: Optional[bool] = None
        for rule in self.rules:
            if any(rule.matches(p, is_dir) for p in paths):
                result = not rule.negated
        return result

    def is_excluded(self, path: str, is_dir: bool = False) -> bool:
        return bool(self.verdict([path], is_dir))


def _to_posix(path: str) -> str:
    return path.replace(os.sep, "/")


def glob_list_filter(globs: Iterable[str]) -> PathPredicate:
    """Build the global ``--exclude`` predicate.

    The predicate receives a source path and returns True when it must not
    be copied. Each glob is tried against the absolute path and, for paths
    below the working directory, against the path relative to it.
    """
    rules = PatternList(globs)

    def excluded(path: str) -> bool:
        absolute = os.path.abspath(path)
        forms = [_to_posix(absolute).lstrip("/")]
        rel = os.path.relpath(absolute, os.getcwd())
        if not rel.startswith(os.pardir):
            forms.append(_to_posix(rel))
        return bool(rules.verdict(forms, os.path.isdir(absolute)))

    return excluded


class PackageIgnore:
    """Per-package copy rules: built-in defaults plus the package's ``.npmignore``.

    The package's own ``node_modules`` is never copied, since its
    dependencies are placed separately, and ``package.json`` is always kept.
    """

    def __init__(self, patterns: Iterable[str]):
        self.rules = PatternList(list(Constants.DEFAULT_IGNORE_PATTERNS) + list(patterns))

    @classmethod
    def for_package(cls, source_dir: str) -> "PackageIgnore":
        ignore_file = os.path.join(source_dir, Constants.IGNORE_FILE)
        patterns: List[str] = []
        if os.path.isfile(ignore_file):
            patterns = load_pattern_file(ignore_file)
            logger.debug("Loaded %d ignore patterns from %s", len(patterns), ignore_file)
        return cls(patterns)

    def keeps(self, rel_path: str, is_dir: bool = False) -> bool:
        """Return True if ``rel_path`` (relative to the package) is copied."""
        rel = _to_posix(rel_path).strip("/")
        if rel == Constants.DEPENDENCIES_DIR:
            return False
        if rel == Constants.PACKAGE_JSON_FILE:
            return True
        return not self.rules.is_excluded(rel, is_dir)
