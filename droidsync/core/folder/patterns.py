"""
Inclusion pattern handling.

Turns user supplied patterns into canonical globs relative to a sync root
and matches root-relative paths against them.

Supported glob syntax:
- * (matches any characters except /)
- ** (matches any characters including /)
- ? (matches single character except /)
- [abc], [a-z], [!abc] (character classes)
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from droidsync.core.errors import ConfigInvalid


GLOB_METACHARACTERS = frozenset('*?[')

# Suffix appended to bare directory references
RECURSIVE_SUFFIX = '/**/*'


def has_glob(pattern: str) -> bool:
    """Check if a pattern contains any glob metacharacter."""
    return any(c in GLOB_METACHARACTERS for c in pattern)


def first_glob_index(pattern: str) -> int:
    """Index of the first glob metacharacter, or len(pattern) if none."""
    for i, c in enumerate(pattern):
        if c in GLOB_METACHARACTERS:
            return i
    return len(pattern)


def _normalize_root(root: str) -> str:
    root = root.replace('\\', '/')
    if len(root) > 1:
        root = root.rstrip('/')
    return root


def _strip_root(pattern: str, roots: Sequence[str]) -> str:
    """Strip the first root that is a path-boundary prefix of the pattern."""
    for root in roots:
        if not root:
            continue
        if root == '/':
            if pattern.startswith('/'):
                return pattern[1:]
            continue
        if pattern == root:
            return ''
        if pattern.startswith(root + '/'):
            return pattern[len(root) + 1:]
    return pattern


def validate_pattern(pattern: str) -> None:
    """
    Reject patterns that can never be matched safely.

    Raises:
        ConfigInvalid: on an unbalanced character class or a '..' component
    """
    i = 0
    while i < len(pattern):
        if pattern[i] == '[':
            end = pattern.find(']', i + 1)
            if end == -1:
                raise ConfigInvalid(f"Unbalanced '[' in pattern: {pattern!r}")
            body = pattern[i + 1:end]
            if body.startswith('!'):
                body = body[1:]
            if not body:
                raise ConfigInvalid(f"Empty character class in pattern: {pattern!r}")
            i = end
        i += 1

    if '..' in pattern.split('/'):
        raise ConfigInvalid(f"Pattern must not contain '..': {pattern!r}")


def compile_patterns(
    patterns: Iterable[str],
    root: str,
    *alternate_roots: str
) -> list[str]:
    """
    Normalize raw user patterns into globs relative to a sync root.

    Rules, applied per pattern:
    1. A leading root path is stripped (``root`` first, then any of
       ``alternate_roots``).
    2. Leading and trailing separators are stripped.
    3. A pattern without glob metacharacters is a directory reference and
       gets ``/**/*`` appended so it matches everything beneath it.

    An empty result means "match everything".

    Args:
        patterns: Raw patterns as typed by the user
        root: Sync root the patterns are relative to
        alternate_roots: Other roots a pattern may be written against

    Returns:
        Canonical patterns, deduplicated in first-seen order
    """
    roots = [_normalize_root(r) for r in (root, *alternate_roots) if r]
    compiled: list[str] = []

    for raw in patterns:
        pattern = raw.strip().replace('\\', '/')
        if not pattern:
            continue

        pattern = _strip_root(pattern, roots)
        pattern = pattern.strip('/')

        if not has_glob(pattern):
            pattern = f"{pattern}{RECURSIVE_SUFFIX}" if pattern else '**/*'

        validate_pattern(pattern)

        if pattern not in compiled:
            compiled.append(pattern)

    if compiled:
        logging.debug(f"PatternCompiler - Compiled {len(compiled)} pattern(s): {compiled}")

    return compiled


class GlobMatcher:
    """
    Case-sensitive glob matcher for root-relative paths.

    Every pattern is anchored at the sync root and must match the whole
    path. An empty pattern list matches everything.
    """

    def __init__(self, patterns: Iterable[str]):
        self.patterns = list(patterns)
        self._compiled: list[re.Pattern] = [
            re.compile(self._pattern_to_regex(p)) for p in self.patterns
        ]

    @property
    def matches_everything(self) -> bool:
        return not self._compiled

    def matches(self, path: str) -> bool:
        """Check if a root-relative path matches any pattern."""
        if not self._compiled:
            return True

        path = path.replace('\\', '/').lstrip('/')
        return any(regex.fullmatch(path) for regex in self._compiled)

    @staticmethod
    def _pattern_to_regex(pattern: str) -> str:
        """Convert a glob pattern to a regex."""
        validate_pattern(pattern)
        result = []
        i = 0

        while i < len(pattern):
            c = pattern[i]

            if c == '*':
                if i + 1 < len(pattern) and pattern[i + 1] == '*':
                    if i + 2 < len(pattern) and pattern[i + 2] == '/':
                        # **/ matches zero or more directories
                        result.append('(?:.*/)?')
                        i += 3
                        continue
                    result.append('.*')
                    i += 2
                    continue
                result.append('[^/]*')
            elif c == '?':
                result.append('[^/]')
            elif c == '[':
                j = i + 1
                if j < len(pattern) and pattern[j] == '!':
                    result.append('[^')
                    j += 1
                else:
                    result.append('[')
                while j < len(pattern) and pattern[j] != ']':
                    if pattern[j] in '\\^[':
                        result.append('\\' + pattern[j])
                    else:
                        result.append(pattern[j])
                    j += 1
                result.append(']')
                i = j
            else:
                result.append(re.escape(c))

            i += 1

        return ''.join(result)
