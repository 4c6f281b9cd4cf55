"""Glob pattern compilation and matching.

Matching is delegated to pathspec's ``gitwildmatch`` patterns:

- ``*`` matches any run of characters except ``/``;
- ``**`` as a whole segment matches zero or more path segments;
- ``?`` matches exactly one character except ``/``;
- ``[abc]``, ``[a-z]`` and ``[!a-z]`` classes;
- ``\\`` escapes the next character.

On top of that, ``{a,b,c}`` alternations and ``{1..3}`` / ``{a..c}`` ranges are
expanded before compilation, each alternative becoming one line of the spec.

Wildcards match leading dots. Matching is case-sensitive and candidate paths
are normalized to forward slashes. A pattern without a slash matches at any
depth, a leading ``/`` anchors the pattern at the root, a trailing ``/``
restricts it to directories (and their content) and a leading ``!`` negates
it.

A malformed pattern never raises: it compiles into a `GlobPattern` whose
`valid` flag is False and which matches nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING

from pathspec import PathSpec

from repo_filter.exceptions import PatternSyntaxError
from repo_filter.file_manipulation import normalize_path

if TYPE_CHECKING:
    from collections.abc import Iterable

PATTERN_DIALECT = "gitwildmatch"
MAX_BRACE_EXPANSION = 1024
MAX_BRACE_STEPS = 4 * MAX_BRACE_EXPANSION
MAX_RANGE_SIZE = 256

_NUMERIC_RANGE = re.compile(r"^(-?\d+)\.\.(-?\d+)(?:\.\.(-?\d+))?$")
_ALPHA_RANGE = re.compile(r"^([a-zA-Z])\.\.([a-zA-Z])$")
_DANGLING_ESCAPE = re.compile(r"(?<!\\)(?:\\\\)*\\$")


@dataclass(frozen=True)
class GlobPattern:
    """A compiled glob pattern.

    Attributes:
        source: The pattern string as written.
        negated: The source starts with ``!``; `test` inverts the match.
        anchored: The body starts with ``/``; it only matches from the root.
        directory_only: The body ends with ``/``; only directories and their
            content match.
        has_slash: The body holds a separator once the trailing ``/`` is removed.
        spec: The pathspec matcher, None when the pattern is malformed.
        error: Compilation error message for malformed patterns.
    """

    source: str
    negated: bool = False
    anchored: bool = False
    directory_only: bool = False
    has_slash: bool = False
    spec: PathSpec | None = field(default=None, repr=False, compare=False)
    error: str | None = field(default=None, compare=False)

    @property
    def valid(self) -> bool:
        """Whether the pattern compiled successfully."""
        return self.spec is not None

    def test(self, candidate: object, *, is_dir: bool | None = None) -> bool:
        """Check `candidate` against the pattern.

        Args:
            candidate (object): a path relative to the pattern root. Anything but a
                string never matches.
            is_dir (bool | None): whether the candidate is a directory. A trailing
                ``/`` on the candidate also marks it as one.

        Returns:
            bool: True if the candidate matches (inverted for negated patterns).
        """
        if self.spec is None or not isinstance(candidate, str):
            return False
        path = normalize_candidate(candidate)
        if not path:
            return False
        if is_dir and not path.endswith("/"):
            path += "/"
        matched = self.spec.match_file(path)
        return not matched if self.negated else matched


def normalize_candidate(candidate: str) -> str:
    """Normalize a candidate path for matching.

    Backslashes become slashes, and leading ``./`` and ``/`` markers are dropped
    since candidates are always taken relative to the pattern root.

    Args:
        candidate (str): the candidate path

    Returns:
        str: the normalized candidate
    """
    path = normalize_path(candidate)
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def compile_pattern(pattern: object) -> GlobPattern:
    """Compile a glob pattern into a reusable matcher.

    Compiled patterns are memoized. Non-string input yields a matcher that never
    matches.

    Args:
        pattern (object): the glob pattern

    Returns:
        GlobPattern: the compiled pattern
    """
    if isinstance(pattern, GlobPattern):
        return pattern
    if not isinstance(pattern, str):
        return GlobPattern(source=repr(pattern), error="pattern is not a string")
    return _compile_cached(pattern)


@lru_cache(maxsize=4096)
def _compile_cached(pattern: str) -> GlobPattern:
    body = pattern
    negated = False
    while body.startswith("!"):
        negated = not negated
        body = body[1:]
    while body.startswith("./"):
        body = body[2:]
    flags = {
        "source": pattern,
        "negated": negated,
        "anchored": body.startswith("/"),
        "directory_only": body.endswith("/"),
        "has_slash": "/" in body.strip("/"),
    }
    try:
        if _DANGLING_ESCAPE.search(body):
            raise PatternSyntaxError(pattern=pattern, message="pattern ends with a dangling escape")
        lines = [_escape_line_markers(alt) for alt in expand_braces(body)]
        spec = PathSpec.from_lines(PATTERN_DIALECT, lines)
    except PatternSyntaxError as exc:
        return GlobPattern(**flags, error=exc.message)
    except Exception as exc:  # noqa: BLE001
        return GlobPattern(**flags, error=str(exc) or type(exc).__name__)
    return GlobPattern(**flags, spec=spec)


def _escape_line_markers(line: str) -> str:
    # A brace alternative must not read as a negation or a comment line.
    if line.startswith(("!", "#")):
        return "\\" + line
    return line


def glob_match(candidate: object, pattern: object, *, is_dir: bool | None = None) -> bool:
    """Match one candidate path against one pattern.

    Args:
        candidate (object): the path to test
        pattern (object): the glob pattern (string or compiled)
        is_dir (bool | None): whether the candidate is a directory

    Returns:
        bool: True on a match, False otherwise (including invalid input)
    """
    if not isinstance(candidate, str):
        return False
    return compile_pattern(pattern).test(candidate, is_dir=is_dir)


def match_any(
    candidate: object,
    patterns: Iterable[str | GlobPattern],
    *,
    is_dir: bool | None = None,
) -> bool:
    """Check if a candidate path matches any of the provided patterns.

    Args:
        candidate (object): the path to test
        patterns (Iterable[str | GlobPattern]): patterns to match against
        is_dir (bool | None): whether the candidate is a directory

    Returns:
        bool: True if `candidate` matches any pattern, False otherwise
    """
    if not isinstance(candidate, str):
        return False
    return any(compile_pattern(p).test(candidate, is_dir=is_dir) for p in patterns)


# ------------------------------ Brace expansion ------------------------------


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternations and ``{1..3}`` ranges into plain patterns.

    Groups without a top-level comma or range (``{x}``) stay literal, as do
    unbalanced braces. Expansion works on an explicit stack, so the number of
    groups is only bounded by the work limits below.

    Args:
        pattern (str): the pattern to expand

    Raises:
        PatternSyntaxError: if the expansion yields more than `MAX_BRACE_EXPANSION`
            patterns or takes more than `MAX_BRACE_STEPS` steps.

    Returns:
        list[str]: the expanded patterns, in order and without duplicates
    """
    results: dict[str, None] = {}
    pending = [(pattern, 0)]
    steps = 0
    while pending:
        steps += 1
        if steps > MAX_BRACE_STEPS:
            raise PatternSyntaxError(pattern=pattern, message="brace expansion is too large")
        current, offset = pending.pop()
        group = _find_brace_group(current, offset)
        if group is None:
            results[current] = None
            if len(results) > MAX_BRACE_EXPANSION:
                raise PatternSyntaxError(pattern=pattern, message="brace expansion is too large")
            continue
        start, end, options = group
        prefix, suffix = current[:start], current[end + 1 :]
        pending.extend((prefix + option + suffix, start) for option in reversed(options))
    return list(results)


def _find_brace_group(pattern: str, offset: int = 0) -> tuple[int, int, list[str]] | None:
    i = offset
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            end = pattern.find("]", i + 2)
            if end != -1:
                i = end + 1
                continue
        if ch == "{":
            group = _split_brace_body(pattern, i)
            if group is not None:
                return i, group[0], group[1]
        i += 1
    return None


def _split_brace_body(pattern: str, open_index: int) -> tuple[int, list[str]] | None:
    depth = 0
    parts: list[str] = []
    start = open_index + 1
    i = start
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            if depth:
                depth -= 1
            else:
                parts.append(pattern[start:i])
                if len(parts) > 1:
                    return i, parts
                sequence = _expand_sequence(parts[0])
                return (i, sequence) if sequence is not None else None
        elif ch == "," and not depth:
            parts.append(pattern[start:i])
            start = i + 1
        i += 1
    return None


def _expand_sequence(body: str) -> list[str] | None:
    numeric = _NUMERIC_RANGE.match(body)
    if numeric:
        first, last = int(numeric.group(1)), int(numeric.group(2))
        step = abs(int(numeric.group(3) or 1)) or 1
        if abs(last - first) // step >= MAX_RANGE_SIZE:
            return None
        direction = step if last >= first else -step
        return [str(v) for v in range(first, last + (1 if direction > 0 else -1), direction)]
    alpha = _ALPHA_RANGE.match(body)
    if alpha:
        first, last = ord(alpha.group(1)), ord(alpha.group(2))
        direction = 1 if last >= first else -1
        return [chr(v) for v in range(first, last + direction, direction)]
    return None
