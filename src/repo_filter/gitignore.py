"""Parse ``.gitignore`` files into exclude/include pattern sets.

Parsed sets are cached per canonical root. The cache is never refreshed
implicitly: callers that need to see an edited ``.gitignore`` call
`GitignoreCompiler.clear_cache`.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from pathlib import Path

from repo_filter.glob_matcher import GlobPattern, compile_pattern
from repo_filter.logging import logger

GITIGNORE_FILENAME = ".gitignore"

BUILD_ARTIFACT_PATTERNS: tuple[str, ...] = (
    "**/bundle.js",
    "**/bundle.js.map",
    "**/bundle.js.LICENSE.txt",
    "**/index.js.map",
    "**/output.css",
)

_TRAILING_SPACES = re.compile(r"(?<!\\)[ \t]+$")


@dataclass(frozen=True)
class PatternSet:
    """Ordered exclude and include (negated) patterns of one gitignore file."""

    exclude_patterns: tuple[GlobPattern, ...] = ()
    include_patterns: tuple[GlobPattern, ...] = ()

    @property
    def exclude_sources(self) -> list[str]:
        """The exclude patterns as written."""
        return [p.source for p in self.exclude_patterns]

    @property
    def include_sources(self) -> list[str]:
        """The include patterns as written."""
        return [p.source for p in self.include_patterns]

    def __bool__(self) -> bool:
        return bool(self.exclude_patterns or self.include_patterns)


EMPTY_PATTERN_SET = PatternSet()


def clean_line(line: str) -> str:
    """Strip a gitignore line down to its pattern.

    Leading whitespace and trailing unescaped whitespace are removed. Blank lines
    and ``#`` comments give an empty string.

    Args:
        line (str): one raw line of the file

    Returns:
        str: the pattern, or "" when the line holds none
    """
    stripped = _TRAILING_SPACES.sub("", line.rstrip("\r\n").lstrip())
    if not stripped or stripped.startswith("#"):
        return ""
    return stripped


def expand_gitignore_pattern(pattern: str) -> list[str]:
    """Expand one gitignore pattern into the glob forms matched by the resolver.

    - ``*.log`` gives ``*.log`` and ``**/*.log``;
    - ``build/`` gives ``build/``, ``**/build/``, ``build/**`` and ``**/build/**``;
    - ``/dist/`` stays anchored and also gives ``/dist/**``;
    - ``src/*.js`` gives ``src/*.js`` and ``**/src/*.js``.

    Args:
        pattern (str): a pattern without its ``!`` marker

    Returns:
        list[str]: the expanded patterns, the original first
    """
    is_dir = pattern.endswith("/")
    if pattern.startswith("/"):
        forms = [pattern]
        if is_dir:
            forms.append(f"{pattern}**")
        return forms

    forms = [pattern]
    if not pattern.startswith("**/"):
        forms.append(f"**/{pattern}")
    if is_dir:
        forms.extend(f"{form}**" for form in list(forms))
    return forms


def parse_gitignore_content(content: str, *, with_build_artifacts: bool = True) -> PatternSet:
    """Parse gitignore text into a `PatternSet`.

    Lines starting with ``!`` feed the include list, everything else the exclude
    list. ``\\!`` and ``\\#`` keep their literal meaning. Duplicates are dropped,
    the first occurrence keeps its place.

    Args:
        content (str): the gitignore text (LF or CRLF line endings)
        with_build_artifacts (bool): append `BUILD_ARTIFACT_PATTERNS` to the excludes

    Returns:
        PatternSet: the compiled patterns
    """
    excludes: dict[str, None] = {}
    includes: dict[str, None] = {}
    for raw in content.splitlines():
        line = clean_line(raw)
        if not line:
            continue
        target = excludes
        if line.startswith("!"):
            target = includes
            line = line[1:].lstrip()
            if not line:
                continue
        for form in expand_gitignore_pattern(line):
            target[form] = None

    if with_build_artifacts:
        for artifact in BUILD_ARTIFACT_PATTERNS:
            excludes[artifact] = None

    return PatternSet(
        exclude_patterns=tuple(compile_pattern(p) for p in excludes),
        include_patterns=tuple(compile_pattern(p) for p in includes),
    )


class GitignoreCompiler:
    """Parse and cache the root ``.gitignore`` of each repository."""

    def __init__(self, filename: str = GITIGNORE_FILENAME) -> None:
        self.filename = filename
        self._cache: dict[Path, PatternSet] = {}
        self._lock = threading.Lock()

    @staticmethod
    def cache_key(root: str | Path) -> Path:
        """Canonical cache key of a root directory."""
        return Path(root).expanduser().resolve()

    def parse(self, root: str | Path) -> PatternSet:
        """Return the pattern set of `root`, reading its gitignore at most once.

        Args:
            root (str | Path): the repository root

        Returns:
            PatternSet: the cached pattern set; empty when the file is missing or unreadable
        """
        key = self.cache_key(root)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        patterns = self._load(key)
        with self._lock:
            return self._cache.setdefault(key, patterns)

    def parse_content(self, content: str) -> PatternSet:
        """Parse gitignore text without touching the cache."""
        return parse_gitignore_content(content)

    def clear_cache(self) -> None:
        """Drop every cached pattern set."""
        with self._lock:
            self._cache = {}

    def cached_roots(self) -> list[Path]:
        """The roots currently held in the cache."""
        with self._lock:
            return list(self._cache)

    def _load(self, root: Path) -> PatternSet:
        path = root / self.filename
        try:
            content = self._read_gitignore(path)
            if content is None:
                return EMPTY_PATTERN_SET
            return parse_gitignore_content(content)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cannot load %s, ignoring it: %s", path, exc)
            return EMPTY_PATTERN_SET

    def _read_gitignore(self, path: Path) -> str | None:
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")


default_compiler = GitignoreCompiler()


def parse_gitignore(root: str | Path) -> PatternSet:
    """Parse the gitignore of `root` with the shared compiler."""
    return default_compiler.parse(root)


def clear_cache() -> None:
    """Clear the shared compiler cache."""
    default_compiler.clear_cache()
