from __future__ import annotations

import os
import stat
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

BINARY_SNIFF_BYTES = 4096
CONTROL_CHAR_RATIO = 0.1
_TEXT_CONTROL_BYTES = frozenset({9, 10, 13})


def normalize_path(path: str) -> str:
    """Convert every backslash of `path` to a forward slash.

    Args:
        path (str): the path to normalize

    Returns:
        str: the path with POSIX separators
    """
    return path.replace("\\", "/")


def relpath(path: str | os.PathLike[str], root: str | os.PathLike[str] | None) -> str:
    """Send the relative path of path from root.

    Paths outside `root` are expressed with `..` segments. When `root` is empty the
    normalized `path` is returned unchanged.

    Args:
        path (str | os.PathLike[str]): the path to "relativise"
        root (str | os.PathLike[str] | None): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If no relative path exists (e.g. different drives), returns the original path.
    """
    raw = os.fspath(path)
    if not root:
        return normalize_path(raw)
    try:
        return normalize_path(os.path.relpath(raw, os.fspath(root)))
    except ValueError:
        return normalize_path(raw)


def basename(path: str) -> str:
    """Return the final segment of a slash- or backslash-separated path."""
    return normalize_path(path).rstrip("/").rsplit("/", 1)[-1]


def normalize_globs(globs: Iterable[object]) -> list[str]:
    """Normalize a sequence of path glob patterns.

    Non-string entries and blank patterns are dropped, surrounding whitespace is
    stripped.

    Args:
        globs (Iterable[object]): the glob patterns to normalize

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        if not isinstance(g, str):
            continue
        g2 = g.strip()
        if not g2:
            continue
        out.append(g2)
    return out


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def is_binary_content(chunk: bytes) -> bool:
    """Classify a leading chunk of file content as binary.

    A NUL byte is a clear sign of binary content; otherwise the chunk is binary
    when more than 10% of its bytes are control characters other than tab,
    newline and carriage return. An empty chunk is text.

    Args:
        chunk (bytes): the leading bytes of a file

    Returns:
        bool: True if the chunk looks binary
    """
    if not chunk:
        return False
    if b"\x00" in chunk:
        return True
    control = sum(1 for byte in chunk if byte < 32 and byte not in _TEXT_CONTROL_BYTES)  # noqa: PLR2004
    return control / len(chunk) > CONTROL_CHAR_RATIO


def is_binary_file(path: Path, nbytes: int = BINARY_SNIFF_BYTES) -> bool:
    """Check whether `path` holds binary content.

    Unreadable files are reported as binary so callers skip them.

    Args:
        path (Path): path to test.
        nbytes (int, optional): number of bytes to sniff. Defaults to 4096.

    Returns:
        bool: True if the file is binary or cannot be read, False otherwise.
    """
    try:
        with path.open("rb") as f:
            chunk = f.read(nbytes)
    except OSError:
        return True
    return is_binary_content(chunk)


def read_candidate_lines(lines: Iterable[str]) -> list[str]:
    """Collect candidate paths from a line stream, skipping blank lines.

    Args:
        lines (Iterable[str]): raw lines (e.g. from stdin or `git ls-files`)

    Returns:
        list[str]: the candidate paths with line endings removed
    """
    out: list[str] = []
    for line in lines:
        candidate = line.rstrip("\r\n")
        if candidate.strip():
            out.append(candidate)
    return out

