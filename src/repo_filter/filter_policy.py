"""Layered include/exclude policy for candidate paths.

Three layers are combined for every candidate:

1. the extension allow-list (``include_extensions``), absolute when it applies;
2. the custom exclude patterns of the configuration;
3. the gitignore layer, where a negated (include) pattern rescues a path from
   a gitignore exclude but never from a custom exclude.

This is a display filter: bad input and matcher failures resolve to "not
excluded".
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from repo_filter.config import FilterConfig
from repo_filter.file_manipulation import basename, normalize_globs, normalize_path, relpath
from repo_filter.gitignore import PatternSet
from repo_filter.glob_matcher import GlobPattern, match_any
from repo_filter.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

Pattern = str | GlobPattern


class FilterReason(StrEnum):
    """Why a candidate was excluded (or explicitly kept)."""

    SENSITIVE_PATH = "sensitive-path"
    EXTENSION = "extension"
    CUSTOM_EXCLUDE = "custom-exclude"
    GITIGNORE_INCLUDE = "gitignore-include"
    GITIGNORE_EXCLUDE = "gitignore-exclude"
    ERROR = "error"


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of the policy for one candidate.

    Attributes:
        excluded: True when the candidate must be hidden.
        reason: The layer that decided, None when no layer matched.
        rel_path: The root-relative path that was matched, None on invalid input.
    """

    excluded: bool
    reason: FilterReason | None = None
    rel_path: str | None = None

    @property
    def included(self) -> bool:
        """Whether the candidate survives the filter."""
        return not self.excluded


@dataclass(frozen=True)
class PlainPatterns:
    """A flat exclude list merging custom and gitignore excludes.

    Entries that also appear in the active custom excludes belong to the custom
    layer; the remaining ones form the gitignore exclude layer.
    """

    patterns: tuple[Pattern, ...] = ()


@dataclass(frozen=True)
class GitignoreBundle:
    """Gitignore excludes and negated includes, with an optional extension allow-list."""

    exclude_patterns: tuple[Pattern, ...] = ()
    include_patterns: tuple[Pattern, ...] = ()
    include_extensions: tuple[str, ...] = ()


PatternBundle = PlainPatterns | GitignoreBundle


def _pattern_tuple(value: object) -> tuple[Pattern, ...]:
    if isinstance(value, str) or not isinstance(value, list | tuple):
        return ()
    return tuple(p for p in value if isinstance(p, GlobPattern) or (isinstance(p, str) and p.strip()))


def _first_key(mapping: Mapping[str, object], *keys: str) -> object:
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None


def as_pattern_bundle(patterns: object) -> PatternBundle:
    """Coerce the accepted pattern shapes into a `PatternBundle`.

    Accepted: a bundle, None, a `PatternSet`, a list or tuple of patterns, or a
    mapping with ``exclude_patterns`` / ``include_patterns`` /
    ``include_extensions`` keys (camelCase spellings are accepted too).

    Args:
        patterns (object): the pattern collection

    Returns:
        PatternBundle: the bundle; unknown shapes give an empty flat list
    """
    if isinstance(patterns, PlainPatterns | GitignoreBundle):
        return patterns
    if isinstance(patterns, PatternSet):
        return GitignoreBundle(
            exclude_patterns=patterns.exclude_patterns,
            include_patterns=patterns.include_patterns,
        )
    if isinstance(patterns, Mapping):
        extensions = _first_key(patterns, "include_extensions", "includeExtensions")
        return GitignoreBundle(
            exclude_patterns=_pattern_tuple(_first_key(patterns, "exclude_patterns", "excludePatterns")),
            include_patterns=_pattern_tuple(_first_key(patterns, "include_patterns", "includePatterns")),
            include_extensions=tuple(normalize_globs(extensions)) if isinstance(extensions, list | tuple) else (),
        )
    return PlainPatterns(_pattern_tuple(patterns))


def gitignore_layers(
    bundle: PatternBundle,
    custom_excludes: Sequence[str],
) -> tuple[tuple[Pattern, ...], tuple[Pattern, ...]]:
    """Split a bundle into its gitignore (excludes, includes) layers.

    Args:
        bundle (PatternBundle): the pattern bundle
        custom_excludes (Sequence[str]): the active custom exclude patterns

    Returns:
        tuple[tuple[Pattern, ...], tuple[Pattern, ...]]: gitignore excludes and includes
    """
    match bundle:
        case PlainPatterns(patterns=patterns):
            custom = set(custom_excludes)
            return tuple(p for p in patterns if not (isinstance(p, str) and p in custom)), ()
        case GitignoreBundle(exclude_patterns=excludes, include_patterns=includes):
            return excludes, includes


def bundle_extensions(bundle: PatternBundle) -> tuple[str, ...]:
    """The extension allow-list carried by a bundle, if any."""
    match bundle:
        case PlainPatterns():
            return ()
        case GitignoreBundle(include_extensions=extensions):
            return extensions


def _normalize_extensions(extensions: Iterable[str]) -> set[str]:
    out: set[str] = set()
    for ext in extensions:
        lowered = ext.strip().lower()
        if lowered:
            out.add(lowered if lowered.startswith(".") else f".{lowered}")
    return out


def candidate_relpath(path: str, root: str | None) -> str:
    """Root-relative form of a candidate path, with forward slashes.

    A relative candidate under an absolute root is taken as already root-relative.

    Args:
        path (str): the candidate
        root (str | None): the repository root

    Returns:
        str: the path used for matching
    """
    if root and os.path.isabs(root) and not os.path.isabs(path):
        return normalize_path(path)
    return relpath(path, root)


def _is_directory(path: str, root: str | None, is_dir: bool | None) -> bool:
    if is_dir is not None:
        return is_dir
    if path.endswith(("/", "\\")):
        return True
    on_disk = path
    if root and os.path.isabs(root) and not os.path.isabs(path):
        on_disk = os.path.join(root, path)
    return os.path.isdir(on_disk)


def excluded_by_extension(name: str, extensions: Iterable[str]) -> bool:
    """Check a file name against a non-empty extension allow-list.

    Names without an extension (including dotfiles like ``.env``) always pass.

    Args:
        name (str): the file name
        extensions (Iterable[str]): allowed dotted extensions, case-insensitive

    Returns:
        bool: True when the name has an extension outside the list
    """
    allowed = _normalize_extensions(extensions)
    ext = os.path.splitext(name)[1].lower()
    if not allowed or not ext:
        return False
    return ext not in allowed


def resolve(
    item_path: object,
    root_path: object,
    patterns: object = None,
    config: object = None,
    *,
    is_dir: bool | None = None,
) -> FilterDecision:
    """Decide whether a candidate path is hidden by the layered policy.

    Args:
        item_path (object): the candidate, absolute or relative to `root_path`
        root_path (object): the repository root
        patterns (object): a `PatternBundle` or any shape `as_pattern_bundle` accepts
        config (object): a `FilterConfig`, a plain mapping or None
        is_dir (bool | None): whether the candidate is a directory; guessed from a
            trailing separator or the file system when None

    Returns:
        FilterDecision: the decision; invalid input and internal errors give a
            "not excluded" decision with reason `FilterReason.ERROR`
    """
    if not isinstance(item_path, str | os.PathLike):
        logger.warning("Ignoring invalid candidate path: %r", item_path)
        return FilterDecision(excluded=False, reason=FilterReason.ERROR)

    rel: str | None = None
    try:
        raw = os.fspath(item_path)
        root = os.fspath(root_path) if isinstance(root_path, str | os.PathLike) else None
        cfg = FilterConfig.coerce(config)
        bundle = as_pattern_bundle(patterns)
        rel = candidate_relpath(raw, root)
        directory = _is_directory(raw, root, is_dir)

        if cfg.custom_includes_enabled and not directory:
            allow_list = cfg.include_extensions or bundle_extensions(bundle)
            if excluded_by_extension(basename(raw), allow_list):
                return FilterDecision(excluded=True, reason=FilterReason.EXTENSION, rel_path=rel)

        custom = cfg.active_exclude_patterns
        if custom and match_any(rel, custom, is_dir=directory):
            return FilterDecision(excluded=True, reason=FilterReason.CUSTOM_EXCLUDE, rel_path=rel)

        if cfg.gitignore_enabled:
            excludes, includes = gitignore_layers(bundle, custom)
            if includes and match_any(rel, includes, is_dir=directory):
                return FilterDecision(excluded=False, reason=FilterReason.GITIGNORE_INCLUDE, rel_path=rel)
            if excludes and match_any(rel, excludes, is_dir=directory):
                return FilterDecision(excluded=True, reason=FilterReason.GITIGNORE_EXCLUDE, rel_path=rel)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Filter resolution failed for %s: %s", item_path, exc)
        return FilterDecision(excluded=False, reason=FilterReason.ERROR, rel_path=rel)

    return FilterDecision(excluded=False, rel_path=rel)


def should_exclude(
    item_path: object,
    root_path: object,
    patterns: object = None,
    config: object = None,
    *,
    is_dir: bool | None = None,
) -> bool:
    """Return True when the candidate must be hidden; see `resolve`."""
    return resolve(item_path, root_path, patterns, config, is_dir=is_dir).excluded
