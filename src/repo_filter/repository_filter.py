"""Two-stage filtering pipeline bound to one repository root."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from repo_filter.config import FilterConfig
from repo_filter.file_manipulation import is_binary_file, is_regular_file
from repo_filter.filter_policy import (
    FilterDecision,
    FilterReason,
    GitignoreBundle,
    PatternBundle,
    candidate_relpath,
    resolve,
)
from repo_filter.gitignore import EMPTY_PATTERN_SET, GitignoreCompiler, PatternSet, default_compiler
from repo_filter.logging import logger
from repo_filter.secret_scanner import (
    SecretScanResult,
    clean_scan_result,
    is_sensitive_file_path,
    scan_file_for_secrets_with_policy,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class RepositoryFilter:
    """Decide what of a repository may be shown, analyzed or exported.

    Every candidate first goes through the sensitive-path gate (when the secret
    policy is enabled), then through the layered include/exclude policy with the
    cached gitignore patterns of the root. Exportable files are additionally
    checked for binary content and scanned for secrets.

    Args:
        root (str | Path): the repository root
        config (object): a `FilterConfig`, a plain mapping or None for the defaults
        compiler (GitignoreCompiler | None): the gitignore cache to use; the shared
            one when None
    """

    def __init__(
        self,
        root: str | Path,
        config: object = None,
        *,
        compiler: GitignoreCompiler | None = None,
    ) -> None:
        self.root = Path(os.path.abspath(os.path.expanduser(root)))
        self.config = FilterConfig.coerce(config)
        self.compiler = compiler or default_compiler

    @property
    def pattern_set(self) -> PatternSet:
        """The gitignore patterns of the root, empty when gitignore is disabled."""
        if not self.config.gitignore_enabled:
            return EMPTY_PATTERN_SET
        return self.compiler.parse(self.root)

    @property
    def pattern_bundle(self) -> PatternBundle:
        """The gitignore patterns wrapped for the policy resolver."""
        patterns = self.pattern_set
        return GitignoreBundle(
            exclude_patterns=patterns.exclude_patterns,
            include_patterns=patterns.include_patterns,
        )

    def decide(self, path: str | os.PathLike[str], *, is_dir: bool | None = None) -> FilterDecision:
        """Decide whether `path` is hidden.

        Args:
            path (str | os.PathLike[str]): the candidate, absolute or relative to the root
            is_dir (bool | None): whether the candidate is a directory

        Returns:
            FilterDecision: the decision
        """
        if self.config.secret_policy.enabled and is_sensitive_file_path(path):
            return FilterDecision(
                excluded=True,
                reason=FilterReason.SENSITIVE_PATH,
                rel_path=self._relative(path),
            )
        return resolve(path, self.root, self.pattern_bundle, self.config, is_dir=is_dir)

    def is_excluded(self, path: str | os.PathLike[str], *, is_dir: bool | None = None) -> bool:
        """Whether `path` is hidden."""
        return self.decide(path, is_dir=is_dir).excluded

    def iter_decisions(self, paths: Iterable[str | os.PathLike[str]]) -> Iterator[tuple[str, FilterDecision]]:
        """Yield each candidate with its decision, in input order."""
        for path in paths:
            yield os.fspath(path), self.decide(path)

    def iter_included(self, paths: Iterable[str | os.PathLike[str]]) -> Iterator[str]:
        """Yield the candidates that survive the filter, in input order."""
        for path, decision in self.iter_decisions(paths):
            if decision.included:
                yield path

    def scan(self, path: str | os.PathLike[str]) -> SecretScanResult:
        """Scan one file for secrets under the configured policy.

        Args:
            path (str | os.PathLike[str]): the file, absolute or relative to the root

        Returns:
            SecretScanResult: the scan result; unreadable files are suspicious
        """
        return scan_file_for_secrets_with_policy(self._absolute(path), self.config)

    def iter_exportable(self, paths: Iterable[str | os.PathLike[str]]) -> Iterator[str]:
        """Yield the candidates whose content may be exported.

        A candidate must survive the filter, be a regular text file and have a
        clean secret scan.
        """
        for path in self.iter_included(paths):
            absolute = self._absolute(path)
            if not is_regular_file(absolute) or is_binary_file(absolute):
                logger.info("Skipping non-text file: %s", path)
                continue
            result = self.scan(absolute)
            if result.is_suspicious:
                logger.warning("Skipping suspicious file %s: %s", path, ", ".join(result.match_ids))
                continue
            yield path

    def scan_all(self, paths: Iterable[str | os.PathLike[str]]) -> Iterator[tuple[str, SecretScanResult]]:
        """Yield each file with its scan result; directories scan clean."""
        for path in paths:
            absolute = self._absolute(path)
            if absolute.is_dir():
                yield os.fspath(path), clean_scan_result()
                continue
            yield os.fspath(path), self.scan(absolute)

    def reset(self) -> None:
        """Forget every cached gitignore pattern set."""
        self.compiler.clear_cache()

    def _absolute(self, path: str | os.PathLike[str]) -> Path:
        candidate = Path(path)
        return candidate if candidate.is_absolute() else self.root / candidate

    def _relative(self, path: str | os.PathLike[str]) -> str:
        return candidate_relpath(os.fspath(path), str(self.root))
