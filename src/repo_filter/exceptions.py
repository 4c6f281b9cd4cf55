from dataclasses import dataclass


@dataclass(frozen=True)
class RepoFilterError(Exception):
    """Base exception for errors in the repo_filter module."""


@dataclass(frozen=True)
class PatternSyntaxError(RepoFilterError):
    """Raised when a glob pattern cannot be compiled."""

    pattern: str
    message: str = "The glob pattern is malformed."


@dataclass(frozen=True)
class ConfigLoadError(RepoFilterError):
    """Raised when a filter configuration document cannot be loaded."""

    source: str
    message: str = "The configuration document could not be parsed."
