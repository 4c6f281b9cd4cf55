from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from repo_filter.exceptions import ConfigLoadError
from repo_filter.file_manipulation import normalize_globs

DEFAULT_CONFIG_YAML = """\
# Patterns hidden from the tree and from analysis.
use_custom_excludes: true
exclude_patterns:
  - "{.git,.hg,.svn,node_modules,__pycache__,.venv,venv,.mypy_cache,.ruff_cache,.pytest_cache,.ipynb_checkpoints,.idea,.vscode}"
  - "**/{.git,.hg,.svn,node_modules,__pycache__,.venv,venv,.mypy_cache,.ruff_cache,.pytest_cache,.ipynb_checkpoints,.idea,.vscode}/**"
  - ".DS_Store"
# Only files with these extensions are shown (empty list shows everything).
use_custom_includes: true
include_extensions: []
use_gitignore: true
enable_secret_scanning: true
exclude_suspicious_files: true
"""


def resolve_flag(value: object) -> bool:
    """Resolve a policy toggle: anything but the literal boolean False enables it.

    Args:
        value (object): the raw toggle value from the configuration document

    Returns:
        bool: False only when `value` is False
    """
    return value is not False


class SecretPolicy(BaseModel):
    """Toggles of the secret detector; both must be enabled for filtering to apply."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    enable_secret_scanning: Any = Field(default=None, description="Scan content for secrets.")
    exclude_suspicious_files: Any = Field(default=None, description="Hide sensitive files.")

    @property
    def secret_scanning_enabled(self) -> bool:
        """Whether secret scanning is enabled."""
        return resolve_flag(self.enable_secret_scanning)

    @property
    def suspicious_files_excluded(self) -> bool:
        """Whether suspicious files are excluded."""
        return resolve_flag(self.exclude_suspicious_files)

    @property
    def enabled(self) -> bool:
        """Whether the secret detector filters anything at all."""
        return self.secret_scanning_enabled and self.suspicious_files_excluded

    @classmethod
    def coerce(cls, config: object) -> SecretPolicy:
        """Build a policy from a config model, a plain mapping or None.

        Args:
            config (object): a `SecretPolicy`, a `FilterConfig`, a mapping or None

        Returns:
            SecretPolicy: the policy; unknown shapes yield the default (enabled) policy
        """
        if isinstance(config, SecretPolicy):
            return config
        if isinstance(config, FilterConfig):
            return config.secret_policy
        if isinstance(config, Mapping):
            return cls(
                enable_secret_scanning=config.get("enable_secret_scanning"),
                exclude_suspicious_files=config.get("exclude_suspicious_files"),
            )
        return cls()


class FilterConfig(BaseModel):
    """User-editable filtering configuration.

    Toggles keep their raw value; `resolve_flag` decides whether they are enabled,
    so an absent key (None) or any value other than False means enabled. Keys the
    filter does not know about are kept untouched.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    use_custom_excludes: Any = Field(default=None, description="Apply exclude_patterns.")
    use_custom_includes: Any = Field(default=None, description="Apply include_extensions.")
    use_gitignore: Any = Field(default=None, description="Apply the root .gitignore.")
    exclude_patterns: list[str] = Field(default_factory=list, description="Custom exclude globs.")
    include_extensions: list[str] = Field(
        default_factory=list,
        description="Dotted extension allow-list (case-insensitive).",
    )
    enable_secret_scanning: Any = Field(default=None, description="Scan content for secrets.")
    exclude_suspicious_files: Any = Field(default=None, description="Hide sensitive files.")

    @field_validator("exclude_patterns", mode="before")
    @classmethod
    def _parse_exclude_patterns(cls, value: object) -> list[str]:
        if not isinstance(value, list | tuple):
            return []
        return normalize_globs(value)

    @field_validator("include_extensions", mode="before")
    @classmethod
    def _parse_include_extensions(cls, value: object) -> list[str]:
        if not isinstance(value, list | tuple):
            return []
        out: list[str] = []
        for ext in normalize_globs(value):
            lowered = ext.lower()
            out.append(lowered if lowered.startswith(".") else f".{lowered}")
        return out

    @property
    def custom_excludes_enabled(self) -> bool:
        """Whether custom exclude patterns apply."""
        return resolve_flag(self.use_custom_excludes)

    @property
    def custom_includes_enabled(self) -> bool:
        """Whether the extension allow-list applies."""
        return resolve_flag(self.use_custom_includes)

    @property
    def gitignore_enabled(self) -> bool:
        """Whether gitignore rules apply."""
        return resolve_flag(self.use_gitignore)

    @property
    def active_exclude_patterns(self) -> list[str]:
        """Custom exclude patterns, empty when custom excludes are disabled."""
        return list(self.exclude_patterns) if self.custom_excludes_enabled else []

    @property
    def secret_policy(self) -> SecretPolicy:
        """The secret detector toggles of this configuration."""
        return SecretPolicy(
            enable_secret_scanning=self.enable_secret_scanning,
            exclude_suspicious_files=self.exclude_suspicious_files,
        )

    @classmethod
    def coerce(cls, config: object) -> FilterConfig:
        """Build a configuration from a model, a plain mapping or None.

        Args:
            config (object): a `FilterConfig`, a `SecretPolicy`, a mapping or None

        Raises:
            TypeError: if `config` has any other type.

        Returns:
            FilterConfig: the configuration
        """
        if isinstance(config, FilterConfig):
            return config
        if config is None:
            return cls()
        if isinstance(config, SecretPolicy):
            return cls(**config.model_dump())
        if isinstance(config, Mapping):
            return cls.model_validate(dict(config))
        msg = f"Unsupported configuration type: {type(config).__name__}"
        raise TypeError(msg)


def parse_filter_config(text: str, *, source: str = "<string>") -> FilterConfig:
    """Parse a YAML configuration document.

    Args:
        text (str): the YAML document
        source (str): a label for error messages (usually the file path)

    Raises:
        ConfigLoadError: if the document is not valid YAML or not a mapping.

    Returns:
        FilterConfig: the parsed configuration; an empty document gives the defaults
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(source=source, message=f"Invalid YAML: {exc}") from exc
    if data is None:
        return FilterConfig()
    if not isinstance(data, dict):
        raise ConfigLoadError(source=source, message="Configuration document must deserialize to a mapping")
    try:
        return FilterConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigLoadError(source=source, message=str(exc)) from exc


def load_filter_config(path: str | Path) -> FilterConfig:
    """Load a YAML configuration file.

    Args:
        path (str | Path): the configuration file

    Raises:
        ConfigLoadError: if the file cannot be read or parsed.

    Returns:
        FilterConfig: the parsed configuration
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(source=str(config_path), message=f"Cannot read configuration: {exc}") from exc
    return parse_filter_config(text, source=str(config_path))


def default_filter_config() -> FilterConfig:
    """Return the configuration used when the user has not provided one."""
    return parse_filter_config(DEFAULT_CONFIG_YAML, source="<default>")
