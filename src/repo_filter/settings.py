from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field

from repo_filter.output_construction import OutputFormat

ENV_FILE = find_dotenv(usecwd=True)
CONFIG_ENV_VAR = "REPO_FILTER_CONFIG"
LOG_FILE_ENV_VAR = "REPO_FILTER_LOG_FILE"


def env_default(name: str, env_file: str | None = None) -> str:
    """Read a default from the environment, then from the `.env` file.

    Args:
        name (str): the variable name
        env_file (str | None): the dotenv file; the one found from the working
            directory when None

    Returns:
        str: the value, "" when unset
    """
    if os.environ.get(name):
        return os.environ[name]
    path = ENV_FILE if env_file is None else env_file
    if not path:
        return ""
    return dotenv_values(path).get(name) or ""


class Settings(BaseModel):
    """Configuration settings for the repo_filter command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    command: str = Field(..., description="Subcommand to run.")
    root: Path = Field(default_factory=Path.cwd, description="Repository root.")
    paths: list[str] = Field(default_factory=list, description="Candidate paths.")
    config: str = Field(default="", description="YAML filter configuration file.")
    format: OutputFormat = Field(default=OutputFormat.TEXT, description="Report format.")
    only_included: bool = Field(default=False, description="Print only surviving paths.")
    log_file: str = Field(default="", description="Log file path.")
