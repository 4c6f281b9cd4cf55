from pathlib import Path

import pytest

from repo_filter.output_construction import OutputFormat
from repo_filter.settings import CONFIG_ENV_VAR, Settings, env_default


def test_settings_defaults() -> None:
    settings = Settings(command="check")

    assert settings.root.resolve() == Path.cwd().resolve()
    assert settings.paths == []
    assert not settings.config
    assert settings.format == OutputFormat.TEXT
    assert settings.only_included is False


def test_settings_parses_format() -> None:
    assert Settings(command="scan", format="jsonl").format == OutputFormat.JSONL


def test_env_default_prefers_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(f"{CONFIG_ENV_VAR}=from-dotenv.yaml\n", encoding="utf-8")

    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert env_default(CONFIG_ENV_VAR, str(env_file)) == "from-dotenv.yaml"

    monkeypatch.setenv(CONFIG_ENV_VAR, "from-env.yaml")
    assert env_default(CONFIG_ENV_VAR, str(env_file)) == "from-env.yaml"


def test_env_default_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)

    assert env_default(CONFIG_ENV_VAR, "") == ""
