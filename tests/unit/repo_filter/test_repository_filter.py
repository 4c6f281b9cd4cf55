from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repo_filter.filter_policy import FilterReason
from repo_filter.gitignore import GitignoreCompiler
from repo_filter.repository_filter import RepositoryFilter
from repo_filter.secret_scanner import SCAN_READ_ERROR_ID

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture

FAKE_GITHUB_TOKEN = "_".join(["ghp", "B" * 24])


def make_repo(root: Path) -> Path:
    files = {
        ".gitignore": "*.log\n!keep.log\nbuild/\n",
        "src/app.py": "print('ok')\n",
        "src/settings.py": f'TOKEN = "{FAKE_GITHUB_TOKEN}"\n',
        "debug.log": "noise\n",
        "keep.log": "important\n",
        "build/out.js": "console.log(1)\n",
        "dist/bundle.js": "console.log(2)\n",
        ".env": "PASSWORD=hunter2\n",
    }
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    (root / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00")
    return root


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    return make_repo(tmp_path)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("path", "excluded", "reason"),
    [
        (".env", True, FilterReason.SENSITIVE_PATH),
        ("debug.log", True, FilterReason.GITIGNORE_EXCLUDE),
        ("keep.log", False, FilterReason.GITIGNORE_INCLUDE),
        ("build", True, FilterReason.GITIGNORE_EXCLUDE),
        ("build/out.js", True, FilterReason.GITIGNORE_EXCLUDE),
        ("dist/bundle.js", True, FilterReason.GITIGNORE_EXCLUDE),
        ("src/app.py", False, None),
    ],
)
def test_decide(repo: Path, path: str, excluded: bool, reason: FilterReason | None) -> None:
    repo_filter = RepositoryFilter(repo, {}, compiler=GitignoreCompiler())

    decision = repo_filter.decide(path)

    assert decision.excluded is excluded
    assert decision.reason == reason
    assert decision.rel_path == path


@pytest.mark.unit
def test_decide_absolute_paths(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, compiler=GitignoreCompiler())

    assert repo_filter.is_excluded(repo / "debug.log")
    assert not repo_filter.is_excluded(str(repo / "src" / "app.py"))
    assert repo_filter.decide(repo / ".env").rel_path == ".env"


@pytest.mark.unit
def test_iter_included_keeps_input_order(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, {}, compiler=GitignoreCompiler())
    candidates = ["src/app.py", "debug.log", ".env", "keep.log", "build/out.js", "src/settings.py"]

    assert list(repo_filter.iter_included(candidates)) == ["src/app.py", "keep.log", "src/settings.py"]


@pytest.mark.unit
def test_disabled_secret_policy_shows_sensitive_paths(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, {"enable_secret_scanning": False}, compiler=GitignoreCompiler())

    assert not repo_filter.is_excluded(".env")


@pytest.mark.unit
def test_disabled_gitignore_is_never_parsed(repo: Path, mocker: MockerFixture) -> None:
    compiler = GitignoreCompiler()
    spy = mocker.spy(compiler, "parse")
    repo_filter = RepositoryFilter(repo, {"use_gitignore": False}, compiler=compiler)

    assert not repo_filter.is_excluded("debug.log")
    assert spy.call_count == 0


@pytest.mark.unit
def test_custom_excludes_and_extensions(repo: Path) -> None:
    config = {"exclude_patterns": ["src/settings.py"], "include_extensions": [".py"]}
    repo_filter = RepositoryFilter(repo, config, compiler=GitignoreCompiler())

    assert repo_filter.decide("src/settings.py").reason == FilterReason.CUSTOM_EXCLUDE
    assert repo_filter.decide("build/out.js").reason == FilterReason.EXTENSION
    assert not repo_filter.is_excluded("src/app.py")
    assert not repo_filter.is_excluded("src", is_dir=True)


@pytest.mark.unit
def test_scan(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, compiler=GitignoreCompiler())

    assert not repo_filter.scan("src/app.py").is_suspicious
    assert repo_filter.scan("src/settings.py").match_ids == ["github-token"]
    assert repo_filter.scan("missing.py").match_ids == [SCAN_READ_ERROR_ID]


@pytest.mark.unit
def test_scan_with_disabled_policy(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, {"exclude_suspicious_files": False}, compiler=GitignoreCompiler())

    assert not repo_filter.scan("src/settings.py").is_suspicious


@pytest.mark.unit
def test_scan_all_reports_directories_clean(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, compiler=GitignoreCompiler())

    results = dict(repo_filter.scan_all(["src", "src/settings.py"]))

    assert not results["src"].is_suspicious
    assert results["src/settings.py"].is_suspicious


@pytest.mark.unit
def test_iter_exportable_drops_binary_and_suspicious_files(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, {}, compiler=GitignoreCompiler())
    candidates = ["src/app.py", "src/settings.py", "logo.png", "debug.log", "src", "missing.py"]

    assert list(repo_filter.iter_exportable(candidates)) == ["src/app.py"]


@pytest.mark.unit
def test_reset_clears_gitignore_cache(repo: Path) -> None:
    compiler = GitignoreCompiler()
    repo_filter = RepositoryFilter(repo, compiler=compiler)
    repo_filter.decide("debug.log")

    assert compiler.cached_roots() == [repo.resolve()]
    repo_filter.reset()
    assert compiler.cached_roots() == []


@pytest.mark.unit
def test_pattern_set_reflects_gitignore(repo: Path) -> None:
    repo_filter = RepositoryFilter(repo, compiler=GitignoreCompiler())

    assert "*.log" in repo_filter.pattern_set.exclude_sources
    assert repo_filter.pattern_set.include_sources == ["keep.log", "**/keep.log"]


@pytest.mark.unit
def test_hostile_gitignore_line_keeps_decisions_flowing(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("*.log\n" + "{a,a}" * 1500 + "\n", encoding="utf-8")
    repo_filter = RepositoryFilter(tmp_path, {}, compiler=GitignoreCompiler())

    assert repo_filter.decide("debug.log").reason == FilterReason.GITIGNORE_EXCLUDE
    assert not repo_filter.is_excluded("src/app.py")
