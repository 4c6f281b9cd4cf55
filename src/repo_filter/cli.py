"""
repo_filter: decide which repository files may be shown, analyzed or exported.

Overview
--------
Candidate paths go through two stages:

1) **Path policy**: sensitive locations (``.env``, SSH keys, credential
   stores...) are hidden first, then custom exclude globs, the extension
   allow-list and the root ``.gitignore`` (with ``!`` negations) decide.

2) **Content scan**: files about to be exported are scanned for credentials
   (cloud keys, platform tokens, private keys, high-entropy assignments). A file
   that cannot be read is reported as suspicious.

The file tree is not walked here: pass candidate paths as arguments or one per
line on stdin (e.g. from ``git ls-files``).

Usage
-----
Run `python -m repo_filter.cli --help` for full options. Common examples:
    - Show the decision for every tracked file:
        git ls-files | uv run python -m repo_filter.cli check .

    - Keep only the files that survive the filter, with a custom configuration:
        git ls-files | uv run python -m repo_filter.cli check . --config filter.yaml --only-included

    - Scan files for secrets (exit code 1 when something is found):
        uv run python -m repo_filter.cli scan src/settings.py deploy/.env --format jsonl

    - Print the compiled gitignore patterns:
        uv run python -m repo_filter.cli patterns .
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from repo_filter import __version__
from repo_filter.config import FilterConfig, default_filter_config, load_filter_config
from repo_filter.exceptions import ConfigLoadError
from repo_filter.file_manipulation import read_candidate_lines
from repo_filter.logging import logger, setup_logging
from repo_filter.output_construction import (
    OutputFormat,
    build_decision_report,
    build_pattern_listing,
    build_scan_report,
)
from repo_filter.repository_filter import RepositoryFilter
from repo_filter.settings import CONFIG_ENV_VAR, LOG_FILE_ENV_VAR, Settings, env_default

if TYPE_CHECKING:
    from collections.abc import Sequence

EXIT_OK = 0
EXIT_SUSPICIOUS = 1
EXIT_CONFIG_ERROR = 2


def _add_config_options(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        type=str,
        default=env_default(CONFIG_ENV_VAR),
        help=f"YAML filter configuration (default: ${CONFIG_ENV_VAR}, else built-in defaults).",
    )
    p.add_argument(
        "--format",
        type=str,
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.TEXT.value,
        help="Report format.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser.

    Returns:
        argparse.ArgumentParser: Configured parser.
    """
    p = argparse.ArgumentParser(
        prog="repo-filter",
        description="Filter repository paths and scan files for secrets.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--log-file",
        type=str,
        default=env_default(LOG_FILE_ENV_VAR),
        help=f"Log file path (default: ${LOG_FILE_ENV_VAR}, else stderr).",
    )
    sub = p.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Decide whether each candidate path is hidden.")
    check.add_argument("root", type=str, help="Repository root.")
    check.add_argument("paths", nargs="*", help="Candidate paths (default: read from stdin).")
    _add_config_options(check)
    check.add_argument(
        "--only-included",
        action="store_true",
        help="Print only the paths that survive the filter.",
    )

    select = sub.add_parser("select", help="Print the exportable files: included, text and secret-free.")
    select.add_argument("root", type=str, help="Repository root.")
    select.add_argument("paths", nargs="*", help="Candidate paths (default: read from stdin).")
    _add_config_options(select)

    scan = sub.add_parser("scan", help="Scan files for secrets; exit code 1 if any is suspicious.")
    scan.add_argument("paths", nargs="+", help="Files to scan.")
    scan.add_argument("--root", type=str, default=".", help="Root for relative paths.")
    _add_config_options(scan)

    patterns = sub.add_parser("patterns", help="Print the compiled gitignore patterns of a root.")
    patterns.add_argument("root", type=str, help="Repository root.")

    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse CLI arguments into settings.

    Args:
        argv (Sequence[str] | None): Optional CLI args.

    Returns:
        Settings: Parsed settings.
    """
    args = build_parser().parse_args(argv)
    return Settings(**vars(args))


def load_config(settings: Settings) -> FilterConfig:
    """Load the configuration named by the settings, or the built-in defaults.

    Raises:
        ConfigLoadError: if the configuration file cannot be loaded.
    """
    if settings.config:
        return load_filter_config(settings.config)
    return default_filter_config()


def candidate_paths(settings: Settings) -> list[str]:
    """Candidate paths from the command line, else from stdin."""
    if settings.paths:
        return list(settings.paths)
    return read_candidate_lines(sys.stdin)


def main(argv: Sequence[str] | None = None) -> int:
    """Run a subcommand; return 0 on success, 1 if a scan is suspicious, 2 on a bad configuration."""
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    try:
        config = load_config(settings) if settings.command != "patterns" else default_filter_config()
    except ConfigLoadError as exc:
        logger.error("Cannot load configuration %s: %s", exc.source, exc.message)
        return EXIT_CONFIG_ERROR

    repo_filter = RepositoryFilter(settings.root, config)

    if settings.command == "patterns":
        sys.stdout.write(build_pattern_listing(repo_filter.compiler.parse(repo_filter.root)))
        return EXIT_OK

    if settings.command == "scan":
        results = list(repo_filter.scan_all(settings.paths))
        sys.stdout.write(build_scan_report(results, fmt=settings.format))
        suspicious = [path for path, result in results if result.is_suspicious]
        logger.info("Scanned %d files, %d suspicious", len(results), len(suspicious))
        return EXIT_SUSPICIOUS if suspicious else EXIT_OK

    paths = candidate_paths(settings)
    if settings.command == "select":
        for path in repo_filter.iter_exportable(paths):
            sys.stdout.write(path + "\n")
        return EXIT_OK

    decisions = list(repo_filter.iter_decisions(paths))
    sys.stdout.write(
        build_decision_report(decisions, fmt=settings.format, only_included=settings.only_included),
    )
    excluded = sum(1 for _, decision in decisions if decision.excluded)
    logger.info("Checked %d paths, %d excluded", len(decisions), excluded)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
