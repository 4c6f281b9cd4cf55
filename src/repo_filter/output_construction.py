from __future__ import annotations

import io
import json
from enum import StrEnum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from repo_filter.filter_policy import FilterDecision
    from repo_filter.gitignore import PatternSet
    from repo_filter.secret_scanner import SecretScanResult


class OutputFormat(StrEnum):
    """Report formats of the command line."""

    JSONL = auto()
    TEXT = auto()


def decision_record(path: str, decision: FilterDecision) -> dict[str, object]:
    """Flatten one filter decision into a JSON-ready record."""
    return {
        "path": path,
        "rel_path": decision.rel_path,
        "excluded": decision.excluded,
        "reason": str(decision.reason) if decision.reason else None,
    }


def scan_record(path: str, result: SecretScanResult) -> dict[str, object]:
    """Flatten one scan result into a JSON-ready record."""
    record: dict[str, object] = {
        "path": path,
        "is_suspicious": result.is_suspicious,
        "matches": [m.model_dump() for m in result.matches],
    }
    if result.error is not None:
        record["error"] = result.error
    return record


def build_decision_report(
    decisions: Iterable[tuple[str, FilterDecision]],
    *,
    fmt: OutputFormat,
    only_included: bool = False,
) -> str:
    """Render filter decisions.

    Args:
        decisions (Iterable[tuple[str, FilterDecision]]): candidates with their decisions
        fmt (OutputFormat): JSON lines, or one ``STATUS<TAB>PATH<TAB>REASON`` line per candidate
        only_included (bool): print only the paths that survive the filter

    Returns:
        str: the report
    """
    buf = io.StringIO()
    for path, decision in decisions:
        if only_included:
            if decision.included:
                buf.write(path + "\n")
            continue
        if fmt == OutputFormat.JSONL:
            buf.write(json.dumps(decision_record(path, decision), ensure_ascii=False) + "\n")
        else:
            status = "exclude" if decision.excluded else "include"
            reason = str(decision.reason) if decision.reason else "-"
            buf.write(f"{status}\t{path}\t{reason}\n")
    return buf.getvalue()


def build_scan_report(results: Iterable[tuple[str, SecretScanResult]], *, fmt: OutputFormat) -> str:
    """Render secret scan results.

    Args:
        results (Iterable[tuple[str, SecretScanResult]]): files with their scan results
        fmt (OutputFormat): JSON lines, or one ``STATUS<TAB>PATH<TAB>IDS`` line per file

    Returns:
        str: the report
    """
    buf = io.StringIO()
    for path, result in results:
        if fmt == OutputFormat.JSONL:
            buf.write(json.dumps(scan_record(path, result), ensure_ascii=False) + "\n")
            continue
        status = "suspicious" if result.is_suspicious else "clean"
        ids = ",".join(result.match_ids) or "-"
        buf.write(f"{status}\t{path}\t{ids}\n")
    return buf.getvalue()


def build_pattern_listing(patterns: PatternSet) -> str:
    """Render the compiled gitignore patterns, invalid ones flagged."""
    buf = io.StringIO()
    for title, items in (("exclude", patterns.exclude_patterns), ("include", patterns.include_patterns)):
        buf.write(f"## {title} ({len(items)})\n")
        for pattern in items:
            suffix = "" if pattern.valid else f"\t# invalid: {pattern.error}"
            buf.write(f"{pattern.source}{suffix}\n")
    return buf.getvalue()
