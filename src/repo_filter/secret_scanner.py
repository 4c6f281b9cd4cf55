"""Sensitive path catalog and secret detectors.

Two entry points serve two different callers:

- path checks (`is_sensitive_file_path`, `should_exclude_sensitive_file_path`)
  feed the display filter;
- content checks (`scan_content_for_secrets` and its wrappers) run before file
  contents are exported. `scan_file_for_secrets` fails closed: a file that
  cannot be read is reported as suspicious.
"""

from __future__ import annotations

import math
import os
import re
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from repo_filter.config import SecretPolicy
from repo_filter.file_manipulation import basename, normalize_path
from repo_filter.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    SpanFinder = Callable[[str], Iterator[tuple[int, int]]]

SCAN_READ_ERROR_ID = "scan-read-error"
REDACTION = "[REDACTED]"
GENERIC_SECRET_MIN_LENGTH = 16
GENERIC_SECRET_MIN_ENTROPY = 3.5


class SecretMatch(BaseModel):
    """One detector that fired."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Detector identifier.")
    description: str = Field(..., description="Human readable label.")


class SecretScanResult(BaseModel):
    """Outcome of a content scan."""

    model_config = ConfigDict(frozen=True)

    is_suspicious: bool = False
    matches: list[SecretMatch] = Field(default_factory=list)
    error: str | None = None

    @property
    def match_ids(self) -> list[str]:
        """Identifiers of the detectors that fired."""
        return [m.id for m in self.matches]


def clean_scan_result() -> SecretScanResult:
    """The result of a scan that found nothing (or did not run)."""
    return SecretScanResult(is_suspicious=False, matches=[])


def read_error_scan_result(message: str) -> SecretScanResult:
    """The result of a scan whose file could not be read."""
    return SecretScanResult(
        is_suspicious=True,
        matches=[
            SecretMatch(
                id=SCAN_READ_ERROR_ID,
                description="Unable to read file while scanning for secrets",
            ),
        ],
        error=message,
    )


# ---------------------------------------------------------------- detectors


@dataclass(frozen=True)
class SecretRule:
    """A named secret detector.

    A rule is either a regular expression or a `finder` yielding the spans of
    the secret values it recognizes. When the expression defines a ``secret``
    group, only that group is reported (and redacted).
    """

    id: str
    description: str
    pattern: re.Pattern[str] | None = None
    finder: SpanFinder | None = None

    def find(self, content: str) -> Iterator[tuple[int, int]]:
        """Yield the (start, end) spans of the secrets found in `content`."""
        if self.finder is not None:
            yield from self.finder(content)
            return
        if self.pattern is None:
            return
        has_group = "secret" in self.pattern.groupindex
        for m in self.pattern.finditer(content):
            yield m.span("secret") if has_group else m.span()

    def matches(self, content: str) -> bool:
        """Whether the rule fires on `content`."""
        return next(self.find(content), None) is not None

    def to_match(self) -> SecretMatch:
        return SecretMatch(id=self.id, description=self.description)


_AWS_SECRET_ASSIGNMENT_PREFIX = re.compile(
    r"aws(?:\s|_|-)?secret(?:\s|_|-)?access(?:\s|_|-)?key\s*[:=]\s*",
    re.IGNORECASE,
)
_AWS_SECRET_VALUE = re.compile(r"[A-Za-z0-9+/=]{40}")
_VALUE_STOP = re.compile(r"[\s;,]")

_GENERIC_ASSIGNMENT = re.compile(
    r"(?<![\w.-])[\w.-]*(?:password|passwd|secret|token|key)[\w.-]*['\"]?\s*[:=]\s*"
    r"(?P<quote>['\"])(?P<secret>[^\s'\"]{16,})(?P=quote)",
    re.IGNORECASE,
)


def assigned_value_span(content: str, start: int) -> tuple[int, int] | None:
    """Locate the value assigned right after `start`.

    A quoted value ends at its closing quote; a bare value ends at the first
    whitespace, ``;`` or ``,``.

    Args:
        content (str): the scanned text
        start (int): index just past the assignment operator

    Returns:
        tuple[int, int] | None: the value span, None for an empty or unterminated value
    """
    i = start
    while i < len(content) and content[i].isspace():
        i += 1
    if i >= len(content):
        return None
    quote = content[i]
    if quote in {'"', "'"}:
        end = content.find(quote, i + 1)
        if end == -1:
            return None
        return i + 1, end
    stop = _VALUE_STOP.search(content, i)
    return i, stop.start() if stop else len(content)


def find_aws_secret_assignments(content: str) -> Iterator[tuple[int, int]]:
    """Yield AWS secret access keys assigned to an ``aws_secret_access_key``-like name."""
    for m in _AWS_SECRET_ASSIGNMENT_PREFIX.finditer(content):
        span = assigned_value_span(content, m.end())
        if span is not None and _AWS_SECRET_VALUE.fullmatch(content, span[0], span[1]):
            yield span


def shannon_entropy(value: str) -> float:
    """Shannon entropy of `value`, in bits per character."""
    if not value:
        return 0.0
    length = len(value)
    return -sum((n / length) * math.log2(n / length) for n in Counter(value).values())


def find_generic_secret_assignments(content: str) -> Iterator[tuple[int, int]]:
    """Yield high-entropy literals assigned to password, secret, token or key names."""
    for m in _GENERIC_ASSIGNMENT.finditer(content):
        value = m.group("secret")
        if len(value) >= GENERIC_SECRET_MIN_LENGTH and shannon_entropy(value) >= GENERIC_SECRET_MIN_ENTROPY:
            yield m.span("secret")


SECRET_RULES: tuple[SecretRule, ...] = (
    SecretRule(
        id="private-key-block",
        description="Private key block detected",
        pattern=re.compile(
            r"-----BEGIN (?:[A-Z ]+)?PRIVATE KEY-----(?P<secret>[\s\S]*?)(?=-----END |\Z)",
        ),
    ),
    SecretRule(
        id="github-token",
        description="GitHub token detected",
        pattern=re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"),
    ),
    SecretRule(
        id="aws-access-key-id",
        description="AWS access key id detected",
        pattern=re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"),
    ),
    SecretRule(
        id="aws-secret-assignment",
        description="AWS secret key assignment detected",
        finder=find_aws_secret_assignments,
    ),
    SecretRule(
        id="slack-token",
        description="Slack token detected",
        pattern=re.compile(r"\bxox[baprs]-[0-9A-Za-z-]{10,}\b"),
    ),
    SecretRule(
        id="stripe-secret-key",
        description="Stripe secret key detected",
        pattern=re.compile(r"\bsk_live_[0-9A-Za-z]{16,}\b"),
    ),
    SecretRule(
        id="jwt-token",
        description="JWT-like token detected",
        pattern=re.compile(r"\beyJ[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}\b"),
    ),
    SecretRule(
        id="token-assignment",
        description="Token assignment detected",
        pattern=re.compile(
            r"(?:api[_-]?key|access[_-]?token|auth[_-]?token)\s*[:=]\s*['\"](?P<secret>[^'\"\n]{8,})['\"]",
            re.IGNORECASE,
        ),
    ),
    SecretRule(
        id="credential-assignment",
        description="Credential assignment detected",
        pattern=re.compile(
            r"(?:secret|password|passwd|client[_-]?secret)\s*[:=]\s*['\"](?P<secret>[^'\"\n]{8,})['\"]",
            re.IGNORECASE,
        ),
    ),
    SecretRule(
        id="generic-secret-assignment",
        description="High-entropy credential assignment detected",
        finder=find_generic_secret_assignments,
    ),
)


# ---------------------------------------------------------- sensitive paths

SENSITIVE_FILE_NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\.env(?:\..+)?$", re.IGNORECASE),
    re.compile(r"^id_(?:rsa|dsa|ecdsa|ed25519)(?:\.pub)?$", re.IGNORECASE),
    re.compile(r"(?:^|[-_.])(?:secret|secrets|credential|credentials)(?:[-_.]|$)", re.IGNORECASE),
)
SENSITIVE_FILE_EXTENSION_PATTERN = re.compile(
    r"\.(?:pem|key|p12|pfx|jks|keystore|cer|crt|der|kdbx|asc)$",
    re.IGNORECASE,
)
SENSITIVE_PATH_SEGMENTS: tuple[str, ...] = (
    ".aws/credentials",
    ".npmrc",
    ".pypirc",
    ".docker/config.json",
)


def is_sensitive_file_path(path: object) -> bool:
    """Check a path against the catalog of sensitive locations.

    The catalog covers environment files (``.env``, ``.env.*``), SSH key names,
    names carrying a ``secret`` or ``credential`` token, key and certificate
    extensions, and well-known credential stores (``.aws/credentials``,
    ``.npmrc``, ``.pypirc``, ``.docker/config.json``).

    Args:
        path (object): the path, absolute or relative. Anything but a string or
            path-like object is not sensitive.

    Returns:
        bool: True when the path looks like it holds credentials
    """
    if not isinstance(path, str | os.PathLike):
        return False
    normalized = normalize_path(os.fspath(path)).lower()
    name = basename(normalized)

    if SENSITIVE_FILE_EXTENSION_PATTERN.search(name):
        return True
    if any(p.search(name) for p in SENSITIVE_FILE_NAME_PATTERNS):
        return True
    return any(
        normalized == segment or normalized.endswith(f"/{segment}") or f"/{segment}/" in normalized
        for segment in SENSITIVE_PATH_SEGMENTS
    )


def should_exclude_suspicious_files(config: object = None) -> bool:
    """Whether the secret detector is enabled for `config`.

    Either ``enable_secret_scanning: false`` or ``exclude_suspicious_files: false``
    disables it; anything else (including a missing config) enables it.
    """
    return SecretPolicy.coerce(config).enabled


def should_exclude_sensitive_file_path(path: object, config: object = None) -> bool:
    """Whether `path` is sensitive and the policy of `config` hides sensitive paths."""
    return should_exclude_suspicious_files(config) and is_sensitive_file_path(path)


# ------------------------------------------------------------ content scans


def scan_content_for_secrets(content: str) -> SecretScanResult:
    """Run every detector of `SECRET_RULES` over `content`.

    Args:
        content (str): the text to scan

    Returns:
        SecretScanResult: one match per detector that fired
    """
    matches = [rule.to_match() for rule in SECRET_RULES if rule.matches(content)]
    return SecretScanResult(is_suspicious=bool(matches), matches=matches)


def scan_content_for_secrets_with_policy(content: str, config: object = None) -> SecretScanResult:
    """Scan `content` unless the policy of `config` disables the detector."""
    if not should_exclude_suspicious_files(config):
        return clean_scan_result()
    return scan_content_for_secrets(content)


def scan_file_for_secrets(path: str | os.PathLike[str]) -> SecretScanResult:
    """Read a file and scan its content.

    Undecodable bytes are replaced before scanning. A file that cannot be read is
    reported as suspicious with a ``scan-read-error`` match.

    Args:
        path (str | os.PathLike[str]): the file to scan

    Returns:
        SecretScanResult: the scan result
    """
    try:
        content = Path(path).read_text(encoding="utf-8", errors="replace")
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Error scanning file for secrets: %s: %s", path, exc)
        return read_error_scan_result(str(exc))
    return scan_content_for_secrets(content)


def scan_file_for_secrets_with_policy(path: str | os.PathLike[str], config: object = None) -> SecretScanResult:
    """Scan a file unless the policy of `config` disables the detector."""
    if not should_exclude_suspicious_files(config):
        return clean_scan_result()
    return scan_file_for_secrets(path)


def secret_spans(content: str) -> list[tuple[int, int]]:
    """Spans of every detected secret value, sorted and merged."""
    spans = sorted(span for rule in SECRET_RULES for span in rule.find(content) if span[1] > span[0])
    merged: list[tuple[int, int]] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def redact_secrets(content: str, replacement: str = REDACTION) -> str:
    """Replace every detected secret value of `content` with `replacement`.

    Args:
        content (str): the text to redact
        replacement (str): the text written in place of each secret

    Returns:
        str: the redacted text
    """
    out: list[str] = []
    cursor = 0
    for start, end in secret_spans(content):
        out.append(content[cursor:start])
        out.append(replacement)
        cursor = end
    out.append(content[cursor:])
    return "".join(out)
