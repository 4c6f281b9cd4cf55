from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

LOGGER_NAME = "repo_filter"

_LOGGING_CONFIGURED = False


def attach_log_file(filename: str | Path) -> logging.Handler:
    """Also write the repo_filter records to `filename`.

    Attaching the same file twice reuses the existing handler.

    Args:
        filename (str | Path): the log file, created if missing

    Returns:
        logging.Handler: the handler writing to the file
    """
    target = os.path.abspath(os.fspath(filename))
    log = logging.getLogger(LOGGER_NAME)
    for handler in log.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return handler
    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    log.addHandler(handler)
    return handler


def setup_logging(filename: str | Path | None = None) -> structlog.BoundLogger:
    """Set up JSON logging for filter decisions, gitignore loading and secret scans.

    Records of the ``repo_filter`` logger always go to stderr so they never mix
    with the reports printed on stdout. The first call configures structlog;
    any call with `filename` (the CLI ``--log-file``) adds that file as a second
    destination.

    Args:
        filename: Optional path to a log file written in addition to stderr.

    Returns:
        The structlog logger of the repo_filter package.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        stderr = logging.StreamHandler(sys.stderr)
        stderr.setFormatter(logging.Formatter("%(message)s"))
        log = logging.getLogger(LOGGER_NAME)
        log.setLevel(logging.INFO)
        log.addHandler(stderr)
        log.propagate = False

        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True

    if filename:
        attach_log_file(filename)
    return structlog.get_logger(LOGGER_NAME)


logger = setup_logging()
