from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from repo_filter.logging import LOGGER_NAME, attach_log_file, logger, setup_logging

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.unit
def test_log_file_receives_json_records(tmp_path: Path) -> None:
    log_file = tmp_path / "filter.log"
    handler = attach_log_file(log_file)
    try:
        assert attach_log_file(str(log_file)) is handler

        logger.warning("Cannot read %s, ignoring it: %s", ".gitignore", "denied")
        handler.flush()

        record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert record["event"] == "Cannot read .gitignore, ignoring it: denied"
        assert record["level"] == "warning"
        assert "timestamp" in record
    finally:
        logging.getLogger(LOGGER_NAME).removeHandler(handler)
        handler.close()


@pytest.mark.unit
def test_setup_logging_attaches_requested_file(tmp_path: Path) -> None:
    log_file = tmp_path / "cli.log"

    setup_logging(log_file)

    handlers = [
        h
        for h in logging.getLogger(LOGGER_NAME).handlers
        if isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file)
    ]
    assert len(handlers) == 1
    logging.getLogger(LOGGER_NAME).removeHandler(handlers[0])
    handlers[0].close()
