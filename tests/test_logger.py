"""
Unit tests for the append-only diagnostic log.
"""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from utils.logger import DIAGNOSTIC_HANDLER_NAME, DIAGNOSTIC_LOGGERS, attach_diagnostic_log


@pytest.fixture
def detach_diagnostics():
    yield
    for name in DIAGNOSTIC_LOGGERS:
        lg = logging.getLogger(name)
        for h in [h for h in lg.handlers if h.get_name() == DIAGNOSTIC_HANDLER_NAME]:
            lg.removeHandler(h)
            h.close()
        lg.setLevel(logging.NOTSET)


def test_diagnostic_log_appends_across_attachments(tmp_path: Path, detach_diagnostics) -> None:
    path = tmp_path / "logs" / "ocr_debug.log"
    attach_diagnostic_log(path)
    logging.getLogger("pipeline.orchestrator").info("first run")
    attach_diagnostic_log(path)
    logging.getLogger("extraction.preprocessing").debug("second run")

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("pipeline.orchestrator: first run")
    assert lines[1].endswith("extraction.preprocessing: second run")


def test_reattaching_replaces_the_handler(tmp_path: Path, detach_diagnostics) -> None:
    attach_diagnostic_log(tmp_path / "a.log")
    attach_diagnostic_log(tmp_path / "b.log")
    handlers = [h for h in logging.getLogger("pipeline").handlers if h.get_name() == DIAGNOSTIC_HANDLER_NAME]
    assert len(handlers) == 1
