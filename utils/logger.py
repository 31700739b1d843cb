"""Logging setup plus the append-only diagnostic log used for offline threshold tuning."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DIAGNOSTIC_FORMAT = "[%(asctime)s] %(name)s: %(message)s"
DIAGNOSTIC_HANDLER_NAME = "ocr-diagnostics"

# Loggers whose records go to the diagnostic file
DIAGNOSTIC_LOGGERS = ("pipeline", "extraction")


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module/component. No side effects."""
    return logging.getLogger(name)


def setup_logging(
    level: str = "INFO",
    format_string: str | None = None,
    stream: Any = None,
    diagnostic_log_path: str | Path | None = None,
) -> None:
    """
    Configure root logger once. Safe to call from main or tests.
    When diagnostic_log_path is set, pass/preprocessing/selection records are also appended to that file.
    """
    if format_string is None:
        format_string = DEFAULT_FORMAT
    stream = stream or sys.stdout
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=format_string,
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=stream,
        force=True,
    )
    # The diagnostic file records DEBUG; keep the console at the requested level
    for handler in logging.getLogger().handlers:
        handler.setLevel(numeric_level)
    if diagnostic_log_path:
        attach_diagnostic_log(diagnostic_log_path)


def attach_diagnostic_log(path: str | Path) -> logging.Handler:
    """Append-only file handler on the pipeline loggers. Replaces a previously attached one."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.set_name(DIAGNOSTIC_HANDLER_NAME)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(DIAGNOSTIC_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    for name in DIAGNOSTIC_LOGGERS:
        lg = logging.getLogger(name)
        for old in [h for h in lg.handlers if h.get_name() == DIAGNOSTIC_HANDLER_NAME]:
            lg.removeHandler(old)
            old.close()
        lg.addHandler(handler)
        lg.setLevel(logging.DEBUG)
    return handler


def log_structured(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """Emit a log record with extra keys for structured aggregation."""
    logger.log(level, msg, extra=kwargs)
