"""Shared utilities: config, logger."""

from utils.config import AppConfig, OCRConfig, ThresholdConfig, load_config
from utils.logger import get_logger, setup_logging, attach_diagnostic_log, log_structured

__all__ = [
    "AppConfig",
    "OCRConfig",
    "ThresholdConfig",
    "load_config",
    "get_logger",
    "setup_logging",
    "attach_diagnostic_log",
    "log_structured",
]
