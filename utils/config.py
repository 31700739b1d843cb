"""
Configuration loader: YAML + env overrides.
Quality gates are configuration, not constants, so they can be calibrated without code changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from core.exceptions import ConfigError
from core.models import RecognitionMode

DEFAULT_CONFIG_PATH = "config.yaml"


def _coerce_float(s: Any, default: float = 0.0) -> float:
    if s is None or s == "":
        return default
    try:
        return float(s)
    except (TypeError, ValueError):
        return default


def _coerce_int(s: Any, default: int = 0) -> int:
    if s is None or s == "":
        return default
    try:
        return int(s)
    except (TypeError, ValueError):
        return default


def parse_mode(value: Any) -> RecognitionMode:
    """RecognitionMode from its name; ConfigError for anything else."""
    if isinstance(value, RecognitionMode):
        return value
    try:
        return RecognitionMode(str(value).strip().lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in RecognitionMode)
        raise ConfigError(f"Invalid recognition mode {value!r} (expected one of: {allowed})") from e


@dataclass(frozen=True)
class OCRConfig:
    """OCR engine selection."""

    engine: str = "tesseract"
    language: str = "eng"
    tesseract_cmd: str | None = None


@dataclass(frozen=True)
class ThresholdConfig:
    """Selection and verdict gates (empirically tuned)."""

    amount_min_confidence: float = 30.0
    date_min_confidence: float = 40.0
    accept_score: int = 70
    retry_score: int = 40


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration. Built from YAML + env."""

    mode: RecognitionMode = RecognitionMode.MEDIUM
    log_level: str = "INFO"
    diagnostic_log_path: str = "ocr_debug.log"
    temp_dir: str = ""
    max_workers: int = 1
    timeout_sec: float = 0.0
    ocr: OCRConfig = field(default_factory=OCRConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)

    def with_overrides(self, **overrides: Any) -> AppConfig:
        """Return new config with replaced keys (top-level only; nested configs replaced whole)."""
        known = {f.name for f in fields(self)}
        changes = {k: v for k, v in overrides.items() if k in known and v is not None}
        if "mode" in changes:
            changes["mode"] = parse_mode(changes["mode"])
        if "max_workers" in changes:
            changes["max_workers"] = max(1, _coerce_int(changes["max_workers"], 1))
        if "timeout_sec" in changes:
            changes["timeout_sec"] = max(0.0, _coerce_float(changes["timeout_sec"]))
        if isinstance(changes.get("ocr"), dict):
            changes["ocr"] = OCRConfig(**changes["ocr"])
        if isinstance(changes.get("thresholds"), dict):
            changes["thresholds"] = ThresholdConfig(**changes["thresholds"])
        return replace(self, **changes)


def _env_override(key: str, default: Any, coerce: type | Any = str) -> Any:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    if coerce is float:
        return _coerce_float(raw, default)
    if coerce is int:
        return _coerce_int(raw, default)
    return str(raw).strip()


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _config_from_dict(data: dict[str, Any]) -> AppConfig:
    """Build AppConfig from nested dict. Env overrides applied in load_config."""
    defaults = AppConfig()
    ocr_data = data.get("ocr") or {}
    thr_data = data.get("thresholds") or {}
    thr = defaults.thresholds
    return AppConfig(
        mode=parse_mode(data.get("mode", defaults.mode)),
        log_level=str(data.get("log_level", defaults.log_level)),
        diagnostic_log_path=str(data.get("diagnostic_log_path", defaults.diagnostic_log_path) or ""),
        temp_dir=str(data.get("temp_dir") or ""),
        max_workers=max(1, _coerce_int(data.get("max_workers"), 1)),
        timeout_sec=max(0.0, _coerce_float(data.get("timeout_sec"))),
        ocr=OCRConfig(
            engine=str(ocr_data.get("engine", "tesseract")).strip().lower(),
            language=str(ocr_data.get("language", "eng")),
            tesseract_cmd=ocr_data.get("tesseract_cmd") or None,
        ),
        thresholds=ThresholdConfig(
            amount_min_confidence=_coerce_float(thr_data.get("amount_min_confidence"), thr.amount_min_confidence),
            date_min_confidence=_coerce_float(thr_data.get("date_min_confidence"), thr.date_min_confidence),
            accept_score=_coerce_int(thr_data.get("accept_score"), thr.accept_score),
            retry_score=_coerce_int(thr_data.get("retry_score"), thr.retry_score),
        ),
    )


def load_config(path: str | Path | None = None) -> AppConfig:
    """
    Load config.yaml (or `path`) then apply environment overrides.
    Missing file -> defaults. A .env file in the working directory is honoured.
    """
    load_dotenv()
    config_path = Path(path or os.getenv("OCR_CONFIG_PATH") or DEFAULT_CONFIG_PATH)
    if path is not None and not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    data = _load_yaml(config_path)
    cfg = _config_from_dict(data) if data else AppConfig()

    overrides: dict[str, Any] = {}
    if os.getenv("OCR_MODE"):
        overrides["mode"] = os.getenv("OCR_MODE")
    if os.getenv("LOG_LEVEL"):
        overrides["log_level"] = os.getenv("LOG_LEVEL")
    if os.getenv("OCR_DIAGNOSTIC_LOG") is not None:
        overrides["diagnostic_log_path"] = os.getenv("OCR_DIAGNOSTIC_LOG", "")
    if os.getenv("OCR_TEMP_DIR"):
        overrides["temp_dir"] = os.getenv("OCR_TEMP_DIR")
    if os.getenv("MAX_WORKERS"):
        overrides["max_workers"] = _env_override("MAX_WORKERS", cfg.max_workers, int)
    if os.getenv("OCR_TIMEOUT_SEC"):
        overrides["timeout_sec"] = _env_override("OCR_TIMEOUT_SEC", cfg.timeout_sec, float)
    if os.getenv("OCR_ENGINE") or os.getenv("OCR_LANGUAGE") or os.getenv("TESSERACT_CMD"):
        ocr = cfg.ocr
        overrides["ocr"] = OCRConfig(
            engine=_env_override("OCR_ENGINE", ocr.engine).lower(),
            language=_env_override("OCR_LANGUAGE", ocr.language),
            tesseract_cmd=_env_override("TESSERACT_CMD", ocr.tesseract_cmd),
        )
    threshold_keys = ("AMOUNT_MIN_CONFIDENCE", "DATE_MIN_CONFIDENCE", "ACCEPT_SCORE", "RETRY_SCORE")
    if any(os.getenv(k) for k in threshold_keys):
        thr = cfg.thresholds
        overrides["thresholds"] = ThresholdConfig(
            amount_min_confidence=_env_override("AMOUNT_MIN_CONFIDENCE", thr.amount_min_confidence, float),
            date_min_confidence=_env_override("DATE_MIN_CONFIDENCE", thr.date_min_confidence, float),
            accept_score=_env_override("ACCEPT_SCORE", thr.accept_score, int),
            retry_score=_env_override("RETRY_SCORE", thr.retry_score, int),
        )
    if not overrides:
        return cfg
    return cfg.with_overrides(**overrides)
