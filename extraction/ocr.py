"""
OCR engine adapter: Tesseract via pytesseract behind IOCREngine.
One call per pass: image file + page segmentation mode -> text, mean confidence, word list.
The engine mode is fixed to LSTM only (--oem 1).
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pytesseract

from core.exceptions import ConfigError, RecognitionEngineError
from core.interfaces import IOCREngine
from core.models import OCRPage, OCRWord
from utils.config import OCRConfig

logger = logging.getLogger(__name__)

LSTM_ONLY_OEM = 1
SUPPORTED_ENGINES = ("tesseract",)

_ocr_backend_logged = False


def _log_backend_once(engine_name: str, language: str) -> None:
    global _ocr_backend_logged
    if _ocr_backend_logged:
        return
    _ocr_backend_logged = True
    logger.info("OCR: engine=%s, language=%s, oem=%s", engine_name, language, LSTM_ONLY_OEM)


def _parse_confidence(raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return -1.0


def page_from_tesseract_data(data: dict[str, list[Any]]) -> OCRPage:
    """
    Build an OCRPage from pytesseract.image_to_data(..., output_type=DICT).
    Rows with conf < 0 are layout rows (page/block/line); rows with blank text are dropped.
    Text is rebuilt line by line; blocks are separated by a blank line.
    """
    words: list[OCRWord] = []
    lines: list[str] = []
    current_key: tuple[int, int, int] | None = None
    current_block: int | None = None
    current_line: list[str] = []

    for i, raw_text in enumerate(data.get("text", [])):
        text = (raw_text or "").strip()
        conf = _parse_confidence(data["conf"][i])
        if not text or conf < 0:
            continue
        block = int(data["block_num"][i])
        key = (block, int(data["par_num"][i]), int(data["line_num"][i]))
        if key != current_key:
            if current_line:
                lines.append(" ".join(current_line))
            if current_block is not None and block != current_block:
                lines.append("")
            current_key = key
            current_block = block
            current_line = []
        current_line.append(text)
        words.append(OCRWord(text=text, confidence=conf))
    if current_line:
        lines.append(" ".join(current_line))

    mean_conf = sum(w.confidence for w in words) / len(words) if words else 0.0
    return OCRPage(
        text="\n".join(lines),
        confidence=min(100.0, max(0.0, mean_conf)),
        words=tuple(words),
    )


class TesseractEngine(IOCREngine):
    """Tesseract OCR. Each call spawns its own tesseract process, so concurrent calls are independent."""

    def __init__(self, language: str = "eng", tesseract_cmd: str | None = None) -> None:
        self._language = language
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    @property
    def name(self) -> str:
        return "tesseract"

    def config_for(self, psm: int) -> str:
        return f"--oem {LSTM_ONLY_OEM} --psm {int(psm)}"

    def recognize(self, image_path: Path, psm: int) -> OCRPage:
        try:
            data = pytesseract.image_to_data(
                str(image_path),
                lang=self._language,
                config=self.config_for(psm),
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractNotFoundError as e:
            raise RecognitionEngineError(f"tesseract binary not found: {e}", psm=psm) from e
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            raise RecognitionEngineError(f"Tesseract failed (psm={psm}): {e}", psm=psm) from e
        try:
            return page_from_tesseract_data(data)
        except (KeyError, IndexError, ValueError) as e:
            raise RecognitionEngineError(f"Unexpected Tesseract output (psm={psm}): {e}", psm=psm) from e


def create_ocr_engine(config: OCRConfig | None = None) -> IOCREngine:
    """Create OCR engine by name from config."""
    config = config or OCRConfig()
    name = (config.engine or "tesseract").strip().lower()
    if name not in SUPPORTED_ENGINES:
        raise ConfigError(f"Unsupported OCR engine: {config.engine!r}")
    engine = TesseractEngine(language=config.language, tesseract_cmd=config.tesseract_cmd)
    _log_backend_once(engine.name, config.language)
    return engine
