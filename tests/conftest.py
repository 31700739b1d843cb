"""
Shared test doubles: a fake OCR engine and small synthetic receipt images.
No tesseract binary is needed; the fake engine returns scripted pages per (variant, psm).
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

import pytest
from PIL import Image, ImageDraw

from core.exceptions import RecognitionEngineError
from core.interfaces import IOCREngine
from core.models import OCRPage, OCRWord
from extraction.image_io import TEMP_PREFIX


def variant_from_temp_path(path: Path) -> str:
    """temp_<variant>_<ns>_<rand>.png -> variant (variants may contain underscores)."""
    stem = Path(path).stem
    return stem[len(TEMP_PREFIX):].rsplit("_", 2)[0]


def make_page(lines: list[tuple[str, float]]) -> OCRPage:
    """OCRPage from (line text, confidence of every word on that line)."""
    words = [OCRWord(text=w, confidence=conf) for text, conf in lines for w in text.split()]
    mean = sum(w.confidence for w in words) / len(words) if words else 0.0
    return OCRPage(text="\n".join(text for text, _ in lines), confidence=mean, words=tuple(words))


class FakeOCREngine(IOCREngine):
    """Returns scripted pages; records every call and whether the artifact existed at call time."""

    def __init__(
        self,
        default: OCRPage | None = None,
        pages: dict | None = None,
        fail: set[tuple[str, int]] | None = None,
        fail_all: bool = False,
        on_call: Callable[[str, int], None] | None = None,
    ) -> None:
        self.default = default or make_page([("TOTAL $10.00", 90.0)])
        self.pages = pages or {}
        self.fail = fail or set()
        self.fail_all = fail_all
        self.on_call = on_call
        self.calls: list[tuple[str, int]] = []
        self.paths: list[Path] = []
        self.existed: list[bool] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "fake"

    def recognize(self, image_path: Path, psm: int) -> OCRPage:
        variant = variant_from_temp_path(image_path)
        with self._lock:
            self.calls.append((variant, psm))
            self.paths.append(Path(image_path))
            self.existed.append(Path(image_path).exists())
        if self.on_call is not None:
            self.on_call(variant, psm)
        if self.fail_all or (variant, psm) in self.fail:
            raise RecognitionEngineError("simulated engine failure", psm=psm)
        return self.pages.get((variant, psm)) or self.pages.get(variant) or self.default


@pytest.fixture
def receipt_image() -> Image.Image:
    """Narrow light-grey 'receipt' with a few dark strokes (width < 1200 to exercise upscaling)."""
    img = Image.new("RGB", (400, 300), color=(225, 222, 215))
    draw = ImageDraw.Draw(img)
    for y in range(30, 280, 40):
        draw.rectangle([20, y, 380, y + 12], fill=(90, 90, 90))
    return img


@pytest.fixture
def receipt_path(tmp_path: Path, receipt_image: Image.Image) -> Path:
    p = tmp_path / "receipt.jpg"
    receipt_image.save(p, format="JPEG")
    return p


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    d = tmp_path / "ocr_tmp"
    d.mkdir()
    return d
