"""
Abstract interfaces for the recognition pipeline.
The OCR engine is an external collaborator; nothing in the pipeline depends on a concrete engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from PIL import Image

from core.models import OCRPage


class IOCREngine(ABC):
    """Abstract OCR engine: image file + segmentation mode -> text, confidence, words."""

    @property
    def name(self) -> str:
        return "base"

    @abstractmethod
    def recognize(self, image_path: Path, psm: int) -> OCRPage:
        """
        Recognize one image with the requested page-segmentation mode.
        Confidences are 0-100. Raises RecognitionEngineError on failure.
        Implementations must tolerate concurrent independent calls.
        """
        ...


class IImageReader(ABC):
    """Strategy to read the uploaded receipt image from a source (path, bytes, etc.)."""

    @abstractmethod
    def read(self) -> Image.Image:
        """Load the image fully; the caller owns the returned object."""
        ...


class IImageWriter(ABC):
    """Strategy to persist a transformed image for the OCR engine."""

    @abstractmethod
    def write(self, image: Image.Image, variant: str) -> Path:
        """Write image; return the path of the new artifact."""
        ...
