"""Extraction: image transforms, image I/O, OCR engine adapter, candidate extraction."""

from extraction.image_io import (
    PathImageReader,
    BytesImageReader,
    TempImageWriter,
    reader_for,
)
from extraction.preprocessing import (
    VARIANTS,
    preprocess,
    calculate_average_brightness,
    apply_adaptive_threshold,
)
from extraction.ocr import (
    TesseractEngine,
    create_ocr_engine,
    page_from_tesseract_data,
)
from extraction.candidates import (
    PassCandidates,
    extract_amounts,
    extract_dates,
    extract_candidates,
    text_confidence,
)

__all__ = [
    "PathImageReader",
    "BytesImageReader",
    "TempImageWriter",
    "reader_for",
    "VARIANTS",
    "preprocess",
    "calculate_average_brightness",
    "apply_adaptive_threshold",
    "TesseractEngine",
    "create_ocr_engine",
    "page_from_tesseract_data",
    "PassCandidates",
    "extract_amounts",
    "extract_dates",
    "extract_candidates",
    "text_confidence",
]
