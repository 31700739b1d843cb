"""
Image reader and writer strategies: load the uploaded receipt from a path or bytes,
and write per-pass temporary artifacts for the OCR engine.
"""
from __future__ import annotations

import io
import tempfile
import time
import uuid
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from core.exceptions import PreprocessingError
from core.interfaces import IImageReader, IImageWriter

TEMP_PREFIX = "temp_"
TEMP_FORMAT = "PNG"


def _load(fp: Path | io.BytesIO) -> Image.Image:
    """Open, apply EXIF orientation (phone photos), and detach from the file handle."""
    with Image.open(fp) as img:
        img.load()
        oriented = ImageOps.exif_transpose(img)
        return oriented.copy() if oriented is img else oriented


# ---------------------------------------------------------------------------
# Reader strategies
# ---------------------------------------------------------------------------


class PathImageReader(IImageReader):
    """Read the receipt image from a file path (already persisted by the upload layer)."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def read(self) -> Image.Image:
        if not self.path.exists():
            raise FileNotFoundError(f"File not found: {self.path}")
        try:
            return _load(self.path)
        except (UnidentifiedImageError, OSError) as e:
            raise PreprocessingError(f"Cannot decode image {self.path.name}: {e}") from e


class BytesImageReader(IImageReader):
    """Read the receipt image from in-memory bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data

    def read(self) -> Image.Image:
        if not self.data:
            raise PreprocessingError("Empty image buffer")
        try:
            return _load(io.BytesIO(self.data))
        except (UnidentifiedImageError, OSError) as e:
            raise PreprocessingError(f"Cannot decode image bytes: {e}") from e


def reader_for(source: Path | str | bytes) -> IImageReader:
    """Pick a reader strategy for a path or a raw buffer."""
    if isinstance(source, (bytes, bytearray)):
        return BytesImageReader(bytes(source))
    return PathImageReader(source)


# ---------------------------------------------------------------------------
# Writer strategy
# ---------------------------------------------------------------------------


class TempImageWriter(IImageWriter):
    """
    Write transformed images as temp_<variant>_<ns>_<rand>.png.
    Names stay unique per pass under concurrency; the caller deletes them.
    """

    def __init__(self, directory: Path | str | None = None) -> None:
        self.directory = Path(directory) if directory else Path(tempfile.gettempdir())

    def path_for(self, variant: str) -> Path:
        name = f"{TEMP_PREFIX}{variant}_{time.time_ns()}_{uuid.uuid4().hex[:8]}.{TEMP_FORMAT.lower()}"
        return self.directory / name

    def write(self, image: Image.Image, variant: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        out = self.path_for(variant)
        try:
            image.save(out, format=TEMP_FORMAT)
        except (OSError, ValueError):
            out.unlink(missing_ok=True)
            raise
        return out
