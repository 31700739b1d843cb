"""
Image transform library for thermal receipt photos.
Fixed pipeline: grayscale -> size normalization -> dynamic range stretch -> one variant enhancement.
Every function returns a new PIL image; the source image is never modified.
"""
from __future__ import annotations

import logging
import math

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, ImageStat

from core.exceptions import PreprocessingError

logger = logging.getLogger(__name__)

# Recognition degrades sharply below this width on long, narrow receipts
MIN_WIDTH_PX = 1200
# Bounds memory/CPU per pass
MAX_WIDTH_PX = 2400

# Fraction of mean luminance below which a pixel is ink (tuned for thermal paper)
THRESHOLD_RATIO = 0.65

# Contrast levels in [0, 1); factor = (1 + level) / (1 - level)
DEFAULT_CONTRAST = 0.6
HIGH_CONTRAST = 0.9
SHARPEN_CONTRAST = 0.7
DENOISE_CONTRAST = 0.8
DENOISE_BLUR_RADIUS = 1

SHARPEN_KERNEL = ImageFilter.Kernel(
    (3, 3),
    [
        0, -1, 0,
        -1, 5, -1,
        0, -1, 0,
    ],
    scale=1,
)

VARIANTS = ("default", "high_contrast", "threshold", "sharpen", "denoise")


def to_grayscale(image: Image.Image) -> Image.Image:
    """Single-channel luminance. Always returns a new image."""
    if image.mode == "L":
        return image.copy()
    if image.mode in ("RGBA", "LA", "P"):
        # Flatten transparency onto white paper before dropping channels
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        image = Image.alpha_composite(background, rgba)
    return image.convert("L")


def normalize_size(image: Image.Image) -> Image.Image:
    """Integer upscale below MIN_WIDTH_PX; proportional downscale above MAX_WIDTH_PX."""
    w, h = image.size
    if w <= 0 or h <= 0:
        raise PreprocessingError(f"Image has no pixels: {w}x{h}")
    if w < MIN_WIDTH_PX:
        scale = math.ceil(MIN_WIDTH_PX / w)
        logger.debug("    Upscaling %sx to %spx width", scale, w * scale)
        return image.resize((w * scale, h * scale), Image.Resampling.LANCZOS)
    if w > MAX_WIDTH_PX:
        ratio = MAX_WIDTH_PX / w
        logger.debug("    Downscaling to %spx width", MAX_WIDTH_PX)
        return image.resize((MAX_WIDTH_PX, max(1, math.floor(h * ratio))), Image.Resampling.LANCZOS)
    return image


def stretch_contrast(image: Image.Image) -> Image.Image:
    """Expand the dynamic range to 0..255 (counters faded thermal ink)."""
    return ImageOps.autocontrast(image)


def contrast_factor(level: float) -> float:
    """Enhancement factor for a contrast level: 0 -> 1.0 (unchanged), 0.6 -> 4.0, 0.9 -> 19.0."""
    if not 0.0 <= level < 1.0:
        raise ValueError(f"contrast level must be in [0, 1): {level}")
    return (1.0 + level) / (1.0 - level)


def boost_contrast(image: Image.Image, level: float) -> Image.Image:
    return ImageEnhance.Contrast(image).enhance(contrast_factor(level))


def calculate_average_brightness(image: Image.Image) -> float:
    """Mean luminance over the whole (grayscale) image."""
    return float(ImageStat.Stat(image).mean[0])


def apply_adaptive_threshold(image: Image.Image, threshold: float) -> Image.Image:
    """Binarize: thermal ink is darker than paper, so < threshold -> black, else white."""
    lut = [0 if value < threshold else 255 for value in range(256)]
    return image.point(lut)


def _apply_variant(image: Image.Image, variant: str) -> Image.Image:
    if variant == "default":
        logger.debug("    Applied default contrast (level %.1f)", DEFAULT_CONTRAST)
        return boost_contrast(image, DEFAULT_CONTRAST)
    if variant == "high_contrast":
        logger.debug("    Applied high contrast (level %.1f)", HIGH_CONTRAST)
        return boost_contrast(image, HIGH_CONTRAST)
    if variant == "threshold":
        avg = calculate_average_brightness(image)
        threshold = avg * THRESHOLD_RATIO
        logger.debug("    Adaptive threshold: %.1f (avg: %.1f)", threshold, avg)
        return apply_adaptive_threshold(image, threshold)
    if variant == "sharpen":
        logger.debug("    Applied sharpening")
        return boost_contrast(image, SHARPEN_CONTRAST).filter(SHARPEN_KERNEL)
    if variant == "denoise":
        logger.debug("    Applied denoising (blur=%s, contrast=%.1f)", DENOISE_BLUR_RADIUS, DENOISE_CONTRAST)
        blurred = image.filter(ImageFilter.GaussianBlur(radius=DENOISE_BLUR_RADIUS))
        return boost_contrast(blurred, DENOISE_CONTRAST)
    raise PreprocessingError(f"Unknown preprocessing variant: {variant!r}", variant=variant)


def preprocess(image: Image.Image, variant: str) -> Image.Image:
    """
    Produce a recognition-friendly image for one variant.
    Raises PreprocessingError for unknown variants or any transform failure.
    """
    if variant not in VARIANTS:
        raise PreprocessingError(f"Unknown preprocessing variant: {variant!r}", variant=variant)
    logger.info("  Preprocessing: %s", variant)
    try:
        out = to_grayscale(image)
        out = normalize_size(out)
        out = stretch_contrast(out)
        return _apply_variant(out, variant)
    except PreprocessingError as e:
        e.variant = e.variant or variant
        raise
    except (OSError, ValueError, TypeError, MemoryError) as e:
        raise PreprocessingError(f"Preprocessing failed for {variant}: {e}", variant=variant) from e
