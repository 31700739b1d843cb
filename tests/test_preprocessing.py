"""
Unit tests for the image transform library.
Tests: grayscale + size normalization, adaptive threshold, variant dispatch, value semantics.
"""
from __future__ import annotations

import pytest
from PIL import Image

from core.exceptions import PreprocessingError
from extraction.preprocessing import (
    MAX_WIDTH_PX,
    SHARPEN_KERNEL,
    VARIANTS,
    apply_adaptive_threshold,
    calculate_average_brightness,
    contrast_factor,
    normalize_size,
    preprocess,
    to_grayscale,
)


def test_upscales_narrow_image_by_integer_factor(receipt_image: Image.Image) -> None:
    out = preprocess(receipt_image, "default")
    # ceil(1200 / 400) == 3
    assert out.size == (1200, 900)
    assert out.mode == "L"


def test_integer_upscale_overshoots_to_reach_min_width() -> None:
    img = Image.new("L", (500, 100), 200)
    assert normalize_size(img).size == (1500, 300)


def test_downscales_wide_image_proportionally() -> None:
    img = Image.new("L", (3000, 1001), 200)
    out = normalize_size(img)
    assert out.size == (MAX_WIDTH_PX, 800)


def test_width_in_range_is_untouched() -> None:
    img = Image.new("L", (1600, 400), 200)
    assert normalize_size(img).size == (1600, 400)


@pytest.mark.parametrize("variant", VARIANTS)
def test_every_variant_returns_grayscale_image_of_normalized_size(receipt_image: Image.Image, variant: str) -> None:
    out = preprocess(receipt_image, variant)
    assert out.mode == "L"
    assert out.size == (1200, 900)


def test_threshold_variant_is_binary(receipt_image: Image.Image) -> None:
    out = preprocess(receipt_image, "threshold")
    assert set(out.getdata()) <= {0, 255}
    # strokes are darker than 65% of the mean, paper is not
    assert set(out.getdata()) == {0, 255}


def test_adaptive_threshold_is_relative_to_image_brightness() -> None:
    img = Image.new("L", (4, 1))
    img.putdata([50, 99, 100, 200])
    out = apply_adaptive_threshold(img, 100)
    assert list(out.getdata()) == [0, 0, 255, 255]


def test_average_brightness_of_uniform_image() -> None:
    assert calculate_average_brightness(Image.new("L", (10, 10), 120)) == pytest.approx(120.0)


def test_source_image_is_not_mutated(receipt_image: Image.Image) -> None:
    before = receipt_image.tobytes()
    for variant in VARIANTS:
        preprocess(receipt_image, variant)
    assert receipt_image.mode == "RGB"
    assert receipt_image.size == (400, 300)
    assert receipt_image.tobytes() == before


def test_grayscale_of_grayscale_is_a_copy() -> None:
    img = Image.new("L", (5, 5), 10)
    out = to_grayscale(img)
    assert out is not img
    out.putpixel((0, 0), 255)
    assert img.getpixel((0, 0)) == 10


def test_transparent_pixels_become_white_paper() -> None:
    img = Image.new("RGBA", (4, 4), (0, 0, 0, 0))
    assert to_grayscale(img).getpixel((0, 0)) == 255


def test_unknown_variant_raises_preprocessing_error(receipt_image: Image.Image) -> None:
    with pytest.raises(PreprocessingError) as exc:
        preprocess(receipt_image, "emboss")
    assert exc.value.variant == "emboss"


@pytest.mark.parametrize("level, factor", [(0.0, 1.0), (0.6, 4.0), (0.7, 17 / 3), (0.8, 9.0), (0.9, 19.0)])
def test_contrast_level_to_enhancement_factor(level: float, factor: float) -> None:
    assert contrast_factor(level) == pytest.approx(factor)


def test_contrast_level_out_of_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        contrast_factor(1.0)


def test_sharpen_kernel_overshoots_both_sides_of_an_edge() -> None:
    img = Image.new("L", (10, 10), 100)
    img.paste(150, (5, 0, 10, 10))
    out = img.filter(SHARPEN_KERNEL)
    # 5*100 - (3*100 + 150) on the dark side, 5*150 - (3*150 + 100) on the light side
    assert out.getpixel((4, 5)) == 50
    assert out.getpixel((5, 5)) == 200
    assert out.getpixel((2, 5)) == 100
