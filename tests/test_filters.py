"""Tests for the pixel filter pipeline."""

import numpy as np
import pytest

from retext.buffer import PixelBuffer
from retext.errors import InvalidParameter, UnsupportedFilter
from retext.filters import FilterKind, FilterSpec, apply_filter, apply_filters


def _naive_box_blur(data: np.ndarray, radius: int) -> np.ndarray:
    """Direct per-window average, used as the reference for the fast blur."""
    h, w = data.shape[:2]
    out = np.zeros_like(data)
    for y in range(h):
        for x in range(w):
            window = data[max(0, y - radius):min(h, y + radius + 1),
                          max(0, x - radius):min(w, x + radius + 1)]
            count = window.shape[0] * window.shape[1]
            out[y, x] = window.reshape(count, -1).astype(np.int64).sum(axis=0) // count
    return out


def test_brightness_one_is_identity(random_image):
    """Brightness(1.0) returns an equal buffer."""
    assert apply_filter(random_image, FilterSpec.brightness(1.0)) == random_image


def test_blur_zero_is_identity(random_image):
    """Blur(0) returns an equal buffer."""
    assert apply_filter(random_image, FilterSpec.blur(0)) == random_image


def test_grayscale_is_idempotent(random_image):
    """Applying grayscale twice gives the same result as once."""
    once = apply_filter(random_image, FilterSpec.grayscale())
    twice = apply_filter(once, FilterSpec.grayscale())
    assert once == twice


def test_grayscale_uses_truncated_luma():
    """Luma weights 0.299/0.587/0.114 are applied and truncated."""
    data = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255], [200, 200, 200]]], dtype=np.uint8)
    result = apply_filter(PixelBuffer(data), FilterSpec.grayscale())

    assert result.pixel(0, 0) == (76, 76, 76)
    assert result.pixel(1, 0) == (149, 149, 149)
    assert result.pixel(2, 0) == (29, 29, 29)
    assert result.pixel(3, 0) == (200, 200, 200)


def test_grayscale_keeps_single_channel_buffers():
    data = np.arange(12, dtype=np.uint8).reshape(3, 4)
    result = apply_filter(PixelBuffer(data), FilterSpec.grayscale())
    assert result.channels == 1
    assert np.array_equal(result.data, data)


def test_brightness_on_black_stays_black():
    """A 100×100 black image brightened by 2.0 stays black."""
    black = PixelBuffer.blank(100, 100, color=(0, 0, 0))
    result = apply_filter(black, FilterSpec.brightness(2.0))
    assert result.shape == (100, 100, 3)
    assert not result.data.any()


def test_brightness_scales_and_clamps():
    data = np.array([[[100, 50, 10], [200, 128, 255]]], dtype=np.uint8)
    result = apply_filter(PixelBuffer(data), FilterSpec.brightness(1.5))

    assert result.pixel(0, 0) == (150, 75, 15)
    assert result.pixel(1, 0) == (255, 192, 255)


def test_brightness_truncates_fractions():
    data = np.array([[[3, 5, 7]]], dtype=np.uint8)
    result = apply_filter(PixelBuffer(data), FilterSpec.brightness(0.5))
    assert result.pixel(0, 0) == (1, 2, 3)


def test_contrast_matches_brightness(random_image):
    """Contrast scales channels exactly like brightness."""
    brightened = apply_filter(random_image, FilterSpec.brightness(1.3))
    contrasted = apply_filter(random_image, FilterSpec.contrast(1.3))
    assert brightened == contrasted


def test_sepia_on_black_and_white():
    """Sepia keeps black black and clamps white's red and green at 255."""
    black = apply_filter(PixelBuffer.blank(4, 4, color=(0, 0, 0)), FilterSpec.sepia())
    white = apply_filter(PixelBuffer.blank(4, 4), FilterSpec.sepia())

    assert black.pixel(2, 2) == (0, 0, 0)
    # Blue row sums to 0.937, so white maps to 238 there
    assert white.pixel(2, 2) == (255, 255, 238)


def test_sepia_matrix_values():
    data = np.array([[[100, 50, 20]]], dtype=np.uint8)
    result = apply_filter(PixelBuffer(data), FilterSpec.sepia())
    # 39.3 + 38.45 + 3.78 = 81.53, 34.9 + 34.3 + 3.36 = 72.56, 27.2 + 26.7 + 2.62 = 56.52
    assert result.pixel(0, 0) == (81, 72, 56)


def test_sepia_expands_grayscale_input():
    result = apply_filter(PixelBuffer(np.full((2, 2), 10, dtype=np.uint8)), FilterSpec.sepia())
    assert result.channels == 3


def test_blur_uniform_gray_is_unchanged():
    """Blurring a uniform 10×10 gray image leaves every pixel, edges included, at 128."""
    gray = PixelBuffer.blank(10, 10, color=(128, 128, 128))
    result = apply_filter(gray, FilterSpec.blur(1))
    assert result == gray


@pytest.mark.parametrize("radius", [1, 2, 5])
def test_blur_matches_direct_window_average(random_image, radius):
    """The summed-area blur gives the same values as averaging each clipped window."""
    result = apply_filter(random_image, FilterSpec.blur(radius))
    assert np.array_equal(result.data, _naive_box_blur(random_image.data, radius))


def test_blur_edges_average_fewer_samples():
    data = np.zeros((3, 3), dtype=np.uint8)
    data[0, 0] = 90
    result = apply_filter(PixelBuffer(data), FilterSpec.blur(1))

    # Corner window holds 4 pixels, edge window 6, center window 9
    assert result.pixel(0, 0) == (22,)
    assert result.pixel(1, 0) == (15,)
    assert result.pixel(1, 1) == (10,)
    assert result.pixel(2, 2) == (0,)


def test_filters_do_not_mutate_input(random_image):
    before = random_image.to_array()
    for spec in [FilterSpec.brightness(2.0), FilterSpec.contrast(0.5), FilterSpec.grayscale(),
                 FilterSpec.sepia(), FilterSpec.blur(2)]:
        result = apply_filter(random_image, spec)
        assert result.width == random_image.width
        assert result.height == random_image.height
        assert result.data.dtype == np.uint8
    assert np.array_equal(random_image.data, before)


def test_apply_filters_chains_in_order(random_image):
    chained = apply_filters(random_image, [FilterSpec.grayscale(), FilterSpec.blur(1)])
    expected = apply_filter(apply_filter(random_image, FilterSpec.grayscale()), FilterSpec.blur(1))
    assert chained == expected


def test_parse_filter_specs():
    assert FilterSpec.parse("Brightness", "1.5") == FilterSpec(FilterKind.BRIGHTNESS, 1.5)
    assert FilterSpec.parse("contrast", " 0.8 ") == FilterSpec(FilterKind.CONTRAST, 0.8)
    assert FilterSpec.parse("blur", "3") == FilterSpec(FilterKind.BLUR, 3)
    assert FilterSpec.parse("SEPIA", "ignored") == FilterSpec(FilterKind.SEPIA)
    assert FilterSpec.parse("grayscale") == FilterSpec(FilterKind.GRAYSCALE)


def test_parse_unknown_filter():
    with pytest.raises(UnsupportedFilter, match="emboss"):
        FilterSpec.parse("emboss", "1")


@pytest.mark.parametrize("kind,value", [
    ("brightness", "bright"),
    ("brightness", None),
    ("brightness", "-1"),
    ("contrast", "nan"),
    ("contrast", "inf"),
    ("blur", "2.5"),
    ("blur", "-1"),
    ("blur", ""),
])
def test_parse_invalid_parameters(kind, value):
    with pytest.raises(InvalidParameter):
        FilterSpec.parse(kind, value)


def test_named_constructors_validate():
    with pytest.raises(InvalidParameter):
        FilterSpec.blur(True)
    with pytest.raises(InvalidParameter):
        FilterSpec.blur(1.0)
    with pytest.raises(InvalidParameter):
        FilterSpec.brightness("2")
    assert FilterSpec.brightness(2).value == 2.0


def test_apply_rejects_out_of_range_values(random_image):
    with pytest.raises(InvalidParameter):
        apply_filter(random_image, FilterSpec(FilterKind.BLUR, -2))
