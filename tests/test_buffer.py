"""Tests for PixelBuffer and the image codec helpers."""

import base64

import cv2
import numpy as np
import pytest
from PIL import Image

from retext.buffer import PixelBuffer
from retext.errors import DecodeFailure, EncodeFailure, InvalidParameter
from retext.utils import clip_bbox, dilate_bbox, hex_to_rgb, normalize_base64


def _png_bytes(rgb: np.ndarray) -> bytes:
    success, encoded = cv2.imencode(".png", cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    assert success
    return encoded.tobytes()


@pytest.fixture
def tiny_rgb():
    data = np.zeros((2, 3, 3), dtype=np.uint8)
    data[0, 0] = (255, 0, 0)
    data[0, 1] = (0, 255, 0)
    data[1, 2] = (0, 0, 255)
    return data


def test_buffer_owns_a_copy(tiny_rgb):
    buffer = PixelBuffer.from_array(tiny_rgb)
    tiny_rgb[0, 0] = (1, 2, 3)
    assert buffer.pixel(0, 0) == (255, 0, 0)


def test_buffer_data_is_read_only(tiny_rgb):
    buffer = PixelBuffer(tiny_rgb)
    with pytest.raises(ValueError):
        buffer.data[0, 0] = (9, 9, 9)


def test_to_array_returns_writable_copy(tiny_rgb):
    buffer = PixelBuffer(tiny_rgb)
    array = buffer.to_array()
    array[0, 0] = (9, 9, 9)
    assert buffer.pixel(0, 0) == (255, 0, 0)


def test_dimensions_and_pixel_access(tiny_rgb):
    buffer = PixelBuffer(tiny_rgb)
    assert (buffer.width, buffer.height, buffer.channels) == (3, 2, 3)
    assert buffer.pixel(2, 1) == (0, 0, 255)
    assert not buffer.is_grayscale
    assert "3×2" in repr(buffer)


def test_from_array_drops_alpha(tiny_rgb):
    rgba = np.dstack([tiny_rgb, np.full((2, 3), 128, dtype=np.uint8)])
    buffer = PixelBuffer.from_array(rgba)
    assert buffer.shape == (2, 3, 3)
    assert buffer.pixel(1, 0) == (0, 255, 0)


def test_from_array_squeezes_single_channel():
    buffer = PixelBuffer.from_array(np.full((4, 5, 1), 7, dtype=np.uint8))
    assert buffer.is_grayscale
    assert buffer.pixel(4, 3) == (7,)


def test_integer_samples_are_converted():
    buffer = PixelBuffer(np.full((2, 2, 3), 200, dtype=np.int32))
    assert buffer.data.dtype == np.uint8


@pytest.mark.parametrize("data", [
    np.zeros((2, 2, 2), dtype=np.uint8),
    np.zeros((2,), dtype=np.uint8),
    np.zeros((0, 4, 3), dtype=np.uint8),
    np.zeros((2, 2, 3), dtype=np.float32),
    np.full((2, 2, 3), 300, dtype=np.int32),
])
def test_invalid_arrays_are_rejected(data):
    with pytest.raises(InvalidParameter):
        PixelBuffer(data)


def test_blank_rejects_empty_dimensions():
    with pytest.raises(InvalidParameter):
        PixelBuffer.blank(0, 10)


def test_equality_compares_samples(tiny_rgb):
    assert PixelBuffer(tiny_rgb) == PixelBuffer(tiny_rgb.copy())
    assert PixelBuffer(tiny_rgb) != PixelBuffer.blank(3, 2)
    assert PixelBuffer(tiny_rgb) != "not a buffer"


def test_png_round_trip_preserves_pixels(random_image):
    decoded = PixelBuffer.from_bytes(random_image.encode("png"))
    assert decoded == random_image


def test_decodes_rgb_channel_order(tiny_rgb):
    buffer = PixelBuffer.from_bytes(_png_bytes(tiny_rgb))
    assert buffer.pixel(0, 0) == (255, 0, 0)
    assert buffer.pixel(2, 1) == (0, 0, 255)


def test_jpeg_encoding_has_jpeg_signature(white_image):
    assert white_image.encode("jpeg")[:3] == b"\xff\xd8\xff"
    assert white_image.encode("png")[:8] == b"\x89PNG\r\n\x1a\n"


def test_unknown_output_format(white_image):
    with pytest.raises(InvalidParameter):
        white_image.encode("gif")


def test_grayscale_png_stays_grayscale():
    gray = np.arange(20, dtype=np.uint8).reshape(4, 5)
    success, encoded = cv2.imencode(".png", gray)
    assert success
    buffer = PixelBuffer.from_bytes(encoded.tobytes())
    assert buffer.is_grayscale
    assert np.array_equal(buffer.data, gray)


def test_base64_data_url_with_noise(tiny_rgb):
    encoded = base64.b64encode(_png_bytes(tiny_rgb)).decode("ascii")
    noisy = "data:image/png;base64," + "\n".join(
        encoded[i:i + 10] for i in range(0, len(encoded), 10)
    ).rstrip("=")

    buffer = PixelBuffer.from_base64(noisy)
    assert np.array_equal(buffer.data, tiny_rgb)


def test_normalize_base64():
    assert normalize_base64("data:image/png;base64,QUJD") == "QUJD"
    assert normalize_base64(" QU\nJD ") == "QUJD"
    assert normalize_base64("QUI") == "QUI="
    assert normalize_base64("QQ") == "QQ=="
    assert normalize_base64("QQ===") == "QQ=="


@pytest.mark.parametrize("source", [b"", b"not an image", "", "   ", "bm90IGFuIGltYWdl"])
def test_undecodable_sources(source):
    with pytest.raises(DecodeFailure):
        PixelBuffer.from_source(source)


def test_unsupported_source_type():
    with pytest.raises(DecodeFailure):
        PixelBuffer.from_source(12345)


def test_from_source_dispatch(tmp_path, tiny_rgb):
    path = tmp_path / "tiny.png"
    path.write_bytes(_png_bytes(tiny_rgb))
    expected = PixelBuffer(tiny_rgb)

    assert PixelBuffer.from_source(path) == expected
    assert PixelBuffer.from_source(str(path)) == expected
    assert PixelBuffer.from_source(path.read_bytes()) == expected
    assert PixelBuffer.from_source(Image.fromarray(tiny_rgb)) == expected
    assert PixelBuffer.from_source(tiny_rgb) == expected
    assert PixelBuffer.from_source(expected) is expected


def test_from_source_long_base64_text(white_image):
    """Base64 text longer than a file name is decoded, not looked up on disk."""
    encoded = base64.b64encode(white_image.encode("png")).decode("ascii")
    text = " " * 300 + encoded
    assert len(text.split("/")[0]) > 255
    assert len(text) < 4096

    assert PixelBuffer.from_source(text) == white_image


def test_from_source_base64_bytes(tiny_rgb):
    encoded = base64.b64encode(_png_bytes(tiny_rgb))
    assert PixelBuffer.from_source(encoded) == PixelBuffer(tiny_rgb)


def test_buffer_does_not_share_caller_memory(tiny_rgb):
    view = tiny_rgb[:]
    buffer = PixelBuffer(tiny_rgb)

    view[0, 0] = (9, 9, 9)

    assert buffer.pixel(0, 0) == (255, 0, 0)
    assert tiny_rgb.flags.writeable


def test_load_missing_file(tmp_path):
    with pytest.raises(DecodeFailure):
        PixelBuffer.load(tmp_path / "missing.png")


def test_save_and_load(tmp_path, random_image):
    path = tmp_path / "out.png"
    random_image.save(path)
    assert PixelBuffer.load(path) == random_image


def test_save_failures_raise_encode_failure(tmp_path, random_image):
    blocker = tmp_path / "blocker"
    blocker.write_bytes(b"")
    with pytest.raises(EncodeFailure):
        random_image.save(blocker / "out.png")
    with pytest.raises(EncodeFailure):
        random_image.save(tmp_path / "out.unknown")


def test_to_image_modes(tiny_rgb):
    assert PixelBuffer(tiny_rgb).to_image().mode == "RGB"
    assert PixelBuffer(np.zeros((2, 2), dtype=np.uint8)).to_image().mode == "L"


def test_from_image_converts_palette():
    image = Image.new("P", (4, 3))
    buffer = PixelBuffer.from_image(image)
    assert buffer.shape == (3, 4, 3)


def test_hex_to_rgb():
    assert hex_to_rgb("#FF8000") == (255, 128, 0)
    assert hex_to_rgb("00ff00") == (0, 255, 0)
    assert hex_to_rgb("#f00") == (255, 0, 0)
    with pytest.raises(InvalidParameter):
        hex_to_rgb("#12345")
    with pytest.raises(InvalidParameter):
        hex_to_rgb("#GGGGGG")


def test_clip_and_dilate_bbox():
    assert clip_bbox((-5, -5, 10, 10), (20, 20)) == (0, 0, 5, 5)
    assert clip_bbox((30, 0, 5, 5), (20, 20)) is None
    assert dilate_bbox((5, 5, 10, 10), 10, (20, 30)) == (0, 0, 25, 20)
    assert dilate_bbox((5, 5, 10, 10), 2) == (3, 3, 14, 14)
