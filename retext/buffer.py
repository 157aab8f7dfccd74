"""In-memory raster type shared by every retext operation.

A :class:`PixelBuffer` wraps a read-only ``uint8`` numpy array in RGB order
(``H×W×3``) or grayscale (``H×W``). Operations never modify a buffer in
place; they build a new one from a fresh array.
"""

from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from .errors import DecodeFailure, InvalidParameter
from .utils import (
    ImageArray, decode_base64_image, decode_image_bytes, encode_image, load_image, save_image
)

ImageSource = Union["PixelBuffer", np.ndarray, Image.Image, bytes, bytearray, str, Path]


class PixelBuffer:
    """An immutable RGB or grayscale raster.

    Attributes:
        width: Width in pixels
        height: Height in pixels
        channels: 3 for RGB, 1 for grayscale
    """

    __slots__ = ("_data",)

    def __init__(self, data: ImageArray):
        """Wrap a copy of ``data``; the caller keeps ownership of its array."""
        self._data = _validate_array(data)
        self._data.flags.writeable = False

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """Build a buffer from a copy of ``array`` (H×W, H×W×1, H×W×3 or H×W×4 RGB[A])."""
        array = np.asarray(array)
        if array.ndim == 3 and array.shape[2] == 4:
            array = array[:, :, :3]
        elif array.ndim == 3 and array.shape[2] == 1:
            array = array[:, :, 0]
        return cls(array)

    @classmethod
    def blank(cls, width: int, height: int, color=(255, 255, 255)) -> "PixelBuffer":
        """Create a uniform RGB buffer."""
        if width <= 0 or height <= 0:
            raise InvalidParameter(f"Buffer dimensions must be positive, got {width}×{height}")
        data = np.empty((height, width, 3), dtype=np.uint8)
        data[:, :] = color
        return cls(data)

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        """Build a buffer from a PIL image."""
        if image.mode not in ("L", "RGB"):
            image = image.convert("RGB")
        return cls(np.array(image, dtype=np.uint8))

    @classmethod
    def from_bytes(cls, data: bytes) -> "PixelBuffer":
        """Decode encoded raster bytes."""
        return cls(decode_image_bytes(data))

    @classmethod
    def from_base64(cls, text: str) -> "PixelBuffer":
        """Decode base64 image text, optionally a data URL."""
        return cls(decode_base64_image(text))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "PixelBuffer":
        return cls(load_image(path))

    @classmethod
    def from_source(cls, source: ImageSource) -> "PixelBuffer":
        """Build a buffer from any supported image source.

        Strings naming an existing file are loaded from disk; any other
        string is treated as base64 image text. Bytes that are not an
        encoded raster are tried as base64 text.

        Raises:
            DecodeFailure: If the source cannot be decoded
        """
        if isinstance(source, PixelBuffer):
            return source
        if isinstance(source, np.ndarray):
            return cls.from_array(source)
        if isinstance(source, Image.Image):
            return cls.from_image(source)
        if isinstance(source, (bytes, bytearray)):
            try:
                return cls.from_bytes(bytes(source))
            except DecodeFailure as e:
                # Base64 text may arrive as bytes too
                try:
                    return cls.from_base64(bytes(source))
                except DecodeFailure:
                    raise e from None
        if isinstance(source, Path):
            return cls.load(source)
        if isinstance(source, str):
            if len(source) < 4096 and _is_file(source):
                return cls.load(source)
            return cls.from_base64(source)
        raise DecodeFailure(f"Unsupported image source: {type(source).__name__}")

    @property
    def data(self) -> ImageArray:
        """Read-only view of the samples."""
        return self._data

    @property
    def width(self) -> int:
        return self._data.shape[1]

    @property
    def height(self) -> int:
        return self._data.shape[0]

    @property
    def channels(self) -> int:
        return 1 if self._data.ndim == 2 else self._data.shape[2]

    @property
    def shape(self):
        return self._data.shape

    @property
    def is_grayscale(self) -> bool:
        return self.channels == 1

    def to_array(self) -> ImageArray:
        """Return a writable copy of the samples."""
        return self._data.copy()

    def to_rgb_array(self) -> ImageArray:
        """Return a writable H×W×3 copy, expanding grayscale if needed."""
        if self.is_grayscale:
            return np.repeat(self._data[:, :, np.newaxis], 3, axis=2)
        return self._data.copy()

    def to_image(self) -> Image.Image:
        """Return the samples as a PIL image ("L" or "RGB")."""
        return Image.fromarray(self._data.copy())

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self._data.copy())

    def pixel(self, x: int, y: int):
        """Return the sample tuple at column ``x``, row ``y``."""
        value = self._data[y, x]
        if self.is_grayscale:
            return (int(value),)
        return tuple(int(v) for v in value)

    def encode(self, fmt: str = "png") -> bytes:
        return encode_image(self._data, fmt)

    def save(self, path: Union[str, Path]) -> None:
        save_image(self._data, path)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self._data, other._data)

    __hash__ = None

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}×{self.height}, channels={self.channels})"


def _validate_array(data: np.ndarray) -> np.ndarray:
    if not isinstance(data, np.ndarray):
        raise InvalidParameter(f"Pixel data must be a numpy array, got {type(data).__name__}")

    if data.ndim not in (2, 3) or (data.ndim == 3 and data.shape[2] != 3):
        raise InvalidParameter(f"Pixel data must be H×W or H×W×3, got shape {data.shape}")

    if data.shape[0] == 0 or data.shape[1] == 0:
        raise InvalidParameter(f"Pixel data must not be empty, got shape {data.shape}")

    if data.dtype != np.uint8:
        if not np.issubdtype(data.dtype, np.integer):
            raise InvalidParameter(f"Pixel data must be integer samples, got {data.dtype}")
        if data.min() < 0 or data.max() > 255:
            raise InvalidParameter("Pixel samples must lie in [0, 255]")

    # The buffer never shares memory with the caller
    return np.array(data, dtype=np.uint8, order="C", copy=True)


def _is_file(text: str) -> bool:
    try:
        return Path(text).is_file()
    except (OSError, ValueError):
        # Base64 text can exceed the file name length limit
        return False
