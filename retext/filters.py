"""Pixel filter pipeline.

This module implements the per-pixel and per-window filters that can be
applied to a :class:`~retext.buffer.PixelBuffer`:

- Brightness: multiplicative channel scaling, clamped to [0, 255]
- Contrast: the same multiplicative scaling (kept for output compatibility)
- Grayscale: ITU-R 601 luma replicated into all three channels
- Sepia: fixed 3×3 color matrix, clamped at 255
- Blur: box blur over a (2r+1)×(2r+1) window clipped at the image edges

Every filter is a value transform: the input buffer is never modified and
the output always has the input's width and height.
"""

import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Union

import numpy as np

from .buffer import PixelBuffer
from .errors import InvalidParameter, UnsupportedFilter
from .utils import setup_logger

logger = setup_logger(__name__)

# Luma and sepia weights in thousandths, so results truncate exactly
_LUMA_WEIGHTS = np.array([299, 587, 114], dtype=np.int64)
_SEPIA_MATRIX = np.array([
    [393, 769, 189],
    [349, 686, 168],
    [272, 534, 131],
], dtype=np.int64)


class FilterKind(Enum):
    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    GRAYSCALE = "grayscale"
    SEPIA = "sepia"
    BLUR = "blur"

    @classmethod
    def parse(cls, name: str) -> "FilterKind":
        """Look up a filter kind by its case-insensitive name.

        Raises:
            UnsupportedFilter: If no filter has that name
        """
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise UnsupportedFilter(name) from None


@dataclass(frozen=True)
class FilterSpec:
    """A filter kind together with its parameter.

    ``value`` is the factor for brightness/contrast, the radius for blur and
    ``None`` for grayscale and sepia. Use the named constructors, which
    validate the parameter.
    """

    kind: FilterKind
    value: Optional[Union[float, int]] = None

    @classmethod
    def brightness(cls, factor: float) -> "FilterSpec":
        return cls(FilterKind.BRIGHTNESS, _check_factor(factor))

    @classmethod
    def contrast(cls, factor: float) -> "FilterSpec":
        return cls(FilterKind.CONTRAST, _check_factor(factor))

    @classmethod
    def grayscale(cls) -> "FilterSpec":
        return cls(FilterKind.GRAYSCALE)

    @classmethod
    def sepia(cls) -> "FilterSpec":
        return cls(FilterKind.SEPIA)

    @classmethod
    def blur(cls, radius: int) -> "FilterSpec":
        return cls(FilterKind.BLUR, _check_radius(radius))

    @classmethod
    def parse(cls, kind: Union[str, FilterKind], value: Optional[str] = None) -> "FilterSpec":
        """Build a filter spec from caller-supplied text.

        Args:
            kind: Filter name ("brightness", "contrast", "grayscale", "sepia", "blur")
            value: Parameter text; a float for brightness/contrast, an integer
                for blur, ignored for grayscale/sepia

        Returns:
            Validated filter spec

        Raises:
            UnsupportedFilter: If the kind is unknown
            InvalidParameter: If the value is missing, non-numeric or out of range
        """
        if not isinstance(kind, FilterKind):
            kind = FilterKind.parse(kind)

        if kind in (FilterKind.GRAYSCALE, FilterKind.SEPIA):
            return cls(kind)

        if value is None or not str(value).strip():
            raise InvalidParameter(f"Filter '{kind.value}' requires a value")

        text = str(value).strip()
        if kind is FilterKind.BLUR:
            try:
                radius = int(text)
            except ValueError:
                raise InvalidParameter(f"Blur radius must be an integer, got {text!r}") from None
            return cls.blur(radius)

        try:
            factor = float(text)
        except ValueError:
            raise InvalidParameter(f"Filter factor must be a number, got {text!r}") from None
        if kind is FilterKind.BRIGHTNESS:
            return cls.brightness(factor)
        return cls.contrast(factor)

    def __str__(self) -> str:
        if self.value is None:
            return self.kind.value
        return f"{self.kind.value}({self.value})"


def _check_factor(factor) -> float:
    if isinstance(factor, bool) or not isinstance(factor, numbers.Real):
        raise InvalidParameter(f"Filter factor must be a number, got {factor!r}")
    factor = float(factor)
    if not math.isfinite(factor) or factor < 0:
        raise InvalidParameter(f"Filter factor must be a finite number >= 0, got {factor}")
    return factor

def _check_radius(radius) -> int:
    if isinstance(radius, bool) or not isinstance(radius, numbers.Integral):
        raise InvalidParameter(f"Blur radius must be an integer, got {radius!r}")
    radius = int(radius)
    if radius < 0:
        raise InvalidParameter(f"Blur radius must be >= 0, got {radius}")
    return radius

def apply_filter(buffer: PixelBuffer, spec: FilterSpec) -> PixelBuffer:
    """Apply a single filter to a buffer.

    Args:
        buffer: Input raster, left untouched
        spec: Filter to apply

    Returns:
        New buffer with the same width and height

    Raises:
        UnsupportedFilter: If the filter kind has no implementation
        InvalidParameter: If the filter value is out of range
    """
    handler = _FILTERS.get(spec.kind)
    if handler is None:
        raise UnsupportedFilter(str(spec.kind))

    logger.debug(f"Applying {spec} to {buffer.width}×{buffer.height} image")
    return PixelBuffer(handler(buffer.data, spec.value))

def apply_filters(buffer: PixelBuffer, specs: Iterable[FilterSpec]) -> PixelBuffer:
    """Apply several filters in order."""
    result = buffer
    for spec in specs:
        result = apply_filter(result, spec)
    return result

def _scale(data: np.ndarray, factor: Optional[float]) -> np.ndarray:
    """Multiply every channel by ``factor`` and truncate into [0, 255]."""
    factor = _check_factor(factor)
    if factor == 1.0:
        return data.copy()

    # Single precision matches the reference output bit for bit
    scaled = data.astype(np.float32) * np.float32(factor)
    return np.clip(scaled, 0, 255).astype(np.uint8)

def _grayscale(data: np.ndarray, _value=None) -> np.ndarray:
    if data.ndim == 2:
        return data.copy()
    luma = (data.astype(np.int64) @ _LUMA_WEIGHTS) // 1000
    return np.repeat(luma.astype(np.uint8)[:, :, np.newaxis], 3, axis=2)

def _sepia(data: np.ndarray, _value=None) -> np.ndarray:
    if data.ndim == 2:
        data = np.repeat(data[:, :, np.newaxis], 3, axis=2)
    toned = (data.astype(np.int64) @ _SEPIA_MATRIX.T) // 1000
    return np.minimum(toned, 255).astype(np.uint8)

def _box_blur(data: np.ndarray, radius: Optional[int]) -> np.ndarray:
    """Box blur using a summed-area table.

    Produces exactly the floor of the mean over each clipped window, the same
    values a direct per-window average gives, in O(width·height) time.
    """
    radius = _check_radius(radius)
    if radius == 0:
        return data.copy()

    squeeze = data.ndim == 2
    samples = data[:, :, np.newaxis] if squeeze else data
    h, w = samples.shape[:2]

    # table[y, x] = sum of samples[:y, :x]
    table = np.zeros((h + 1, w + 1, samples.shape[2]), dtype=np.int64)
    table[1:, 1:] = samples.astype(np.int64).cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(h)
    cols = np.arange(w)
    y0 = np.clip(rows - radius, 0, h)
    y1 = np.clip(rows + radius + 1, 0, h)
    x0 = np.clip(cols - radius, 0, w)
    x1 = np.clip(cols + radius + 1, 0, w)

    sums = (
        table[np.ix_(y1, x1)]
        - table[np.ix_(y0, x1)]
        - table[np.ix_(y1, x0)]
        + table[np.ix_(y0, x0)]
    )
    counts = np.outer(y1 - y0, x1 - x0)[:, :, np.newaxis]
    blurred = (sums // counts).astype(np.uint8)

    return blurred[:, :, 0] if squeeze else blurred


_FILTERS: Dict[FilterKind, Callable[[np.ndarray, Optional[Union[float, int]]], np.ndarray]] = {
    FilterKind.BRIGHTNESS: _scale,
    # TODO: switch to a mean-centered stretch once callers stop relying on the scaling output
    FilterKind.CONTRAST: _scale,
    FilterKind.GRAYSCALE: _grayscale,
    FilterKind.SEPIA: _sepia,
    FilterKind.BLUR: _box_blur,
}
