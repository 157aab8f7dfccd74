"""Shared utilities and type definitions for retext."""

import base64
import binascii
import re
import cv2
import numpy as np
from pathlib import Path
from typing import Optional, Tuple, Union
import logging

from .errors import DecodeFailure, EncodeFailure, InvalidParameter

# Type aliases for clarity
ImageArray = np.ndarray  # H×W×3 RGB uint8, or H×W grayscale uint8
Color = Tuple[int, int, int]  # RGB color tuple
BBox = Tuple[int, int, int, int]  # (x, y, width, height)
ImagePath = Union[str, Path]

# Supported image extensions
IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.tiff', '.tif', '.webp'}

# Output formats we know how to encode, mapped to OpenCV extensions
_ENCODE_EXTENSIONS = {
    'png': '.png',
    'jpg': '.jpg',
    'jpeg': '.jpg',
    'bmp': '.bmp',
    'tiff': '.tiff',
    'tif': '.tiff',
    'webp': '.webp',
}

_DATA_URL_PREFIX = re.compile(r'^\s*data:[^,]*,', re.IGNORECASE)
_NON_BASE64 = re.compile(r'[^A-Za-z0-9+/=]')


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Set up a logger with consistent formatting.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:  # Avoid duplicate handlers
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger

logger = setup_logger(__name__)

def _to_rgb(image: np.ndarray) -> ImageArray:
    """Convert an OpenCV-decoded array (BGR/BGRA/gray) to RGB or gray."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 1:
        return image[:, :, 0]
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGB)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

def _to_bgr(image: ImageArray) -> np.ndarray:
    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)

def load_image(image_path: ImagePath) -> ImageArray:
    """Load an image from file path.

    Args:
        image_path: Path to image file

    Returns:
        Image array in RGB format (or H×W for grayscale files)

    Raises:
        DecodeFailure: If image cannot be loaded
    """
    image = cv2.imread(str(image_path), cv2.IMREAD_ANYCOLOR)
    if image is None:
        raise DecodeFailure(f"Could not load image: {image_path}")
    return _to_rgb(image)

def decode_image_bytes(data: bytes) -> ImageArray:
    """Decode encoded raster bytes (PNG, JPEG, ...) into an RGB array.

    Args:
        data: Encoded image bytes

    Returns:
        Image array in RGB format (or H×W for grayscale images)

    Raises:
        DecodeFailure: If the bytes are empty or not a decodable image
    """
    if not data:
        raise DecodeFailure("No image data provided")

    buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    try:
        image = cv2.imdecode(buffer, cv2.IMREAD_ANYCOLOR)
    except cv2.error as e:
        raise DecodeFailure(f"Could not decode image bytes: {e}") from e

    if image is None:
        raise DecodeFailure(f"Could not decode image bytes ({len(data)} bytes)")

    logger.debug(f"Decoded image {image.shape[1]}×{image.shape[0]} from {len(data)} bytes")
    return _to_rgb(image)

def normalize_base64(text: str) -> str:
    """Normalize tolerant base64 input before decoding.

    Strips a ``data:<mime>;base64,`` prefix, drops every character outside
    the base64 alphabet and re-pads to a multiple of 4 characters.

    Args:
        text: Base64 text, optionally a data URL

    Returns:
        Cleaned base64 string
    """
    text = _DATA_URL_PREFIX.sub('', text, count=1)
    text = _NON_BASE64.sub('', text)

    # Padding only belongs at the end
    text = text.rstrip('=')
    remainder = len(text) % 4
    if remainder:
        text += '=' * (4 - remainder)
    return text

def decode_base64_image(text: Union[str, bytes]) -> ImageArray:
    """Decode base64 (or data URL) image text into an RGB array.

    Args:
        text: Base64 encoded image, optionally with a data URL prefix

    Returns:
        Image array in RGB format (or H×W for grayscale images)

    Raises:
        DecodeFailure: If the text is empty or does not decode to an image
    """
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode('ascii', errors='ignore')

    if not text or not text.strip():
        raise DecodeFailure("No image data provided")

    cleaned = normalize_base64(text)
    logger.debug(f"Processing base64 data, length: {len(cleaned)}")

    try:
        data = base64.b64decode(cleaned)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailure(f"Invalid base64 image data: {e}") from e

    return decode_image_bytes(data)

def encode_image(image: ImageArray, fmt: str = "png", quality: int = 97) -> bytes:
    """Encode an RGB (or grayscale) array into raster bytes.

    Args:
        image: Image array in RGB format
        fmt: Output format name ("png", "jpeg", ...)
        quality: JPEG/WebP quality

    Returns:
        Encoded image bytes

    Raises:
        InvalidParameter: If the format is not supported
        EncodeFailure: If encoding fails
    """
    ext = _ENCODE_EXTENSIONS.get(fmt.lower().lstrip('.'))
    if ext is None:
        raise InvalidParameter(f"Unsupported output format: {fmt}")

    try:
        success, encoded = cv2.imencode(ext, _to_bgr(image), _encode_params(ext, quality))
    except cv2.error as e:
        raise EncodeFailure(f"Could not encode image as {fmt}: {e}") from e
    if not success:
        raise EncodeFailure(f"Could not encode image as {fmt}")
    return encoded.tobytes()

def save_image(image: ImageArray, output_path: ImagePath, quality: int = 97) -> None:
    """Save an image to file with quality control.

    Args:
        image: Image array in RGB format
        output_path: Path where to save the image

    Raises:
        EncodeFailure: If image cannot be saved
    """
    output_path = Path(output_path)

    params = _encode_params(output_path.suffix.lower(), quality)
    try:
        success = cv2.imwrite(str(output_path), _to_bgr(image), params)
    except cv2.error as e:
        raise EncodeFailure(f"Could not save image to: {output_path}: {e}") from e
    if not success:
        raise EncodeFailure(f"Could not save image to: {output_path}")

def _encode_params(ext: str, quality: int) -> list:
    # Set compression parameters based on file extension
    if ext in {'.jpg', '.jpeg'}:
        return [cv2.IMWRITE_JPEG_QUALITY, quality]
    elif ext == '.png':
        # PNG with high compression (0-9, where 9 is max compression)
        return [cv2.IMWRITE_PNG_COMPRESSION, 8]
    elif ext == '.webp':
        return [cv2.IMWRITE_WEBP_QUALITY, quality]
    return []

def clip_bbox(bbox: BBox, image_shape: Tuple[int, int]) -> Optional[BBox]:
    """Intersect a bounding box with the image bounds.

    Args:
        bbox: Bounding box as (x, y, width, height)
        image_shape: Image shape as (height, width)

    Returns:
        Clipped bounding box, or None if nothing of the box lies inside the image
    """
    x, y, w, h = bbox
    img_h, img_w = image_shape

    x1 = max(0, x)
    y1 = max(0, y)
    x2 = min(img_w, x + w)
    y2 = min(img_h, y + h)

    if x2 <= x1 or y2 <= y1:
        return None
    return (x1, y1, x2 - x1, y2 - y1)

def dilate_bbox(bbox: BBox, dilation: int, image_shape: Optional[Tuple[int, int]] = None) -> BBox:
    """Dilate a bounding box by the specified amount.

    Args:
        bbox: Bounding box as (x, y, width, height)
        dilation: Number of pixels to dilate by
        image_shape: Optional image shape to clamp coordinates

    Returns:
        Dilated bounding box
    """
    x, y, w, h = bbox
    x1 = x - dilation
    y1 = y - dilation
    x2 = x + w + dilation
    y2 = y + h + dilation

    # Clamp to image bounds if provided
    if image_shape is not None:
        img_h, img_w = image_shape
        x1 = max(0, x1)
        y1 = max(0, y1)
        x2 = min(img_w, x2)
        y2 = min(img_h, y2)

    return (x1, y1, max(0, x2 - x1), max(0, y2 - y1))

def hex_to_rgb(hex_color: str) -> Color:
    """Convert hex color string to RGB tuple.

    Args:
        hex_color: Hex color string (e.g., "#FF0000", "FF0000" or "#F00")

    Returns:
        RGB color tuple

    Raises:
        InvalidParameter: If the string is not a hex color
    """
    value = hex_color.strip().lstrip('#')
    if len(value) == 3:
        value = ''.join(ch * 2 for ch in value)

    if len(value) != 6:
        raise InvalidParameter(f"Invalid hex color: {hex_color!r}")
    try:
        return tuple(int(value[i:i+2], 16) for i in (0, 2, 4))
    except ValueError as e:
        raise InvalidParameter(f"Invalid hex color: {hex_color!r}") from e
