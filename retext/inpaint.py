"""Text removal by background inpainting.

The default ``flat`` method samples a band of pixels around a text box,
averages them and fills the whole box with that single color. It does no
texture synthesis and no feathering at the box boundary. The ``telea``
method fills the box with OpenCV's TELEA inpainting instead, which is
smoother on gradients but still uses only the surrounding pixels.
"""

import cv2
import numpy as np
from typing import Iterable, Literal, Optional, Sequence, Union

from .buffer import PixelBuffer
from .errors import InpaintFailure, InvalidParameter
from .ocr import TextRegion
from .utils import ImageArray, BBox, Color, setup_logger, clip_bbox, dilate_bbox

logger = setup_logger(__name__)

InpaintMethod = Literal["flat", "telea"]

DEFAULT_MARGIN = 10
FALLBACK_COLOR: Color = (255, 255, 255)
TELEA_RADIUS = 3

RegionLike = Union[TextRegion, BBox, Sequence[int]]


def remove_text(
    image: PixelBuffer,
    region: RegionLike,
    margin: int = DEFAULT_MARGIN,
    method: InpaintMethod = "flat"
) -> PixelBuffer:
    """Remove one text region from an image.

    Args:
        image: Input image, left untouched
        region: TextRegion or (x, y, width, height) box to remove
        margin: Width in pixels of the band sampled around the box
        method: "flat" (mean color fill) or "telea" (OpenCV inpainting)

    Returns:
        New image with the box filled

    Raises:
        InvalidParameter: If margin or method is invalid
    """
    return remove_text_regions(image, [region], margin=margin, method=method)

def remove_text_regions(
    image: PixelBuffer,
    regions: Iterable[RegionLike],
    margin: int = DEFAULT_MARGIN,
    method: InpaintMethod = "flat"
) -> PixelBuffer:
    """Remove several text regions from an image.

    Background colors are always sampled from the original image, so
    neighbouring fills never feed into each other.

    Args:
        image: Input image, left untouched
        regions: TextRegions or (x, y, width, height) boxes to remove
        margin: Width in pixels of the band sampled around each box
        method: "flat" (mean color fill) or "telea" (OpenCV inpainting)

    Returns:
        New image with every box filled

    Raises:
        InvalidParameter: If margin, method or a box is invalid
        InpaintFailure: If TELEA inpainting fails
    """
    if method not in ("flat", "telea"):
        raise InvalidParameter(f"Invalid inpainting method: {method}. Must be 'flat' or 'telea'")
    if isinstance(margin, bool) or not isinstance(margin, (int, np.integer)) or margin < 0:
        raise InvalidParameter(f"Inpainting margin must be a non-negative integer, got {margin!r}")

    original = image.data
    result = image.to_array()

    for region in regions:
        bbox = _as_bbox(region)
        box = clip_bbox(bbox, original.shape[:2])
        if box is None:
            logger.info(f"Region {bbox} lies outside the image - nothing to inpaint")
            continue

        color = sample_background(original, bbox, margin)
        if method == "telea" and color is not None:
            _fill_telea(result, original, box)
        else:
            _fill_flat(result, box, color or FALLBACK_COLOR)

    return PixelBuffer(result)

def sample_background(image: ImageArray, bbox: BBox, margin: int = DEFAULT_MARGIN) -> Optional[Color]:
    """Average the pixels in the band around a box.

    The band is the box dilated by ``margin`` and clipped to the image, minus
    the box itself.

    Args:
        image: Image array in RGB format (or H×W grayscale)
        bbox: Box as (x, y, width, height)
        margin: Band width in pixels

    Returns:
        Mean RGB color (each channel floored), or None if the band holds no pixels
    """
    img_h, img_w = image.shape[:2]
    ox, oy, ow, oh = dilate_bbox(bbox, margin, (img_h, img_w))
    if ow == 0 or oh == 0:
        return None

    window = image[oy:oy + oh, ox:ox + ow]
    keep = np.ones((oh, ow), dtype=bool)

    inner = clip_bbox(bbox, (img_h, img_w))
    if inner is not None:
        ix, iy, iw, ih = inner
        keep[iy - oy:iy - oy + ih, ix - ox:ix - ox + iw] = False

    count = int(keep.sum())
    if count == 0:
        logger.debug(f"No background pixels around {bbox}, using fallback color")
        return None

    samples = window[keep].astype(np.int64)
    totals = samples.sum(axis=0)
    if image.ndim == 2:
        value = int(totals) // count
        return (value, value, value)

    color = tuple(int(total) // count for total in totals)
    logger.debug(f"Sampled background {color} from {count} pixels around {bbox}")
    return color

def _as_bbox(region: RegionLike) -> BBox:
    if isinstance(region, TextRegion):
        return region.bbox

    try:
        x, y, w, h = (int(v) for v in region)
    except (TypeError, ValueError) as e:
        raise InvalidParameter(f"Region must be a TextRegion or (x, y, width, height), got {region!r}") from e
    return (x, y, w, h)

def _fill_flat(target: ImageArray, box: BBox, color: Color) -> None:
    x, y, w, h = box
    if target.ndim == 2:
        target[y:y + h, x:x + w] = color[0]
    else:
        target[y:y + h, x:x + w] = color
    logger.info(f"Filled region ({x},{y}) size {w}×{h} with {color}")

def _fill_telea(target: ImageArray, original: ImageArray, box: BBox) -> None:
    """Inpaint ``box`` of ``original`` with TELEA and copy it into ``target``."""
    x, y, w, h = box
    mask = np.zeros(original.shape[:2], dtype=np.uint8)
    mask[y:y + h, x:x + w] = 255

    try:
        painted = cv2.inpaint(np.ascontiguousarray(original), mask, TELEA_RADIUS, cv2.INPAINT_TELEA)
    except cv2.error as e:
        raise InpaintFailure(f"TELEA inpainting failed: {e}") from e

    target[y:y + h, x:x + w] = painted[y:y + h, x:x + w]
    logger.info(f"TELEA inpainted region ({x},{y}) size {w}×{h}")
