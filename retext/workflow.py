"""Editing use cases built from detection, inpainting, compositing and filters.

``EditWorkflow`` is constructed once at the composition root with an
injected :class:`~retext.ocr.TextRegionAdapter` and an
:class:`~retext.config.EditorConfig`. Every use case takes an image, leaves
it untouched and returns an :class:`EditResult` carrying the new image plus
the name and format a persistence layer needs to store it as a new artifact.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .buffer import PixelBuffer
from .compositor import TextCompositor, TextStyle
from .config import EditorConfig
from .errors import TextNotFound
from .filters import FilterSpec, apply_filter
from .inpaint import remove_text
from .ocr import TextRegion, TextRegionAdapter
from .utils import setup_logger

logger = setup_logger(__name__)

_FORMAT_EXTENSIONS = {"jpeg": "jpg", "tif": "tiff"}


@dataclass(frozen=True)
class EditResult:
    """An edited image and the metadata needed to store it.

    Attributes:
        image: The new image
        name: Derived file name, e.g. "edited_1700000000000.png"
        display_name: Human readable name derived from the source name
        format: Encoding format for ``encode()``
        region: The text region that was replaced, for replace-text results
    """

    image: PixelBuffer
    name: str
    display_name: str
    format: str = "png"
    region: Optional[TextRegion] = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def encode(self) -> bytes:
        """Encode the image in this result's format."""
        return self.image.encode(self.format)


def find_region(regions: Iterable[TextRegion], target: str) -> Optional[TextRegion]:
    """Return the first region whose text equals ``target``, ignoring case."""
    wanted = target.casefold()
    for region in regions:
        if region.text.casefold() == wanted:
            return region
    return None


class EditWorkflow:
    """Orchestrates the replace-text, add-text and filter use cases."""

    def __init__(
        self,
        adapter: Optional[TextRegionAdapter] = None,
        config: Optional[EditorConfig] = None,
        compositor: Optional[TextCompositor] = None
    ):
        self.config = config or EditorConfig()
        self.adapter = adapter or TextRegionAdapter(config=self.config.ocr)
        self.compositor = compositor or TextCompositor()

    def replace_text(
        self,
        image,
        target: str,
        replacement: str,
        style: Optional[TextStyle] = None,
        source_name: str = "image"
    ) -> EditResult:
        """Replace the first occurrence of ``target`` with ``replacement``.

        Detects text, picks the first region (in detection order) whose text
        matches ``target`` case-insensitively, fills it with the surrounding
        background color and draws ``replacement`` with its baseline at the
        region's bottom-left corner.

        Args:
            image: Source image (PixelBuffer or any decodable source)
            target: Text to find
            replacement: Text to draw in its place
            style: Text style, defaults to the configured default style
            source_name: Name of the source artifact, used for the display name

        Returns:
            Edit result holding the new image and the replaced region

        Raises:
            TextNotFound: If no detected region matches ``target``
            DecodeFailure: If the image cannot be decoded
        """
        buffer = PixelBuffer.from_source(image)

        detection = self.adapter.detect_regions(buffer)
        if not detection.ok:
            logger.warning(f"Text detection failed, treating image as having no text: {detection.error}")

        region = find_region(detection.regions, target)
        if region is None:
            logger.info(f"Text '{target}' not found among {len(detection.regions)} regions")
            raise TextNotFound(target)

        logger.info(f"Replacing {region}")
        cleaned = remove_text(
            buffer, region,
            margin=self.config.inpaint_margin,
            method=self.config.inpaint_method,
        )

        x, y = region.x, region.y + region.height
        if self.config.clamp_anchor:
            x, y = _clamp_anchor(x, y, buffer)

        composed = self.compositor.draw(cleaned, replacement, x, y, style or self.config.default_style)
        return EditResult(
            image=composed,
            name=self._derived_name("edited"),
            display_name=f"{source_name} (Text Edited)",
            format=self.config.output_format,
            region=region,
        )

    def add_text(
        self,
        image,
        text: str,
        x: Optional[int] = None,
        y: Optional[int] = None,
        style: Optional[TextStyle] = None,
        source_name: str = "image"
    ) -> EditResult:
        """Draw ``text`` onto the unmodified image.

        Args:
            image: Source image (PixelBuffer or any decodable source)
            text: Text to draw
            x: Baseline start column, defaults to the configured anchor (50)
            y: Baseline row, defaults to the configured anchor (50)
            style: Text style, defaults to the configured default style
            source_name: Name of the source artifact, used for the display name
        """
        buffer = PixelBuffer.from_source(image)
        default_x, default_y = self.config.default_anchor
        x = default_x if x is None else x
        y = default_y if y is None else y

        composed = self.compositor.draw(buffer, text, x, y, style or self.config.default_style)
        return EditResult(
            image=composed,
            name=self._derived_name("added_text"),
            display_name=f"{source_name} (Text Added)",
            format=self.config.output_format,
        )

    def apply_filter(
        self,
        image,
        kind: Union[str, FilterSpec],
        value: Optional[str] = None,
        source_name: str = "image"
    ) -> EditResult:
        """Apply one filter, given as a FilterSpec or as kind/value text.

        Raises:
            UnsupportedFilter: If the kind is unknown
            InvalidParameter: If the value is missing or out of range
        """
        spec = kind if isinstance(kind, FilterSpec) else FilterSpec.parse(kind, value)
        buffer = PixelBuffer.from_source(image)

        logger.info(f"Applying filter {spec}")
        filtered = apply_filter(buffer, spec)
        return EditResult(
            image=filtered,
            name=f"filtered_{uuid.uuid4()}.{self._extension()}",
            display_name=f"{source_name} ({spec.kind.value.title()})",
            format=self.config.output_format,
        )

    def detect_text(self, image) -> List[TextRegion]:
        """Detected regions in engine order; empty when the engine is unavailable."""
        return list(self.adapter.detect(image))

    def extract_text(self, image) -> str:
        """Plain text of the image; raises EngineUnavailable when OCR fails."""
        return self.adapter.extract_text(image)

    def health(self) -> Dict[str, Any]:
        available = self.adapter.is_available()
        return {
            "status": "healthy" if available else "unhealthy",
            "ocr_available": available,
            "timestamp": datetime.now().isoformat(),
        }

    def _derived_name(self, prefix: str) -> str:
        return f"{prefix}_{int(time.time() * 1000)}.{self._extension()}"

    def _extension(self) -> str:
        fmt = self.config.output_format.lower()
        return _FORMAT_EXTENSIONS.get(fmt, fmt)


def _clamp_anchor(x: int, y: int, image: PixelBuffer) -> Tuple[int, int]:
    """Keep an anchor inside the image bounds."""
    clamped = (min(max(x, 0), image.width - 1), min(max(y, 0), image.height - 1))
    if clamped != (x, y):
        logger.info(f"Clamped text anchor ({x},{y}) to {clamped}")
    return clamped
