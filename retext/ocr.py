"""Text region detection using Tesseract.

This module adapts the Tesseract OCR engine (through pytesseract) into a
sequence of :class:`TextRegion` values that the rest of retext consumes.

Two contracts are offered:

- ``detect_regions`` returns a :class:`DetectionResult` that reports engine
  failures explicitly, and ``detect`` is its fail-soft generator form that
  yields nothing when the engine is broken.
- ``extract_text`` is fail-hard and raises :class:`EngineUnavailable`, since
  its callers need to tell "no text" apart from "engine broken".

Regions come back in engine scan order. Do not assume reading order.
"""

import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pytesseract
from PIL import Image

from .buffer import PixelBuffer
from .errors import DecodeFailure, EngineUnavailable, RetextError
from .utils import BBox, setup_logger

logger = setup_logger(__name__)

# Tesseract image_to_data row levels
LEVEL_PAGE = 1
LEVEL_BLOCK = 2
LEVEL_PARAGRAPH = 3
LEVEL_LINE = 4
LEVEL_WORD = 5

# pytesseract keeps the executable path in a module global, so every engine
# call runs under one process-wide lock with its own command swapped in
_ENGINE_LOCK = threading.Lock()

# Below this many characters the grayscale pass is retried on the original
MIN_EXTRACTED_CHARS = 3


def _default_data_paths() -> Tuple[str, ...]:
    cwd = os.getcwd()
    return (
        "/app/tessdata",  # container image path
        "./tessdata",
        "tessdata",
        os.path.join(cwd, "tessdata"),
        os.path.join(cwd, "src", "main", "resources", "tessdata"),
    )


@dataclass(frozen=True)
class TextRegion:
    """A piece of recognized text and where it sits in the image.

    Attributes:
        text: Recognized text, stripped of surrounding whitespace
        x: Left edge in pixels
        y: Top edge in pixels
        width: Box width in pixels
        height: Box height in pixels
        confidence: Recognition confidence in [0, 1]
    """

    text: str
    x: int
    y: int
    width: int
    height: int
    confidence: float = 0.0

    @property
    def bbox(self) -> BBox:
        return (self.x, self.y, self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "confidence": self.confidence,
        }

    def __str__(self) -> str:
        return (f"Text: '{self.text}' at ({self.x},{self.y}) size {self.width}×{self.height} "
                f"confidence: {self.confidence:.2f}")


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one detection pass.

    ``error`` is set when the image could not be decoded or the engine
    failed; ``regions`` is then empty.
    """

    regions: Tuple[TextRegion, ...] = ()
    error: Optional[RetextError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator[TextRegion]:
        return iter(self.regions)

    def __len__(self) -> int:
        return len(self.regions)


@dataclass(frozen=True)
class OcrConfig:
    """Settings for constructing a Tesseract engine.

    Attributes:
        data_path_candidates: Directories searched in order for tessdata
        language: Tesseract language code
        engine_mode: OCR engine mode (``--oem``), 1 = LSTM only
        page_seg_mode: Page segmentation mode (``--psm``), 6 = single uniform block
        level: image_to_data row level reported as regions (5 = words)
        tesseract_cmd: Optional path to the tesseract executable
    """

    data_path_candidates: Tuple[str, ...] = field(default_factory=_default_data_paths)
    language: str = "eng"
    engine_mode: int = 1
    page_seg_mode: int = 6
    level: int = LEVEL_WORD
    tesseract_cmd: Optional[str] = None

    def resolve_data_path(self) -> Optional[Path]:
        """Return the first candidate that is an existing directory."""
        for candidate in self.data_path_candidates:
            path = Path(candidate)
            if path.is_dir():
                logger.info(f"Tessdata found at: {path}")
                return path
            logger.debug(f"Tessdata not found at: {path}")

        logger.info("Tessdata not found in any candidate path, using engine defaults")
        return None


class TesseractEngine:
    """Thin, thread-safe wrapper around pytesseract.

    Instances may be shared across worker threads. Calls from all engines
    are serialized with one lock, because pytesseract reads the executable
    path from the module global ``pytesseract.pytesseract.tesseract_cmd``.
    An engine with ``tesseract_cmd`` set swaps it in for the duration of
    each call and restores the previous value afterwards, so engines with
    different commands do not overwrite each other.
    """

    def __init__(self, config: Optional[OcrConfig] = None):
        self.config = config or OcrConfig()
        self.data_path = self.config.resolve_data_path()

    @contextmanager
    def _engine_call(self):
        with _ENGINE_LOCK:
            previous = pytesseract.pytesseract.tesseract_cmd
            if self.config.tesseract_cmd:
                pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
            try:
                yield
            finally:
                pytesseract.pytesseract.tesseract_cmd = previous

    @property
    def tesseract_config(self) -> str:
        """Command line flags passed to tesseract."""
        flags = f"--oem {self.config.engine_mode} --psm {self.config.page_seg_mode}"
        if self.data_path is not None:
            flags += f' --tessdata-dir "{self.data_path}"'
        return flags

    def image_to_data(self, image: Image.Image) -> Dict[str, List[Any]]:
        """Run word-level recognition and return pytesseract's dict output.

        Raises:
            EngineUnavailable: If tesseract is missing or fails
        """
        with self._engine_call():
            try:
                return pytesseract.image_to_data(
                    image,
                    lang=self.config.language,
                    config=self.tesseract_config,
                    output_type=pytesseract.Output.DICT,
                )
            except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
                raise EngineUnavailable(f"Tesseract detection failed: {e}", cause=e) from e

    def image_to_string(self, image: Image.Image) -> str:
        """Run recognition and return the plain text.

        Raises:
            EngineUnavailable: If tesseract is missing or fails
        """
        with self._engine_call():
            try:
                return pytesseract.image_to_string(
                    image,
                    lang=self.config.language,
                    config=self.tesseract_config,
                )
            except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
                raise EngineUnavailable(f"Tesseract extraction failed: {e}", cause=e) from e


class TextRegionAdapter:
    """Converts OCR engine output into :class:`TextRegion` values.

    The engine is any object with ``image_to_data(pil_image)`` returning a
    pytesseract-style dict and ``image_to_string(pil_image)`` returning text.
    When no engine is given a :class:`TesseractEngine` is built from
    ``config``.
    """

    def __init__(self, engine=None, config: Optional[OcrConfig] = None):
        self.config = config or OcrConfig()
        self.engine = engine if engine is not None else TesseractEngine(self.config)

    def detect_regions(self, image) -> DetectionResult:
        """Run one detection pass and report failures explicitly.

        Args:
            image: PixelBuffer, RGB array, PIL image, encoded bytes, base64 text or path

        Returns:
            Detection result holding the regions, or the error that prevented detection
        """
        try:
            pil_image = PixelBuffer.from_source(image).to_image()
        except DecodeFailure as e:
            logger.error(f"Error detecting text regions: {e}")
            return DetectionResult(error=e)

        logger.info(f"Starting text region detection ({pil_image.width}×{pil_image.height})")
        try:
            data = self.engine.image_to_data(pil_image)
            regions = tuple(self._parse_rows(data))
        except EngineUnavailable as e:
            logger.error(f"Error detecting text regions: {e}")
            return DetectionResult(error=e)
        except Exception as e:
            logger.error(f"Error detecting text regions: {e}")
            return DetectionResult(error=EngineUnavailable(f"OCR engine failed: {e}", cause=e))

        logger.info(f"OCR completed, found {len(regions)} text regions")
        return DetectionResult(regions=regions)

    def detect(self, image) -> Iterator[TextRegion]:
        """Yield detected regions in engine scan order, or nothing on failure.

        The detection pass runs when iteration starts; the returned iterator
        cannot be restarted.
        """
        result = self.detect_regions(image)
        if not result.ok:
            logger.warning(f"Text detection unavailable, returning no regions: {result.error}")
            return
        yield from result.regions

    def extract_text(self, image) -> str:
        """Extract plain text from an image.

        The image is first recognized as grayscale; when that yields fewer
        than three characters the original image is tried as well.

        Returns:
            Recognized text with surrounding whitespace stripped, "" if none

        Raises:
            DecodeFailure: If the image cannot be decoded
            EngineUnavailable: If the OCR engine fails
        """
        original = PixelBuffer.from_source(image).to_image()
        try:
            text = self.engine.image_to_string(original.convert("L")).strip()
            if len(text) < MIN_EXTRACTED_CHARS:
                logger.debug("Grayscale pass found little text, retrying on original image")
                text = self.engine.image_to_string(original).strip()
        except EngineUnavailable:
            raise
        except Exception as e:
            raise EngineUnavailable(f"Failed to extract text - {e}", cause=e) from e

        logger.info(f"Extracted {len(text)} characters of text")
        return text

    def is_available(self) -> bool:
        """Check whether the engine can run by recognizing a small blank image."""
        try:
            self.engine.image_to_string(Image.new("RGB", (100, 50), color="white"))
            return True
        except Exception as e:
            logger.warning(f"OCR engine not available: {e}")
            return False

    def _parse_rows(self, data: Dict[str, List[Any]]) -> Iterator[TextRegion]:
        """Turn pytesseract's column-oriented dict into regions."""
        levels = data.get("level")
        for i, raw_text in enumerate(data["text"]):
            if levels is not None and int(levels[i]) != self.config.level:
                continue

            text = str(raw_text or "").strip()
            if not text:
                continue

            conf = float(data["conf"][i])
            if conf < 0:
                # Tesseract marks non-text rows with -1
                continue

            yield TextRegion(
                text=text,
                x=int(data["left"][i]),
                y=int(data["top"][i]),
                width=int(data["width"][i]),
                height=int(data["height"][i]),
                confidence=min(conf / 100.0, 1.0),
            )
