"""Retext: photo filters plus detection, removal and replacement of text in images.

This package provides an in-memory image editing core: a pixel filter
pipeline, a Tesseract-backed text region adapter, flat background inpainting
and Pillow text compositing, tied together by editing workflows.
"""

__version__ = "0.1.0"
__author__ = "Retext Team"

# Main pipeline components
from .errors import (
    RetextError,
    DecodeFailure,
    InvalidParameter,
    EncodeFailure,
    InpaintFailure,
    UnsupportedFilter,
    TextNotFound,
    EngineUnavailable
)
from .buffer import PixelBuffer
from .filters import FilterKind, FilterSpec, apply_filter, apply_filters
from .ocr import TextRegion, DetectionResult, OcrConfig, TesseractEngine, TextRegionAdapter
from .inpaint import remove_text, remove_text_regions, sample_background
from .compositor import FontStyle, TextStyle, TextCompositor, draw_text
from .config import EditorConfig
from .workflow import EditResult, EditWorkflow, find_region
from .utils import decode_base64_image, encode_image, load_image, save_image, setup_logger

# CLI entry point
from .cli import main

__all__ = [
    "RetextError",
    "DecodeFailure",
    "InvalidParameter",
    "EncodeFailure",
    "InpaintFailure",
    "UnsupportedFilter",
    "TextNotFound",
    "EngineUnavailable",
    "PixelBuffer",
    "FilterKind",
    "FilterSpec",
    "apply_filter",
    "apply_filters",
    "TextRegion",
    "DetectionResult",
    "OcrConfig",
    "TesseractEngine",
    "TextRegionAdapter",
    "remove_text",
    "remove_text_regions",
    "sample_background",
    "FontStyle",
    "TextStyle",
    "TextCompositor",
    "draw_text",
    "EditorConfig",
    "EditResult",
    "EditWorkflow",
    "find_region",
    "decode_base64_image",
    "encode_image",
    "load_image",
    "save_image",
    "setup_logger",
    "main",
]
