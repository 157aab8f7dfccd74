"""Settings for building an editor at the composition root."""

import argparse
from dataclasses import dataclass, field
from typing import Tuple

from .compositor import TextStyle
from .errors import InvalidParameter
from .inpaint import DEFAULT_MARGIN
from .ocr import OcrConfig


@dataclass(frozen=True)
class EditorConfig:
    """Everything an :class:`~retext.workflow.EditWorkflow` needs besides its engine.

    Attributes:
        ocr: Tesseract engine settings
        inpaint_margin: Width of the background band sampled around removed text
        inpaint_method: "flat" or "telea"
        default_style: Style used when a caller supplies none
        default_anchor: Anchor used by add-text when a caller supplies none
        output_format: Encoding for edited images
        clamp_anchor: Keep replacement text anchors inside the image
    """

    ocr: OcrConfig = field(default_factory=OcrConfig)
    inpaint_margin: int = DEFAULT_MARGIN
    inpaint_method: str = "flat"
    default_style: TextStyle = field(default_factory=TextStyle)
    default_anchor: Tuple[int, int] = (50, 50)
    output_format: str = "png"
    clamp_anchor: bool = True

    def __post_init__(self):
        if self.inpaint_margin < 0:
            raise InvalidParameter(f"inpaint_margin must be non-negative, got {self.inpaint_margin}")
        if self.inpaint_method not in ("flat", "telea"):
            raise InvalidParameter(f"inpaint_method must be 'flat' or 'telea', got {self.inpaint_method!r}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "EditorConfig":
        """Build a config from parsed command line arguments."""
        ocr_defaults = OcrConfig()
        candidates = ocr_defaults.data_path_candidates
        tessdata = getattr(args, "tessdata", None)
        if tessdata:
            candidates = (tessdata,) + candidates

        ocr = OcrConfig(
            data_path_candidates=candidates,
            language=getattr(args, "lang", None) or ocr_defaults.language,
            tesseract_cmd=getattr(args, "tesseract_cmd", None),
        )
        margin = getattr(args, "margin", None)
        return cls(
            ocr=ocr,
            inpaint_margin=DEFAULT_MARGIN if margin is None else margin,
            inpaint_method=getattr(args, "inpaint", None) or "flat",
        )
