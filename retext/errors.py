"""Exception types raised by retext.

Every error derives from :class:`RetextError` and also from the builtin
exception a caller would naturally catch (``ValueError`` for bad input or output,
``LookupError`` for a missing match, ``RuntimeError`` for engine trouble).
"""

from typing import Optional


class RetextError(Exception):
    """Base class for all retext errors."""


class DecodeFailure(RetextError, ValueError):
    """Image bytes could not be decoded into a raster."""


class InvalidParameter(RetextError, ValueError):
    """A numeric or style parameter is malformed or out of range."""


class EncodeFailure(RetextError, ValueError):
    """An image could not be encoded or written to disk."""


class InpaintFailure(RetextError, RuntimeError):
    """OpenCV inpainting failed on a region."""


class UnsupportedFilter(RetextError, ValueError):
    """The requested filter kind is not known."""

    def __init__(self, kind: str):
        super().__init__(f"Unsupported filter type: {kind}")
        self.kind = kind


class TextNotFound(RetextError, LookupError):
    """No detected text region matched the requested text."""

    def __init__(self, target: str):
        super().__init__(f"Text not found in image: {target}")
        self.target = target


class EngineUnavailable(RetextError, RuntimeError):
    """The OCR engine could not be initialized or failed while running."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
