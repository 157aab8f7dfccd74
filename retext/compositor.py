"""Text compositing onto images.

Text is drawn with Pillow with its left baseline at the requested anchor.
Fonts are looked up by family name among the installed TrueType fonts; an
unknown family falls back to the platform default instead of failing. When a
family has no bold or italic face, bold is emulated with a thin stroke and
italic with a horizontal shear of the rendered text.

The compositor does no wrapping, no collision detection and no contrast
adjustment. Legible placement is up to the caller.
"""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .buffer import PixelBuffer
from .errors import InvalidParameter
from .utils import Color, hex_to_rgb, setup_logger

logger = setup_logger(__name__)

DEFAULT_FAMILY = "default"
DEFAULT_SIZE = 20
DEFAULT_COLOR: Color = (0, 0, 0)

# Horizontal shear applied to emulate italics
ITALIC_SHEAR = 0.2

# Fonts tried, in order, when the default family is requested
DEFAULT_FONT_NAMES = ["DejaVuSans", "LiberationSans", "Arial", "Helvetica"]

# Directories scanned for font files, in priority order
SYSTEM_FONT_DIRS = [
    "/usr/share/fonts",
    "/usr/local/share/fonts",
    str(Path.home() / ".fonts"),
    str(Path.home() / ".local" / "share" / "fonts"),
    "/Library/Fonts",
    "/System/Library/Fonts",
    "C:/Windows/Fonts",
]
FONT_EXTENSIONS = (".ttf", ".otf", ".ttc")

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]


class FontStyle(Enum):
    PLAIN = "normal"
    BOLD = "bold"
    ITALIC = "italic"
    BOLD_ITALIC = "bold italic"

    @property
    def is_bold(self) -> bool:
        return self in (FontStyle.BOLD, FontStyle.BOLD_ITALIC)

    @property
    def is_italic(self) -> bool:
        return self in (FontStyle.ITALIC, FontStyle.BOLD_ITALIC)

    @classmethod
    def parse(cls, name: Optional[str]) -> "FontStyle":
        """Parse ``normal|bold|italic|bold italic``; anything else is plain."""
        if name is None:
            return cls.PLAIN
        if isinstance(name, FontStyle):
            return name

        key = " ".join(str(name).lower().replace("_", " ").replace("-", " ").split())
        style = _STYLE_ALIASES.get(key)
        if style is None:
            logger.warning(f"Unknown font style '{name}', using plain")
            return cls.PLAIN
        return style


_STYLE_ALIASES = {
    "": FontStyle.PLAIN,
    "normal": FontStyle.PLAIN,
    "plain": FontStyle.PLAIN,
    "regular": FontStyle.PLAIN,
    "bold": FontStyle.BOLD,
    "italic": FontStyle.ITALIC,
    "bold italic": FontStyle.BOLD_ITALIC,
    "italic bold": FontStyle.BOLD_ITALIC,
    "bolditalic": FontStyle.BOLD_ITALIC,
}

# File name suffixes tried for each style, covering DejaVu/Liberation
# ("-BoldOblique") and Windows ("arialbd") naming
_STYLE_SUFFIXES = {
    FontStyle.PLAIN: ["", "-Regular", "Regular"],
    FontStyle.BOLD: ["-Bold", "bd", "Bold"],
    FontStyle.ITALIC: ["-Italic", "-Oblique", "i", "Italic"],
    FontStyle.BOLD_ITALIC: ["-BoldItalic", "-BoldOblique", "bi", "z", "BoldItalic"],
}


@dataclass(frozen=True)
class TextStyle:
    """How a string is rendered.

    Attributes:
        font_family: Font family name, "default" for the platform default
        size: Font size in pixels, positive
        color: RGB text color
        style: Plain, bold, italic or bold italic
    """

    font_family: str = DEFAULT_FAMILY
    size: int = DEFAULT_SIZE
    color: Color = DEFAULT_COLOR
    style: FontStyle = FontStyle.PLAIN

    def __post_init__(self):
        if isinstance(self.size, bool) or not isinstance(self.size, (int, np.integer)) or self.size <= 0:
            raise InvalidParameter(f"Font size must be a positive integer, got {self.size!r}")
        if len(self.color) != 3 or any(not 0 <= int(c) <= 255 for c in self.color):
            raise InvalidParameter(f"Color must be an RGB tuple in [0, 255], got {self.color!r}")
        object.__setattr__(self, "color", tuple(int(c) for c in self.color))
        if not isinstance(self.style, FontStyle):
            raise InvalidParameter(f"Style must be a FontStyle, got {self.style!r}")

    @classmethod
    def from_params(
        cls,
        font_family: Optional[str] = None,
        size: Optional[Union[int, str]] = None,
        color: Optional[str] = None,
        style: Optional[str] = None
    ) -> "TextStyle":
        """Build a style from external string parameters, applying defaults.

        Args:
            font_family: Font family name
            size: Positive integer size (or its text)
            color: Hex color such as "#000000"
            style: One of "normal", "bold", "italic", "bold italic"

        Raises:
            InvalidParameter: If size or color cannot be parsed
        """
        if size is None:
            size = DEFAULT_SIZE
        elif isinstance(size, str):
            try:
                size = int(size.strip())
            except ValueError:
                raise InvalidParameter(f"Font size must be a positive integer, got {size!r}") from None

        return cls(
            font_family=font_family or DEFAULT_FAMILY,
            size=size,
            color=hex_to_rgb(color) if color else DEFAULT_COLOR,
            style=FontStyle.parse(style),
        )


@dataclass(frozen=True)
class ResolvedFont:
    """A loaded font plus the style effects that must be emulated."""

    font: FontType
    fake_bold: bool = False
    fake_italic: bool = False


class FontResolver:
    """Looks up and caches fonts by family, style and size."""

    def __init__(self, font_dirs: Optional[List[str]] = None):
        self.font_dirs = [Path(d) for d in (font_dirs or [])]
        self._cache: Dict[Tuple[str, FontStyle, int], ResolvedFont] = {}
        self._index: Optional[Dict[str, str]] = None

    def resolve(self, style: TextStyle) -> ResolvedFont:
        """Return the best available font for ``style``.

        Tries the family's styled face, then its plain face with emulated
        styling, then the default family, then Pillow's built-in font.
        """
        key = (style.font_family.lower(), style.style, style.size)
        if key in self._cache:
            return self._cache[key]

        resolved = self._resolve_family(style.font_family, style.style, style.size)
        if resolved is None and style.font_family.lower() != DEFAULT_FAMILY:
            logger.info(f"Font family '{style.font_family}' not found, using default font")
        if resolved is None:
            resolved = self._resolve_default(style.style, style.size)

        self._cache[key] = resolved
        return resolved

    def _resolve_default(self, font_style: FontStyle, size: int) -> ResolvedFont:
        for name in DEFAULT_FONT_NAMES:
            resolved = self._resolve_family(name, font_style, size)
            if resolved is not None:
                return resolved

        logger.debug("No TrueType default font found, using Pillow's built-in font")
        return ResolvedFont(
            ImageFont.load_default(size=size),
            fake_bold=font_style.is_bold,
            fake_italic=font_style.is_italic,
        )

    def _resolve_family(self, family: str, font_style: FontStyle, size: int) -> Optional[ResolvedFont]:
        if family.lower() == DEFAULT_FAMILY:
            return None

        font = self._load_face(family, font_style, size)
        if font is not None:
            return ResolvedFont(font)

        if font_style is FontStyle.PLAIN:
            return None

        font = self._load_face(family, FontStyle.PLAIN, size)
        if font is None:
            return None
        logger.debug(f"No {font_style.value} face for '{family}', emulating it")
        return ResolvedFont(font, fake_bold=font_style.is_bold, fake_italic=font_style.is_italic)

    def _load_face(self, family: str, font_style: FontStyle, size: int) -> Optional[ImageFont.FreeTypeFont]:
        compact = family.replace(" ", "").lower()
        index = self._font_index()

        for suffix in _STYLE_SUFFIXES[font_style]:
            for ext in FONT_EXTENSIONS:
                path = index.get(f"{compact}{suffix.lower()}{ext}")
                if path is None:
                    continue
                try:
                    return ImageFont.truetype(path, size)
                except OSError as e:
                    logger.debug(f"Could not load font {path}: {e}")
        return None

    def _font_index(self) -> Dict[str, str]:
        """Map lower-cased font file names to paths, scanning the font dirs once."""
        if self._index is None:
            self._index = {}
            dirs = self.font_dirs + [Path(d) for d in SYSTEM_FONT_DIRS]
            for font_dir in dirs:
                if not font_dir.is_dir():
                    continue
                for root, _, files in os.walk(font_dir):
                    for name in files:
                        if name.lower().endswith(FONT_EXTENSIONS):
                            self._index.setdefault(name.lower(), os.path.join(root, name))
            logger.debug(f"Indexed {len(self._index)} font files")
        return self._index


class TextCompositor:
    """Draws text onto images, reusing loaded fonts between calls."""

    def __init__(self, resolver: Optional[FontResolver] = None):
        self.resolver = resolver or FontResolver()

    def draw(
        self,
        image: PixelBuffer,
        text: str,
        x: int,
        y: int,
        style: Optional[TextStyle] = None
    ) -> PixelBuffer:
        """Render ``text`` with its left baseline at ``(x, y)``.

        Args:
            image: Input image, left untouched
            text: String to draw on a single line
            x: Baseline start column
            y: Baseline row
            style: Font, size, color and style; defaults to 20px black plain

        Returns:
            New RGB image with the text drawn (an unchanged copy for empty text)
        """
        style = style or TextStyle()
        if not text:
            return image.copy()

        resolved = self.resolver.resolve(style)
        canvas = Image.fromarray(image.to_rgb_array())

        if resolved.fake_italic:
            canvas = self._draw_sheared(canvas, text, x, y, style, resolved)
        else:
            self._draw(ImageDraw.Draw(canvas), text, x, y, style.color, resolved)

        logger.info(f"Drew text '{text}' at ({x},{y}) with {style.font_family} "
                    f"{style.size}px {style.style.value}")
        return PixelBuffer(np.array(canvas, dtype=np.uint8))

    def _draw(self, draw: ImageDraw.ImageDraw, text: str, x: int, y: int, fill, resolved: ResolvedFont) -> None:
        font = resolved.font
        if isinstance(font, ImageFont.FreeTypeFont):
            stroke = 1 if resolved.fake_bold else 0
            draw.text((x, y), text, fill=fill, font=font, anchor="ls",
                      stroke_width=stroke, stroke_fill=fill)
            return

        # Bitmap fonts have no anchors; lift the text so its bottom sits on the baseline
        bottom = font.getbbox(text)[3]
        draw.text((x, y - bottom), text, fill=fill, font=font)
        if resolved.fake_bold:
            draw.text((x + 1, y - bottom), text, fill=fill, font=font)

    def _draw_sheared(
        self,
        canvas: Image.Image,
        text: str,
        x: int,
        y: int,
        style: TextStyle,
        resolved: ResolvedFont
    ) -> Image.Image:
        """Draw text on a transparent layer, shear it about the baseline and composite."""
        layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        self._draw(ImageDraw.Draw(layer), text, x, y, tuple(style.color) + (255,), resolved)

        # Output (u, v) samples input (u + k*(v - y), v): rows above the baseline lean right
        sheared = layer.transform(
            layer.size,
            Image.Transform.AFFINE,
            (1, ITALIC_SHEAR, -ITALIC_SHEAR * y, 0, 1, 0),
            resample=Image.Resampling.BILINEAR,
        )
        return Image.alpha_composite(canvas.convert("RGBA"), sheared).convert("RGB")


def draw_text(
    image: PixelBuffer,
    text: str,
    x: int,
    y: int,
    style: Optional[TextStyle] = None
) -> PixelBuffer:
    """Render ``text`` onto a copy of ``image`` with a fresh compositor."""
    return TextCompositor().draw(image, text, x, y, style)
