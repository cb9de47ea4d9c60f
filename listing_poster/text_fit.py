"""
Adaptive text fitting for the poster text column.

The fitter is pure given a TextMeasurer: it walks font sizes from the
largest allowed size down and keeps the first one whose wrapped block fits
the box. Measurement itself is delegated, so the same code runs against
Pillow fonts for export and against any stand-in measurer in tests.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional, Protocol, Sequence, Union

from PIL import ImageFont

logger = logging.getLogger(__name__)


FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

_PARAGRAPH_SPLIT = re.compile(r'\r?\n')


@dataclass(frozen=True)
class FontSpec:
    """Font description used for measuring and drawing."""
    size: int
    weight: int = 400
    italic: bool = False


@dataclass(frozen=True)
class TextFitOptions:
    """Hard box constraints for one text block."""
    max_width: float
    max_height: float
    max_lines: int
    max_font_size: int
    min_font_size: int
    font_weight: int = 400
    line_height_multiplier: float = 1.2
    italic: bool = False


@dataclass
class TypographyFit:
    """Result of fitting one text block."""
    font_size: int
    line_height: float
    lines: List[str] = field(default_factory=list)

    @property
    def block_height(self) -> float:
        return len(self.lines) * self.line_height


class TextMeasurer(Protocol):
    """Anything able to report the rendered width of a string."""

    def measure(self, text: str, font: FontSpec) -> float:
        ...


class PillowTextMeasurer:
    """
    Measures and supplies TrueType fonts through Pillow.

    The same instance should be used for fitting and drawing so that the
    preview plan and the exported raster agree on every line break.
    """

    # Candidate files per weight, tried in order
    FONT_CANDIDATES: Dict[str, List[str]] = {
        "regular": [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",  # Linux
            "/System/Library/Fonts/Supplemental/Arial.ttf",  # macOS
            "C:\\Windows\\Fonts\\arial.ttf",  # Windows
        ],
        "bold": [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
            "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
            "C:\\Windows\\Fonts\\arialbd.ttf",
        ],
        "italic": [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf",
            "/System/Library/Fonts/Supplemental/Arial Italic.ttf",
            "C:\\Windows\\Fonts\\ariali.ttf",
        ],
        "bold_italic": [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-BoldOblique.ttf",
            "/System/Library/Fonts/Supplemental/Arial Bold Italic.ttf",
            "C:\\Windows\\Fonts\\arialbi.ttf",
        ],
    }

    def __init__(self, font_paths: Optional[Dict[str, str]] = None):
        """
        Initialize measurer.

        Args:
            font_paths: Optional explicit font file per style key
                ("regular", "bold", "italic", "bold_italic")
        """
        self.font_paths = font_paths or {}
        # Per-instance cache so explicit font paths never leak between measurers
        self._load = lru_cache(maxsize=256)(self._load_font)

    @staticmethod
    def style_key(font: FontSpec) -> str:
        bold = font.weight >= 600
        if bold and font.italic:
            return "bold_italic"
        if bold:
            return "bold"
        if font.italic:
            return "italic"
        return "regular"

    def _load_font(self, style: str, size: int) -> FontType:
        explicit = self.font_paths.get(style)
        if explicit:
            try:
                return ImageFont.truetype(explicit, size)
            except OSError as e:
                logger.warning(f"Failed to load font {explicit}: {e}")

        for path in self.FONT_CANDIDATES.get(style, []):
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue

        # Bundled fallback, scalable when Pillow has FreeType support
        return ImageFont.load_default(size=size)

    def get_font(self, font: FontSpec) -> FontType:
        """Get a drawable font for a spec."""
        return self._load(self.style_key(font), max(int(font.size), 1))

    def measure(self, text: str, font: FontSpec) -> float:
        return self.get_font(font).getlength(text)


def wrap_text(
    measurer: TextMeasurer,
    text: str,
    max_width: float,
    font: FontSpec,
    max_lines: int = 999
) -> List[str]:
    """
    Greedy, paragraph-aware word wrap.

    Explicit newlines start new paragraphs. A blank paragraph becomes an
    empty line, and an empty separator line follows every non-blank
    paragraph that has another paragraph after it. Empty lines count
    against max_lines. A single word wider than max_width still gets its
    own line.

    Args:
        measurer: Text measurement capability
        text: Text to wrap
        max_width: Widest allowed line in pixels
        font: Font used for measurement
        max_lines: Line cap; the remainder is truncated

    Returns:
        Wrapped lines
    """
    paragraphs = _PARAGRAPH_SPLIT.split(text)
    lines: List[str] = []

    for i, raw in enumerate(paragraphs):
        paragraph = raw.strip()

        if not paragraph:
            if len(lines) < max_lines:
                lines.append("")
            if len(lines) >= max_lines:
                return lines[:max_lines]
            continue

        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if measurer.measure(candidate, font) > max_width and current:
                if len(lines) < max_lines:
                    lines.append(current)
                current = word
            else:
                current = candidate

        if current and len(lines) < max_lines:
            lines.append(current)

        has_more = i < len(paragraphs) - 1
        if has_more and len(lines) < max_lines:
            lines.append("")

        if len(lines) >= max_lines:
            return lines[:max_lines]

    return lines


def fit_text_block(measurer: TextMeasurer, text: str, options: TextFitOptions) -> TypographyFit:
    """
    Choose the largest font size whose wrapped block fits the box.

    If no size in range fits, the minimum size is returned with its
    (overflowing) lines. Overflow is accepted, never raised.

    Args:
        measurer: Text measurement capability
        text: Raw text; surrounding whitespace is ignored
        options: Box constraints

    Returns:
        TypographyFit with font size, line height and lines
    """
    content = text.strip() or " "

    for size in range(options.max_font_size, options.min_font_size - 1, -1):
        font = FontSpec(size=size, weight=options.font_weight, italic=options.italic)
        lines = wrap_text(measurer, content, options.max_width, font, options.max_lines)
        line_height = size * options.line_height_multiplier

        if len(lines) * line_height <= options.max_height:
            return TypographyFit(font_size=size, line_height=line_height, lines=lines)

    size = options.min_font_size
    font = FontSpec(size=size, weight=options.font_weight, italic=options.italic)
    lines = wrap_text(measurer, content, options.max_width, font, options.max_lines)
    return TypographyFit(
        font_size=size,
        line_height=size * options.line_height_multiplier,
        lines=lines or [""],
    )


def fit_single_line(
    measurer: TextMeasurer,
    text: str,
    max_width: float,
    max_font_size: int,
    min_font_size: int,
    font_weight: int = 600
) -> int:
    """Largest font size at which text fits max_width unwrapped, else the minimum."""
    for size in range(max_font_size, min_font_size - 1, -1):
        if measurer.measure(text, FontSpec(size=size, weight=font_weight)) <= max_width:
            return size
    return min_font_size


def group_paragraphs(lines: Sequence[str], max_paragraphs: int) -> List[List[str]]:
    """
    Regroup fitted lines into paragraphs split on blank lines.

    Trailing empty paragraphs are dropped. Paragraphs beyond
    max_paragraphs are folded into the last kept paragraph, separated by
    blank lines. The result is never empty.
    """
    paragraphs: List[List[str]] = []
    current: List[str] = []

    for line in lines:
        if line == "":
            if current:
                paragraphs.append(current)
                current = []
            else:
                paragraphs.append([])
            continue
        current.append(line)

    if current:
        paragraphs.append(current)

    while len(paragraphs) > 1 and not paragraphs[-1]:
        paragraphs.pop()

    if len(paragraphs) > max_paragraphs:
        limited = paragraphs[:max_paragraphs]
        tail = list(limited[-1])
        for index, segment in enumerate(paragraphs[max_paragraphs:]):
            if not segment:
                tail.append("")
                continue
            if (index > 0 or tail) and (not tail or tail[-1] != ""):
                tail.append("")
            tail.extend(segment)
        limited[-1] = tail
        return limited

    return paragraphs or [[]]
