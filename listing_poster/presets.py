"""
Canonical dimensions and theme palettes for poster composition.

Every typography and layout constant is defined against the canonical
export resolution. The live preview scales the same numbers by
preview_height / CANVAS_HEIGHT instead of recomputing them.
"""

import colorsys
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


# Canonical export resolution (16:10, same aspect as the preview container)
CANVAS_WIDTH = 1600
CANVAS_HEIGHT = 1000

# The text column never gets narrower than a third of the poster
MIN_TEXT_RATIO = 1 / 3
MAX_PHOTO_WIDTH = CANVAS_WIDTH * (1 - MIN_TEXT_RATIO)
DEFAULT_PHOTO_WIDTH = CANVAS_WIDTH / 2
MIN_PHOTO_WIDTH_RATIO = 0.25

MAX_PHOTOS = 4

JPEG_QUALITY = 95


class Theme(Enum):
    """Available colour themes."""
    LIGHT = "light"
    DARK = "dark"


@dataclass(frozen=True)
class ThemePalette:
    """Seven colour tokens used to paint the poster (hex strings)."""
    background: str
    card: str
    muted: str
    foreground: str
    muted_foreground: str
    primary: str
    border: str

    @classmethod
    def from_tokens(cls, tokens: Dict[str, str], fallback: Optional["ThemePalette"] = None) -> "ThemePalette":
        """
        Build a palette from CSS-style HSL tokens such as "210 20% 15%".

        Keys may use either snake_case or the CSS variable spelling
        ("muted-foreground"). Missing or blank tokens fall back to the
        corresponding colour of `fallback` (the light palette by default).

        Args:
            tokens: Mapping of token name to "H S% L%" string
            fallback: Palette supplying missing colours

        Returns:
            ThemePalette with hex colours
        """
        base = fallback or LIGHT_PALETTE
        normalized = {key.strip().lstrip("-").replace("-", "_"): value for key, value in tokens.items()}

        values = {}
        for name in cls.__dataclass_fields__:
            raw = normalized.get(name)
            color = hsl_token_to_hex(raw) if raw else None
            values[name] = color or getattr(base, name)
        return cls(**values)


_HSL_TOKEN = re.compile(r'^\s*(-?[\d.]+)(?:deg)?[\s,]+([\d.]+)%[\s,]+([\d.]+)%\s*$')


def hsl_token_to_hex(token: Optional[str]) -> Optional[str]:
    """
    Convert an "H S% L%" token (optionally wrapped in hsl()) to "#rrggbb".

    Returns None when the token cannot be parsed.
    """
    if not token:
        return None

    value = token.strip()
    if value.lower().startswith("hsl(") and value.endswith(")"):
        value = value[4:-1]

    match = _HSL_TOKEN.match(value)
    if not match:
        return None

    hue = (float(match.group(1)) % 360) / 360
    saturation = min(float(match.group(2)), 100) / 100
    lightness = min(float(match.group(3)), 100) / 100

    r, g, b = colorsys.hls_to_rgb(hue, lightness, saturation)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


LIGHT_TOKENS = {
    "background": "0 0% 98%",
    "card": "0 0% 100%",
    "muted": "210 15% 95%",
    "foreground": "210 20% 15%",
    "muted_foreground": "210 15% 45%",
    "primary": "185 70% 50%",
    "border": "210 20% 88%",
}

DARK_TOKENS = {
    "background": "210 20% 8%",
    "card": "210 18% 11%",
    "muted": "210 15% 16%",
    "foreground": "0 0% 96%",
    "muted_foreground": "210 12% 65%",
    "primary": "185 65% 48%",
    "border": "210 15% 22%",
}


def _palette_from_table(tokens: Dict[str, str]) -> ThemePalette:
    return ThemePalette(**{name: hsl_token_to_hex(value) for name, value in tokens.items()})


LIGHT_PALETTE = _palette_from_table(LIGHT_TOKENS)
DARK_PALETTE = _palette_from_table(DARK_TOKENS)

PALETTES = {
    Theme.LIGHT: LIGHT_PALETTE,
    Theme.DARK: DARK_PALETTE,
}


def get_palette(theme: Optional[str] = None) -> ThemePalette:
    """
    Get the palette for a theme name.

    Unknown or missing names resolve to the light palette.

    Examples:
        >>> get_palette("dark") is DARK_PALETTE
        True
    """
    if theme:
        for t, palette in PALETTES.items():
            if t.value == theme.lower().strip():
                return palette
    return LIGHT_PALETTE


def clamp_photo_area_width(photo_area_width: float) -> float:
    """Clamp a photo column width into [1, MAX_PHOTO_WIDTH]."""
    return min(max(photo_area_width, 1), MAX_PHOTO_WIDTH)


def get_theme_options() -> list:
    """Get list of available themes with their palettes for client selection."""
    return [
        {"id": theme.value, "palette": palette.__dict__.copy()}
        for theme, palette in PALETTES.items()
    ]
