# Listing Poster Module
# Mosaic layout, adaptive typography, direct manipulation and Pillow export

from .generator import PosterSession
from .layout import LayoutEngine
from .renderer import PosterRenderer
from .manipulation import ContainerMetrics, ManipulationController
from .typography import ComposedTypography, compose_typography, compose_preview_typography
from .text_fit import PillowTextMeasurer, fit_text_block, fit_single_line
from .frames import PhotoFrame, PhotoSource
from .geometry import NormalizedRect
from .listing import ListingFields
from .presets import Theme, ThemePalette, get_palette, get_theme_options
from .labels import get_labels
from .errors import PosterError, CompositionError, PhotoDecodeError, LayoutPreparationError

__all__ = [
    "PosterSession",
    "LayoutEngine",
    "PosterRenderer",
    "ContainerMetrics",
    "ManipulationController",
    "ComposedTypography",
    "compose_typography",
    "compose_preview_typography",
    "PillowTextMeasurer",
    "fit_text_block",
    "fit_single_line",
    "PhotoFrame",
    "PhotoSource",
    "NormalizedRect",
    "ListingFields",
    "Theme",
    "ThemePalette",
    "get_palette",
    "get_theme_options",
    "get_labels",
    "PosterError",
    "CompositionError",
    "PhotoDecodeError",
    "LayoutPreparationError",
]
