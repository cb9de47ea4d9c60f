"""
Typography block composer.

Stacks price, location, title, divider and description for the text
column. Everything is computed once at canonical resolution; the preview
asks for the same plan multiplied by preview_height / CANVAS_HEIGHT, so the
preview and the exported poster cannot drift apart.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import List

from .labels import Labels
from .listing import ListingFields, format_price_label
from .presets import CANVAS_HEIGHT, CANVAS_WIDTH, clamp_photo_area_width
from .text_fit import (
    TextFitOptions,
    TextMeasurer,
    TypographyFit,
    fit_single_line,
    fit_text_block,
    group_paragraphs,
)

logger = logging.getLogger(__name__)


PADDING_X = 56
PADDING_Y = 64
MIN_INNER_WIDTH = 80
MIN_AVAILABLE_HEIGHT = 80

# Price
PRICE_MAX_FONT = 48
PRICE_MIN_FONT = 24
PRICE_WEIGHT = 600
PRICE_LINE_HEIGHT = 1.1

# Location
LOCATION_WIDTH_RATIO = 0.8
LOCATION_OPTIONS = dict(max_lines=1, max_font_size=34, min_font_size=18,
                        font_weight=500, line_height_multiplier=1.2, italic=True)

# Title
TITLE_MARGIN_RATIO = 0.4       # of price line height
TITLE_HEIGHT_SHARE = 0.45      # of available height
TITLE_OPTIONS = dict(max_lines=3, max_font_size=56, min_font_size=28,
                     font_weight=700, line_height_multiplier=1.12)

# Divider and description
DIVIDER_MARGIN_RATIO = 0.6     # of title line height
DIVIDER_THICKNESS = 1
DESCRIPTION_MARGIN = 24
DESCRIPTION_OPTIONS = dict(max_lines=60, max_font_size=44, min_font_size=16,
                           font_weight=400, line_height_multiplier=1.28)
MAX_DESCRIPTION_PARAGRAPHS = 8

# Backfill for under-filled descriptions
BACKFILL_FILL_RATIO = 0.65
BACKFILL_MIN_FILL = 0.15
BACKFILL_FONT_CEILING = 56


@dataclass
class PriceBlock:
    label: str
    font_size: float
    line_height: float
    baseline: float
    right: float
    font_weight: int = PRICE_WEIGHT


@dataclass
class TextBlock:
    """A fitted block placed in the text column."""
    fit: TypographyFit
    top: float
    font_weight: int
    italic: bool = False
    is_placeholder: bool = False

    @property
    def first_baseline(self) -> float:
        return self.top + self.fit.font_size


@dataclass
class ComposedTypography:
    """
    Full vertical plan of the text column.

    Coordinates are absolute within the poster (x includes the photo
    column). `scale` records the factor applied to canonical metrics.
    """
    scale: float
    text_area_x: float
    text_area_width: float
    padding_x: float
    padding_y: float
    text_x: float
    inner_width: float
    bottom_limit: float
    price: PriceBlock
    location: TextBlock
    title: TextBlock
    divider_y: float
    divider_thickness: float
    description: TextBlock
    description_paragraphs: List[List[str]] = field(default_factory=list)
    title_margin_top: float = 0.0
    divider_margin_top: float = 0.0
    description_margin_top: float = 0.0

    def scaled(self, factor: float) -> "ComposedTypography":
        """Return a copy with every pixel metric multiplied by factor."""
        def scale_fit(fit: TypographyFit) -> TypographyFit:
            return TypographyFit(
                font_size=fit.font_size * factor,
                line_height=fit.line_height * factor,
                lines=list(fit.lines),
            )

        def scale_block(block: TextBlock) -> TextBlock:
            return replace(block, fit=scale_fit(block.fit), top=block.top * factor)

        return replace(
            self,
            scale=self.scale * factor,
            text_area_x=self.text_area_x * factor,
            text_area_width=self.text_area_width * factor,
            padding_x=self.padding_x * factor,
            padding_y=self.padding_y * factor,
            text_x=self.text_x * factor,
            inner_width=self.inner_width * factor,
            bottom_limit=self.bottom_limit * factor,
            price=replace(
                self.price,
                font_size=self.price.font_size * factor,
                line_height=self.price.line_height * factor,
                baseline=self.price.baseline * factor,
                right=self.price.right * factor,
            ),
            location=scale_block(self.location),
            title=scale_block(self.title),
            divider_y=self.divider_y * factor,
            divider_thickness=self.divider_thickness * factor,
            description=scale_block(self.description),
            description_paragraphs=[list(p) for p in self.description_paragraphs],
            title_margin_top=self.title_margin_top * factor,
            divider_margin_top=self.divider_margin_top * factor,
            description_margin_top=self.description_margin_top * factor,
        )


def fit_description(measurer: TextMeasurer, text: str, max_width: float, max_height: float) -> TypographyFit:
    """
    Fit the description, backfilling once when it leaves the box mostly empty.

    If the fitted block uses less than BACKFILL_FILL_RATIO of the budget and
    a larger size is allowed by the per-line height budget, the text is
    re-fitted a single time with a raised font-size ceiling.
    """
    options = TextFitOptions(max_width=max_width, max_height=max_height, **DESCRIPTION_OPTIONS)
    fit = fit_text_block(measurer, text, options)

    if max_height <= 0:
        return fit

    block_height = len(fit.lines) * fit.line_height
    if block_height <= 0:
        return fit

    fill_ratio = block_height / max_height
    per_line_cap = math.floor((max_height / max(len(fit.lines), 1)) / options.line_height_multiplier)
    dynamic_cap = max(options.min_font_size, min(BACKFILL_FONT_CEILING, per_line_cap or options.max_font_size))

    if fill_ratio < BACKFILL_FILL_RATIO and dynamic_cap > fit.font_size:
        desired = min(
            dynamic_cap,
            max(fit.font_size + 1, math.floor(fit.font_size / max(fill_ratio, BACKFILL_MIN_FILL))),
        )
        if desired > fit.font_size:
            logger.debug(f"Description fills {fill_ratio:.0%} of its box, refitting up to {desired}px")
            fit = fit_text_block(measurer, text, replace(options, max_font_size=desired))

    return fit


def compose_typography(
    fields: ListingFields,
    labels: Labels,
    measurer: TextMeasurer,
    photo_area_width: float,
    scale: float = 1.0,
    canvas_width: int = CANVAS_WIDTH,
    canvas_height: int = CANVAS_HEIGHT
) -> ComposedTypography:
    """
    Compose the text column for given fields and photo column width.

    Args:
        fields: Listing text fields
        labels: Locale strings for fallbacks and the price label
        measurer: Text measurement capability
        photo_area_width: Canonical photo column width (clamped here)
        scale: Factor applied to the canonical plan (1.0 for export,
            preview_height / CANVAS_HEIGHT for the live preview)
        canvas_width: Canonical poster width
        canvas_height: Canonical poster height

    Returns:
        ComposedTypography in target units
    """
    photo_width = clamp_photo_area_width(photo_area_width)
    text_area_width = canvas_width - photo_width
    inner_width = max(text_area_width - PADDING_X * 2, MIN_INNER_WIDTH)
    available_height = max(canvas_height - PADDING_Y * 2, MIN_AVAILABLE_HEIGHT)
    text_x = photo_width + PADDING_X
    bottom_limit = canvas_height - PADDING_Y

    # Price shares the top baseline with the location
    price_label = format_price_label(fields.price, fields.currency, labels)
    price_size = fit_single_line(measurer, price_label, inner_width, PRICE_MAX_FONT, PRICE_MIN_FONT, PRICE_WEIGHT)
    price_line_height = price_size * PRICE_LINE_HEIGHT
    price_baseline = PADDING_Y + price_line_height
    price = PriceBlock(
        label=price_label,
        font_size=price_size,
        line_height=price_line_height,
        baseline=price_baseline,
        right=canvas_width - PADDING_X,
    )

    location_value = fields.location_text()
    has_location = bool(location_value)
    location_text = location_value if has_location else labels.location_placeholder
    location_fit = fit_text_block(measurer, location_text, TextFitOptions(
        max_width=inner_width * LOCATION_WIDTH_RATIO,
        max_height=price_line_height * 1.5,
        **LOCATION_OPTIONS,
    ))
    location = TextBlock(
        fit=location_fit,
        # Top chosen so the first baseline lands on the price baseline
        top=price_baseline - location_fit.font_size,
        font_weight=LOCATION_OPTIONS["font_weight"],
        italic=True,
        is_placeholder=not has_location,
    )

    title_text = fields.title_text(labels)
    title_fit = fit_text_block(measurer, title_text, TextFitOptions(
        max_width=inner_width,
        max_height=available_height * TITLE_HEIGHT_SHARE,
        **TITLE_OPTIONS,
    ))
    title_margin = price_line_height * TITLE_MARGIN_RATIO
    title_top = price_baseline + title_margin
    title = TextBlock(fit=title_fit, top=title_top, font_weight=TITLE_OPTIONS["font_weight"])

    title_block_height = 0.0
    if title_fit.lines:
        title_block_height = title_fit.font_size + (len(title_fit.lines) - 1) * title_fit.line_height

    divider_margin = title_fit.line_height * DIVIDER_MARGIN_RATIO
    divider_y = title_top + title_block_height + divider_margin

    description_top = divider_y + DESCRIPTION_MARGIN
    remaining_height = max(bottom_limit - description_top, 0)
    description_fit = fit_description(measurer, fields.description_text(labels), inner_width, remaining_height)
    description = TextBlock(fit=description_fit, top=description_top,
                            font_weight=DESCRIPTION_OPTIONS["font_weight"])

    composed = ComposedTypography(
        scale=1.0,
        text_area_x=photo_width,
        text_area_width=text_area_width,
        padding_x=PADDING_X,
        padding_y=PADDING_Y,
        text_x=text_x,
        inner_width=inner_width,
        bottom_limit=bottom_limit,
        price=price,
        location=location,
        title=title,
        divider_y=divider_y,
        divider_thickness=DIVIDER_THICKNESS,
        description=description,
        description_paragraphs=group_paragraphs(description_fit.lines, MAX_DESCRIPTION_PARAGRAPHS),
        title_margin_top=title_margin,
        divider_margin_top=divider_margin,
        description_margin_top=DESCRIPTION_MARGIN,
    )

    if scale != 1.0:
        return composed.scaled(scale)
    return composed


def preview_scale(preview_height: float, canvas_height: int = CANVAS_HEIGHT) -> float:
    """Factor mapping canonical metrics onto a preview container."""
    return max(preview_height, 1) / canvas_height


def compose_preview_typography(
    fields: ListingFields,
    labels: Labels,
    measurer: TextMeasurer,
    photo_area_width: float,
    preview_height: float
) -> ComposedTypography:
    """Compose for the live preview: the canonical plan scaled to the preview height."""
    return compose_typography(
        fields, labels, measurer, photo_area_width,
        scale=preview_scale(preview_height),
    )
