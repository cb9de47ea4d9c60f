"""
Listing text fields and the rules that derive display strings from them.
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Union

from .labels import Labels
from .presets import CANVAS_WIDTH, MIN_TEXT_RATIO


TITLE_MAX_CHARS = 60
LOCATION_MAX_CHARS = 34
PRICE_MAX_DIGITS = 8
MIN_DESCRIPTION_CHARS = 250
MAX_DESCRIPTION_CHARS = 500
DEFAULT_PRICE = 1

CURRENCY_PRESETS = {
    "AED": [25, 50, 100, 200, 500, 1000],
    "USD": [5, 10, 20, 50, 100, 200],
    "EUR": [5, 10, 20, 50, 100, 200],
}

LOCATION_PRESETS = {
    "Dubai": [
        "Al Barsha", "Arabian Ranches", "Business Bay", "Bur Dubai", "Deira",
        "Downtown Dubai", "Dubai Hills Estate", "Dubai Marina", "Emirates Hills",
        "Jumeirah", "Jumeirah Beach Residence", "Jumeirah Lakes Towers",
        "Jumeirah Village Circle", "Palm Jumeirah", "The Springs",
    ],
    "Abu Dhabi": [
        "Al Bateen", "Al Khalidiyah", "Al Maryah Island", "Al Mushrif", "Al Raha",
        "Al Raha Beach", "Al Reem Island", "Corniche", "Downtown Abu Dhabi",
        "Khalifa City", "Mohammed Bin Zayed City", "Saadiyat Island",
        "Shakhbout City", "Yas Island",
    ],
}


@dataclass
class ListingFields:
    """User-entered poster text."""
    title: str = ""
    price: Union[int, float] = DEFAULT_PRICE
    currency: str = "AED"
    description: str = ""
    location: str = ""

    def title_text(self, labels: Labels) -> str:
        return self.title.strip()[:TITLE_MAX_CHARS] or labels.title_fallback

    def description_text(self, labels: Labels) -> str:
        return self.description.strip() or labels.description_fallback

    def location_text(self) -> str:
        return self.location.strip()[:LOCATION_MAX_CHARS]


def parse_price(value: Optional[str]) -> int:
    """
    Parse a price input the way the price field does.

    Non-digits are stripped and at most PRICE_MAX_DIGITS digits are kept.
    Unparsable input yields DEFAULT_PRICE; negative numbers yield 0.
    """
    if value is None:
        return DEFAULT_PRICE

    text = str(value).strip()
    if re.match(r'^-\s*\d', text):
        return 0

    digits = re.sub(r'\D', '', text)[:PRICE_MAX_DIGITS]
    if not digits:
        return DEFAULT_PRICE
    return int(digits)


def format_number_with_commas(value: Union[int, float]) -> str:
    if not math.isfinite(value):
        return ""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"


def format_price_label(price: Union[int, float, None], currency: str, labels: Labels) -> str:
    """
    Build the poster price label.

    Examples:
        >>> format_price_label(1500, "AED", get_labels("en"))
        'AED 1,500'
        >>> format_price_label(0, "AED", get_labels("en"))
        'FREE'
    """
    if price is None or not math.isfinite(price) or price < 0:
        return f"{currency} {labels.price_invalid}"
    if price == 0:
        return labels.price_free
    return f"{currency} {format_number_with_commas(price)}"


def description_max_length(photo_area_width: float) -> int:
    """
    Description character limit for the current photo column width.

    A wider text column allows a longer description, interpolated linearly
    between MIN_DESCRIPTION_CHARS and MAX_DESCRIPTION_CHARS.
    """
    clamped_photo = min(photo_area_width, CANVAS_WIDTH * (1 - MIN_TEXT_RATIO))
    text_width = max(CANVAS_WIDTH - clamped_photo, CANVAS_WIDTH * MIN_TEXT_RATIO)
    text_ratio = text_width / CANVAS_WIDTH
    normalized = (min(max(text_ratio, MIN_TEXT_RATIO), 1) - MIN_TEXT_RATIO) / (1 - MIN_TEXT_RATIO)
    chars = MIN_DESCRIPTION_CHARS + normalized * (MAX_DESCRIPTION_CHARS - MIN_DESCRIPTION_CHARS)
    return int(math.floor(chars + 0.5))


def format_location_preset(district: str, city: str) -> str:
    """Format a district preset as "District, City" within the location limit."""
    label = re.sub(rf'(?:,\s*)?{re.escape(city)}$', '', district.strip(), flags=re.IGNORECASE).strip()
    return f"{label or district}, {city}"[:LOCATION_MAX_CHARS]


def build_listing_details(fields: ListingFields, labels: Labels) -> str:
    """
    Plain-text listing details to accompany the exported poster.

    Sections (title, price, description, optional location) are separated
    by blank lines; description paragraphs are re-joined with blank lines.
    """
    title = fields.title_text(labels).strip()
    price_line = format_price_label(fields.price, fields.currency, labels)

    description = fields.description_text(labels)
    paragraphs = [p.strip() for p in re.split(r'\r?\n', description) if p.strip()]
    description_block = "\n\n".join(paragraphs) if paragraphs else description

    location = fields.location_text()

    sections: List[str] = [
        title,
        f"{labels.price_caption}: {price_line}",
        description_block,
    ]
    if location:
        sections.append(f"{labels.location_caption}: {location}")

    return "\n\n".join(s for s in sections if s)
