import pytest

from listing_poster.labels import get_labels
from listing_poster.listing import (
    ListingFields,
    build_listing_details,
    description_max_length,
    format_location_preset,
    format_price_label,
    parse_price,
)
from listing_poster.presets import DARK_PALETTE, LIGHT_PALETTE, ThemePalette, get_palette, hsl_token_to_hex


@pytest.mark.parametrize("raw,expected", [
    ("1500", 1500),
    ("1,500", 1500),
    ("abc", 1),
    ("", 1),
    (None, 1),
    ("-5", 0),
    ("123456789", 12345678),
    ("0", 0),
])
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


def test_price_labels():
    en = get_labels("en")
    assert format_price_label(1500, "AED", en) == "AED 1,500"
    assert format_price_label(0, "USD", en) == "FREE"
    assert format_price_label(-1, "EUR", en) == f"EUR {en.price_invalid}"
    assert format_price_label(0, "EUR", get_labels("pt-BR")) == "OFERTA"


def test_description_limit_follows_text_column():
    assert description_max_length(800) == 313
    assert description_max_length(1066.67) == 250
    assert description_max_length(1) == 500
    assert description_max_length(5000) == 250


def test_field_limits_and_fallbacks():
    en = get_labels("en")
    fields = ListingFields(title="x" * 80, location="  " + "y" * 40)
    assert len(fields.title_text(en)) == 60
    assert len(fields.location_text()) == 34
    assert ListingFields().title_text(en) == en.title_fallback
    assert ListingFields(description="  ").description_text(en) == en.description_fallback


def test_location_preset_format():
    assert format_location_preset("Jumeirah", "Dubai") == "Jumeirah, Dubai"
    assert format_location_preset("Downtown Abu Dhabi", "Abu Dhabi") == "Downtown, Abu Dhabi"
    assert len(format_location_preset("Mohammed Bin Zayed City", "Abu Dhabi")) <= 34


def test_listing_details_text():
    en = get_labels("en")
    fields = ListingFields(
        title="Oak desk",
        price=250,
        currency="AED",
        description="Solid oak.\n\nTwo drawers.",
        location="Al Barsha, Dubai",
    )
    assert build_listing_details(fields, en) == (
        "Oak desk\n\nPrice: AED 250\n\nSolid oak.\n\nTwo drawers.\n\nLocation: Al Barsha, Dubai"
    )

    no_location = ListingFields(title="Oak desk", price=0, description="Solid oak.")
    assert build_listing_details(no_location, en) == "Oak desk\n\nPrice: FREE\n\nSolid oak."


def test_hsl_tokens_and_palettes():
    assert hsl_token_to_hex("0 0% 100%") == "#ffffff"
    assert hsl_token_to_hex("hsl(0 100% 50%)") == "#ff0000"
    assert hsl_token_to_hex("not a colour") is None

    palette = ThemePalette.from_tokens({"--primary": "0 100% 50%", "muted-foreground": ""})
    assert palette.primary == "#ff0000"
    assert palette.muted_foreground == LIGHT_PALETTE.muted_foreground

    assert get_palette("dark") is DARK_PALETTE
    assert get_palette("unknown") is LIGHT_PALETTE
