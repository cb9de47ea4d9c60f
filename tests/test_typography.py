import pytest

from listing_poster.labels import get_labels
from listing_poster.listing import ListingFields
from listing_poster.presets import CANVAS_WIDTH
from listing_poster.typography import (
    DESCRIPTION_MARGIN,
    PADDING_X,
    compose_preview_typography,
    compose_typography,
    preview_scale,
)


@pytest.fixture
def labels():
    return get_labels("en")


@pytest.fixture
def fields():
    return ListingFields(
        title="Mid-century lounge chair",
        price=1500,
        currency="AED",
        description="Walnut frame, new cushions.\nPick up in Dubai Marina.",
        location="Dubai Marina, Dubai",
    )


def test_single_letter_title_uses_max_size(measurer, labels):
    composed = compose_typography(ListingFields(title="A"), labels, measurer, 800)
    assert composed.title.fit.font_size == 56
    assert composed.title.fit.lines == ["A"]


def test_block_positions_follow_price_baseline(measurer, labels, fields):
    composed = compose_typography(fields, labels, measurer, 800)
    price = composed.price
    title = composed.title

    assert price.label == "AED 1,500"
    assert price.right == CANVAS_WIDTH - PADDING_X
    assert composed.location.first_baseline == pytest.approx(price.baseline)
    assert title.top == pytest.approx(price.baseline + price.line_height * 0.4)

    title_block = title.fit.font_size + (len(title.fit.lines) - 1) * title.fit.line_height
    expected_divider = title.top + title_block + title.fit.line_height * 0.6
    assert composed.divider_y == pytest.approx(expected_divider)
    assert composed.description.top == pytest.approx(composed.divider_y + DESCRIPTION_MARGIN)


def test_empty_location_is_placeholder(measurer, labels):
    composed = compose_typography(ListingFields(title="Lamp"), labels, measurer, 800)
    assert composed.location.is_placeholder
    assert composed.location.fit.lines == [labels.location_placeholder]


def test_location_is_not_placeholder_when_set(measurer, labels, fields):
    composed = compose_typography(fields, labels, measurer, 800)
    assert not composed.location.is_placeholder


def test_inner_width_has_floor(measurer, labels, fields):
    for width in (1, 800, 1066, 5000):
        composed = compose_typography(fields, labels, measurer, width)
        assert composed.inner_width >= 80
        assert composed.text_area_x <= CANVAS_WIDTH * 2 / 3 + 1e-6


def test_short_description_is_backfilled(measurer, labels):
    composed = compose_typography(ListingFields(title="A", description="Nice chair"), labels, measurer, 800)
    assert composed.description.fit.font_size > 44


def test_description_paragraphs_are_grouped(measurer, labels, fields):
    composed = compose_typography(fields, labels, measurer, 800)
    assert len(composed.description_paragraphs) >= 2
    assert all(line != "" for line in composed.description_paragraphs[0])


def test_preview_is_export_scaled(measurer, labels, fields):
    canonical = compose_typography(fields, labels, measurer, 800)
    preview = compose_preview_typography(fields, labels, measurer, 800, 500)
    factor = preview_scale(500)

    assert factor == pytest.approx(0.5)
    assert preview.scale == pytest.approx(0.5)
    assert preview.title.fit.lines == canonical.title.fit.lines
    assert preview.description.fit.lines == canonical.description.fit.lines
    assert preview.title.fit.font_size == pytest.approx(canonical.title.fit.font_size * factor)
    assert preview.price.baseline == pytest.approx(canonical.price.baseline * factor)
    assert preview.divider_y == pytest.approx(canonical.divider_y * factor)
    assert preview.description.top == pytest.approx(canonical.description.top * factor)
    assert preview.bottom_limit == pytest.approx(canonical.bottom_limit * factor)


def test_fallback_texts_used_for_empty_fields(measurer, labels):
    composed = compose_typography(ListingFields(), labels, measurer, 800)
    assert " ".join(composed.title.fit.lines) == labels.title_fallback
    assert " ".join(l for l in composed.description.fit.lines if l) == labels.description_fallback
