"""
Locale strings the composition engine needs (fallback texts and captions).
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Labels:
    """Localized fallback and caption strings."""
    locale: str
    title_fallback: str
    description_fallback: str
    location_placeholder: str
    price_free: str
    price_invalid: str
    price_caption: str
    location_caption: str
    layout_error: str
    generate_error: str


LABELS: Dict[str, Labels] = {
    "en": Labels(
        locale="en",
        title_fallback="Listing title",
        description_fallback="Add your product description",
        location_placeholder="Location",
        price_free="FREE",
        price_invalid="—",
        price_caption="Price",
        location_caption="Location",
        layout_error="Unable to prepare one of the images. Please try again.",
        generate_error="Something went wrong while generating the preview.",
    ),
    "pt": Labels(
        locale="pt",
        title_fallback="Título do anúncio",
        description_fallback="Adicione a descrição do seu produto",
        location_placeholder="Localização",
        price_free="OFERTA",
        price_invalid="—",
        price_caption="Preço",
        location_caption="Localização",
        layout_error="Não foi possível preparar uma das imagens. Tente novamente.",
        generate_error="Ocorreu um erro ao gerar a pré-visualização.",
    ),
}

DEFAULT_LOCALE = "en"


def get_labels(locale: Optional[str] = None) -> Labels:
    """Labels for a locale code; anything unknown falls back to English."""
    if locale:
        key = locale.lower().split("-")[0].split("_")[0]
        if key in LABELS:
            return LABELS[key]
    return LABELS[DEFAULT_LOCALE]
