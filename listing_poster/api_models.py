"""
Poster API models for FastAPI endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict

from .presets import DEFAULT_PHOTO_WIDTH


class ListingFieldsModel(BaseModel):
    """Listing text as sent by the client."""
    title: str = ""
    price: Optional[str] = "1"  # Raw price input, parsed like the price field
    currency: str = "AED"
    description: str = ""
    location: str = ""


class RectModel(BaseModel):
    """Normalized rectangle (fractions of the photo area)."""
    x: float
    y: float
    width: float
    height: float


class LayoutRequest(BaseModel):
    """Aspect ratios to solve a mosaic for."""
    aspect_ratios: List[float] = Field(..., max_length=4)


class LayoutResponse(BaseModel):
    """Solved frame rectangles, in input order."""
    layouts: List[RectModel]
    photo_area_width: float
    description_max_length: int


class TypographyRequest(BaseModel):
    """Preview size plus the listing text to plan for."""
    fields: ListingFieldsModel = Field(default_factory=ListingFieldsModel)
    photo_area_width: float = DEFAULT_PHOTO_WIDTH
    preview_width: float = Field(800, gt=0)
    preview_height: float = Field(500, gt=0)
    locale: Optional[str] = None


class ListingDetailsRequest(BaseModel):
    """Listing text to turn into shareable plain text."""
    fields: ListingFieldsModel = Field(default_factory=ListingFieldsModel)
    locale: Optional[str] = None


class ListingDetailsResponse(BaseModel):
    text: str


class PosterOptionsResponse(BaseModel):
    """Response with available poster options."""
    canvas: Dict[str, int]
    max_photos: int
    themes: List[dict]
    currencies: Dict[str, List[int]]
    locations: Dict[str, List[str]]
    locales: List[str]
