from fastapi import FastAPI, HTTPException, File, Form, Header, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from dataclasses import asdict
from pathlib import Path
from typing import Optional, List
import logging
import traceback
import uuid

from gemini_client import GeminiClient, SuggestionError
from models import TitleSuggestionRequest, DescriptionSuggestionRequest, SuggestionResponse

from listing_poster import (
    PosterSession, LayoutEngine, PillowTextMeasurer, ListingFields, NormalizedRect,
    LayoutPreparationError, CompositionError, get_theme_options, get_labels,
    compose_preview_typography,
)
from listing_poster.labels import LABELS
from listing_poster.listing import (
    CURRENCY_PRESETS, LOCATION_PRESETS, build_listing_details, description_max_length, parse_price
)
from listing_poster.presets import CANVAS_HEIGHT, CANVAS_WIDTH, MAX_PHOTOS
from listing_poster.frames import PhotoSource
from listing_poster.api_models import (
    ListingFieldsModel, RectModel, LayoutRequest, LayoutResponse, TypographyRequest,
    ListingDetailsRequest, ListingDetailsResponse, PosterOptionsResponse
)

# Logging setup
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    gemini_api_keys: Optional[str] = None  # Comma-separated API keys
    gemini_models: Optional[str] = None    # Comma-separated model names
    poster_output_dir: str = "/tmp/posters"
    default_locale: str = "en"
    default_theme: str = "light"
    preview_debounce_seconds: float = 0.5
    jpeg_quality: int = 95

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def split_csv(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()
app = FastAPI(title="Listing Poster Service", version="1.0.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
layout_engine = LayoutEngine()
measurer = PillowTextMeasurer()  # Shared font cache for preview plans and exports
gemini_client = GeminiClient(
    api_keys=split_csv(settings.gemini_api_keys),
    models=split_csv(settings.gemini_models),
)

rect_list_adapter = TypeAdapter(List[RectModel])


def to_listing_fields(model: ListingFieldsModel) -> ListingFields:
    return ListingFields(
        title=model.title,
        price=parse_price(model.price),
        currency=model.currency,
        description=model.description,
        location=model.location,
    )


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "listing-poster"}


@app.get("/")
async def root():
    return {
        "service": "Listing Poster Service",
        "version": "1.0.0",
        "description": "Marketplace poster composition with mosaic layout and adaptive typography",
        "endpoints": [
            "/poster/options", "/poster/layout", "/poster/typography", "/poster/generate",
            "/listing/details", "/suggest/title", "/suggest/description", "/health",
        ],
        "assistant_configured": gemini_client.is_configured,
    }


# ==================== POSTER ENDPOINTS ====================

@app.get("/poster/options", response_model=PosterOptionsResponse)
async def get_poster_options():
    """
    Get available options for poster generation.

    Returns canvas size, themes, currency and location presets.
    """
    return PosterOptionsResponse(
        canvas={"width": CANVAS_WIDTH, "height": CANVAS_HEIGHT},
        max_photos=MAX_PHOTOS,
        themes=get_theme_options(),
        currencies=CURRENCY_PRESETS,
        locations=LOCATION_PRESETS,
        locales=list(LABELS.keys()),
    )


@app.post("/poster/layout", response_model=LayoutResponse)
async def solve_layout(request: LayoutRequest):
    """
    Solve the photo mosaic for a set of aspect ratios.

    Returns one normalized rectangle per ratio plus the photo column width.
    """
    try:
        solved = layout_engine.solve_frames(request.aspect_ratios)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return LayoutResponse(
        layouts=[RectModel(**asdict(rect)) for rect in solved.layouts],
        photo_area_width=solved.photo_area_width,
        description_max_length=description_max_length(solved.photo_area_width),
    )


@app.post("/poster/typography")
async def plan_typography(request: TypographyRequest):
    """
    Plan the text column for a preview container.

    Everything is the canonical composition scaled to preview_height,
    so the preview matches the exported poster.
    """
    fields = to_listing_fields(request.fields)
    labels = get_labels(request.locale or settings.default_locale)
    typography = compose_preview_typography(
        fields, labels, measurer, request.photo_area_width, request.preview_height
    )
    return asdict(typography)


@app.post("/poster/generate")
async def generate_poster(
    images: List[UploadFile] = File(default=[]),
    title: str = Form(""),
    price: str = Form("1"),
    currency: str = Form("AED"),
    description: str = Form(""),
    location: str = Form(""),
    theme: Optional[str] = Form(None),
    locale: Optional[str] = Form(None),
    layouts: Optional[str] = Form(None),
    photo_area_width: Optional[float] = Form(None),
):
    """
    Generate the poster JPEG from uploaded photos and listing text.

    Args:
        images: Up to four photos (extra photos are dropped)
        title, price, currency, description, location: Listing text
        theme: "light" or "dark"
        locale: Locale for fallback texts
        layouts: Optional JSON list of normalized rects, one per photo, to
            keep a customized arrangement instead of the solved one
        photo_area_width: Photo column width matching custom layouts

    Returns:
        Generated poster as image file
    """
    session = PosterSession(
        locale=locale or settings.default_locale,
        measurer=measurer,
        layout_engine=layout_engine,
        export_delay=settings.preview_debounce_seconds,
        jpeg_quality=settings.jpeg_quality,
    )
    session.set_theme(theme or settings.default_theme)

    try:
        logger.info(f"Generating poster with {len(images)} images, theme={theme}, locale={locale}")

        sources = []
        for index, upload in enumerate(images):
            content = await upload.read()
            sources.append(PhotoSource(
                name=upload.filename or f"photo-{index}",
                data=content,
                content_type=upload.content_type or "image/jpeg",
            ))

        await session.set_photos(sources)

        session.update_fields(
            title=title,
            price=parse_price(price),
            currency=currency,
            description=description,
            location=location,
        )

        if layouts:
            try:
                custom = rect_list_adapter.validate_json(layouts)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=f"Invalid layouts: {e}")
            if len(custom) != len(session.frames):
                raise HTTPException(
                    status_code=400,
                    detail=f"Expected {len(session.frames)} layouts, got {len(custom)}"
                )
            for frame, rect in zip(list(session.frames), custom):
                session.update_frame(frame.id, NormalizedRect(**rect.model_dump()))
            if photo_area_width is not None:
                session.set_photo_area_width(photo_area_width)

        poster_bytes = await session.export()

        output_dir = Path(settings.poster_output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        filename = f"poster_{uuid.uuid4().hex[:8]}.jpg"
        output_path = output_dir / filename
        output_path.write_bytes(poster_bytes)

        logger.info(f"Poster generated: {output_path}")

        return FileResponse(
            path=str(output_path),
            media_type="image/jpeg",
            filename=filename
        )

    except HTTPException:
        raise
    except LayoutPreparationError as e:
        logger.error(f"Layout preparation error: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except CompositionError as e:
        tb = traceback.format_exc()
        logger.error(f"Poster generation error: {e}")
        logger.error(f"Traceback:\n{tb}")
        raise HTTPException(
            status_code=500,
            detail=f"{session.labels.generate_error} ({e})"
        )
    finally:
        session.reset()


@app.post("/listing/details", response_model=ListingDetailsResponse)
async def listing_details(request: ListingDetailsRequest):
    """Plain-text listing details to share alongside the poster."""
    labels = get_labels(request.locale or settings.default_locale)
    return ListingDetailsResponse(text=build_listing_details(to_listing_fields(request.fields), labels))


# ==================== ASSISTANT ENDPOINTS ====================

@app.post("/suggest/title", response_model=SuggestionResponse)
async def suggest_title(
    request: TitleSuggestionRequest,
    x_gemini_api_key: Optional[str] = Header(None),
):
    """
    Suggest a listing title with Gemini.

    The caller may supply its own key in the X-Gemini-Api-Key header.
    """
    try:
        return await gemini_client.with_key(x_gemini_api_key).suggest_title(request)
    except SuggestionError as e:
        tb = traceback.format_exc()
        logger.error(f"Title suggestion error: {e}")
        logger.error(f"Traceback:\n{tb}")
        raise HTTPException(status_code=503, detail=f"Title suggestion failed: {e}")


@app.post("/suggest/description", response_model=SuggestionResponse)
async def suggest_description(
    request: DescriptionSuggestionRequest,
    x_gemini_api_key: Optional[str] = Header(None),
):
    """Suggest a listing description with Gemini."""
    try:
        return await gemini_client.with_key(x_gemini_api_key).suggest_description(request)
    except SuggestionError as e:
        tb = traceback.format_exc()
        logger.error(f"Description suggestion error: {e}")
        logger.error(f"Traceback:\n{tb}")
        raise HTTPException(status_code=503, detail=f"Description suggestion failed: {e}")
