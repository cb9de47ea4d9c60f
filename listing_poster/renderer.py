"""
PosterRenderer - Pillow-based poster compositor.

Handles:
1. Decoding every frame's photo as one batch
2. Painting the photo column (cover-fit photos over card fills)
3. Painting the text column from a ComposedTypography plan
4. Exporting the final image as JPEG
"""

import io
import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from PIL import Image, ImageDraw, ImageOps

from .errors import CompositionError
from .frames import DecodedPhoto, PhotoFrame, decode_batch
from .labels import Labels, get_labels
from .listing import ListingFields
from .presets import CANVAS_HEIGHT, CANVAS_WIDTH, JPEG_QUALITY, ThemePalette, clamp_photo_area_width
from .text_fit import FontSpec, PillowTextMeasurer
from .typography import ComposedTypography, TextBlock, compose_typography

logger = logging.getLogger(__name__)


FRAME_BORDER_WIDTH = 2


class PosterRenderer:
    """
    Renders posters using Pillow.

    The text column is drawn from the same ComposedTypography the preview
    uses (at scale 1.0), so line breaks and sizes are identical.
    Photos are never altered beyond cropping and resizing.
    """

    def __init__(
        self,
        measurer: Optional[PillowTextMeasurer] = None,
        canvas_width: int = CANVAS_WIDTH,
        canvas_height: int = CANVAS_HEIGHT
    ):
        """
        Initialize renderer.

        Args:
            measurer: Font source shared with the typography composer
            canvas_width: Output width in pixels
            canvas_height: Output height in pixels
        """
        self.measurer = measurer or PillowTextMeasurer()
        self.canvas_width = canvas_width
        self.canvas_height = canvas_height

    async def compose(
        self,
        frames: Sequence[PhotoFrame],
        fields: ListingFields,
        palette: ThemePalette,
        photo_area_width: float,
        labels: Optional[Labels] = None
    ) -> Image.Image:
        """
        Compose the poster raster.

        All photos are decoded before anything is drawn; if one fails the
        whole composition fails and nothing is returned.

        Args:
            frames: Frames in paint order (last one on top)
            fields: Listing text
            palette: Colours to paint with
            photo_area_width: Canonical photo column width
            labels: Locale strings (English by default)

        Returns:
            RGB image at canonical size

        Raises:
            PhotoDecodeError: If any photo cannot be decoded
            CompositionError: If drawing fails
        """
        labels = labels or get_labels()
        photos = await decode_batch([frame.source for frame in frames])

        try:
            return self.draw(frames, photos, fields, palette, photo_area_width, labels)
        finally:
            for photo in photos:
                photo.close()

    def draw(
        self,
        frames: Sequence[PhotoFrame],
        photos: Sequence[DecodedPhoto],
        fields: ListingFields,
        palette: ThemePalette,
        photo_area_width: float,
        labels: Labels
    ) -> Image.Image:
        """Synchronous drawing pass over already decoded photos."""
        photo_width = clamp_photo_area_width(photo_area_width)
        typography = compose_typography(
            fields, labels, self.measurer, photo_width,
            canvas_width=self.canvas_width, canvas_height=self.canvas_height,
        )

        try:
            canvas = Image.new("RGB", (self.canvas_width, self.canvas_height), palette.background)
            draw = ImageDraw.Draw(canvas)

            # Photo area backdrop
            draw.rectangle([(0, 0), (round(photo_width) - 1, self.canvas_height - 1)], fill=palette.muted)

            for frame, photo in zip(frames, photos):
                self.render_frame(canvas, draw, frame, photo, photo_width, palette)

            # Text area background covers any photo overhang
            draw.rectangle(
                [(round(photo_width), 0), (self.canvas_width - 1, self.canvas_height - 1)],
                fill=palette.background,
            )

            self.render_text(draw, typography, palette)
        except (OSError, ValueError) as e:
            raise CompositionError(f"Failed to draw poster: {e}") from e

        return canvas

    def render_frame(
        self,
        canvas: Image.Image,
        draw: ImageDraw.ImageDraw,
        frame: PhotoFrame,
        photo: DecodedPhoto,
        photo_width: float,
        palette: ThemePalette
    ):
        """
        Paint one photo cover-fit (centre crop) into its rectangle.

        Args:
            canvas: Poster image
            draw: Draw handle on the poster
            frame: Frame with normalized layout
            photo: Decoded photo for the frame
            photo_width: Clamped photo column width
            palette: Colours for card fill and border
        """
        left, top, right, bottom = frame.layout.to_pixels(photo_width, self.canvas_height).box
        width = right - left
        height = bottom - top
        if width <= 0 or height <= 0:
            logger.warning(f"Skipping frame {frame.id}: empty rectangle")
            return

        draw.rectangle([(left, top), (right - 1, bottom - 1)], fill=palette.card)

        image = photo.image.convert("RGB")
        fitted = ImageOps.fit(image, (width, height), Image.Resampling.LANCZOS)
        canvas.paste(fitted, (left, top))

        if width > FRAME_BORDER_WIDTH and height > FRAME_BORDER_WIDTH:
            draw.rectangle(
                [(left, top), (right - 1, bottom - 1)],
                outline=palette.border,
                width=FRAME_BORDER_WIDTH,
            )

    def _font(self, size: float, weight: int, italic: bool = False):
        return self.measurer.get_font(FontSpec(size=int(round(size)), weight=weight, italic=italic))

    def _draw_block_lines(
        self,
        draw: ImageDraw.ImageDraw,
        block: TextBlock,
        x: float,
        fill: str,
        bottom_limit: Optional[float] = None
    ):
        font = self._font(block.fit.font_size, block.font_weight, block.italic)
        baseline = block.first_baseline
        for line in block.fit.lines:
            if bottom_limit is not None and baseline > bottom_limit:
                break
            if line:
                draw.text((x, baseline), line, font=font, fill=fill, anchor="ls")
            baseline += block.fit.line_height

    def render_text(self, draw: ImageDraw.ImageDraw, typography: ComposedTypography, palette: ThemePalette):
        """
        Paint price, location, title, divider and description.

        The location placeholder is preview-only and is not drawn.
        """
        price = typography.price
        draw.text(
            (price.right, price.baseline),
            price.label,
            font=self._font(price.font_size, price.font_weight),
            fill=palette.primary,
            anchor="rs",
        )

        location = typography.location
        if not location.is_placeholder:
            font = self._font(location.fit.font_size, location.font_weight, italic=True)
            draw.text(
                (typography.text_x, typography.price.baseline),
                " ".join(location.fit.lines),
                font=font,
                fill=palette.muted_foreground,
                anchor="ls",
            )

        self._draw_block_lines(draw, typography.title, typography.text_x, palette.foreground)

        divider_top = round(typography.divider_y)
        divider_bottom = divider_top + max(round(typography.divider_thickness), 1) - 1
        draw.rectangle(
            [(round(typography.text_x), divider_top),
             (round(typography.text_x + typography.inner_width) - 1, divider_bottom)],
            fill=palette.border,
        )

        if typography.description.top < typography.bottom_limit:
            self._draw_block_lines(
                draw, typography.description, typography.text_x,
                palette.muted_foreground, bottom_limit=typography.bottom_limit,
            )

    def export(
        self,
        image: Image.Image,
        output_path: Optional[Union[str, Path]] = None,
        quality: int = JPEG_QUALITY
    ) -> Union[bytes, str]:
        """
        Export poster as JPEG to file or bytes.

        Args:
            image: Poster image
            output_path: Optional file path. If None, returns bytes.
            quality: JPEG quality (1-100)

        Returns:
            File path if output_path given, else bytes

        Raises:
            CompositionError: If encoding or writing fails
        """
        if image.mode != "RGB":
            image = image.convert("RGB")

        try:
            if output_path:
                image.save(output_path, format="JPEG", quality=quality)
                logger.info(f"Exported poster to {output_path}")
                return str(output_path)

            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=quality)
            return buffer.getvalue()
        except (OSError, ValueError) as e:
            raise CompositionError(f"Failed to encode poster: {e}") from e

    async def render_to_bytes(
        self,
        frames: Sequence[PhotoFrame],
        fields: ListingFields,
        palette: ThemePalette,
        photo_area_width: float,
        labels: Optional[Labels] = None,
        quality: int = JPEG_QUALITY
    ) -> bytes:
        """Compose and encode in one step."""
        image = await self.compose(frames, fields, palette, photo_area_width, labels)
        return self.export(image, quality=quality)
