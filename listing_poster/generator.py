"""
PosterSession - Main orchestrator for one poster editing session.

Combines:
- LayoutEngine: initial mosaic for the uploaded photos
- ManipulationController: drag / resize / pinch edits
- Typography composer: preview plan for the text column
- PosterRenderer: final JPEG export

This is the main entry point for the poster feature.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import CompositionError, LayoutPreparationError, PhotoDecodeError
from .frames import PhotoFrame, PhotoSource, build_frame_id, decode_batch, find_frame, focus_frame
from .geometry import NormalizedRect
from .labels import Labels, get_labels
from .layout import LayoutEngine
from .listing import ListingFields, description_max_length
from .manipulation import ContainerMetrics, ManipulationController
from .presets import (
    CANVAS_WIDTH,
    DEFAULT_PHOTO_WIDTH,
    JPEG_QUALITY,
    MAX_PHOTOS,
    MIN_TEXT_RATIO,
    Theme,
    ThemePalette,
    get_palette,
)
from .renderer import PosterRenderer
from .text_fit import PillowTextMeasurer, TextMeasurer
from .typography import ComposedTypography, compose_preview_typography

logger = logging.getLogger(__name__)


DEFAULT_EXPORT_DELAY = 0.5


@dataclass
class PreviewContainer:
    """Pixel size of the preview's photo area and text column."""
    photo_width: float
    text_width: float
    height: float

    @property
    def metrics(self) -> ContainerMetrics:
        return ContainerMetrics(self.photo_width, self.height)


def preview_text_ratio(photo_area_width: float, canvas_width: int = CANVAS_WIDTH) -> float:
    """Share of the poster width taken by the text column (never below a third)."""
    return max(1 - photo_area_width / canvas_width, MIN_TEXT_RATIO)


class PosterSession:
    """
    Holds the state of one poster being edited.

    Workflow:
    1. set_photos() decodes the photos and solves the initial mosaic
    2. controller() hands out a gesture controller bound to the frames
    3. preview_typography() plans the text column for the preview size
    4. export() / schedule_export() produce the JPEG
    """

    def __init__(
        self,
        palette: Optional[ThemePalette] = None,
        locale: Optional[str] = None,
        measurer: Optional[TextMeasurer] = None,
        renderer: Optional[PosterRenderer] = None,
        layout_engine: Optional[LayoutEngine] = None,
        export_delay: float = DEFAULT_EXPORT_DELAY,
        jpeg_quality: int = JPEG_QUALITY
    ):
        """
        Initialize session.

        Args:
            palette: Theme colours (light palette by default)
            locale: Locale code for fallback strings
            measurer: Text measurer for preview typography
            renderer: Compositor used for export
            layout_engine: Mosaic solver
            export_delay: Debounce delay of schedule_export() in seconds
            jpeg_quality: JPEG quality of exports
        """
        self.palette = palette or get_palette()
        self.labels: Labels = get_labels(locale)
        self.renderer = renderer or PosterRenderer(
            measurer if isinstance(measurer, PillowTextMeasurer) else None
        )
        self.measurer: TextMeasurer = measurer or self.renderer.measurer
        self.layout_engine = layout_engine or LayoutEngine()
        self.export_delay = export_delay
        self.jpeg_quality = jpeg_quality

        self.fields = ListingFields()
        self.sources: List[PhotoSource] = []
        self._held: List[PhotoSource] = []
        self.frames: List[PhotoFrame] = []
        self.photo_area_width: float = DEFAULT_PHOTO_WIDTH
        self.has_custom_layout = False
        self.is_layout_pending = False
        self.latest_export: Optional[bytes] = None

        self._generation = 0
        self._controller: Optional[ManipulationController] = None
        self._export_task: Optional[asyncio.Task] = None

    # --------------------------------------------------------------- photos

    async def set_photos(self, sources: Sequence[PhotoSource]) -> bool:
        """
        Replace the session photos and solve a fresh layout.

        Only the first MAX_PHOTOS sources are kept. A later call supersedes
        an earlier one still in flight; the superseded result is dropped.
        Sources that end up in no published frame are released once a
        newer set is published, or when a decode fails.

        Args:
            sources: Photos in upload order

        Returns:
            True if this call's frames were published, False if superseded

        Raises:
            LayoutPreparationError: If any photo cannot be decoded (frames are cleared)
        """
        kept = list(sources)[:MAX_PHOTOS]
        if len(sources) > MAX_PHOTOS:
            logger.info(f"Dropping {len(sources) - MAX_PHOTOS} photos beyond the limit of {MAX_PHOTOS}")

        self._generation += 1
        generation = self._generation
        self.sources = kept
        self._hold(kept)

        if not kept:
            self._release_unused(kept)
            self._publish([], DEFAULT_PHOTO_WIDTH)
            self.is_layout_pending = False
            return True

        self.is_layout_pending = True
        try:
            photos = await decode_batch(kept)
        except PhotoDecodeError as e:
            if generation != self._generation:
                return False
            logger.error(f"Failed to prepare layout: {e}")
            self.sources = []
            self._release_unused([])
            self._publish([], DEFAULT_PHOTO_WIDTH)
            self.is_layout_pending = False
            raise LayoutPreparationError(self.labels.layout_error) from e

        if generation != self._generation:
            logger.debug(f"Discarding superseded photo batch {generation}")
            for photo in photos:
                photo.close()
            return False

        ratios = [photo.aspect_ratio for photo in photos]
        solved = self.layout_engine.solve_frames(ratios)

        frames = []
        for index, (source, photo) in enumerate(zip(kept, photos)):
            frames.append(PhotoFrame(
                id=build_frame_id(source, index),
                source=source,
                aspect_ratio=photo.aspect_ratio,
                natural_width=photo.width,
                natural_height=photo.height,
                layout=solved.layouts[index],
            ))
            photo.close()

        self._release_unused(kept)
        self._publish(frames, solved.photo_area_width)
        self.is_layout_pending = False
        logger.info(f"Prepared {len(frames)} frames, photo area width {solved.photo_area_width:.1f}")
        return True

    async def add_photos(self, sources: Sequence[PhotoSource]) -> bool:
        """Append photos to the current set (still capped at MAX_PHOTOS)."""
        return await self.set_photos(self.sources + list(sources))

    async def remove_photo(self, frame_id: str) -> bool:
        """Remove one photo, release its bytes and re-solve the remaining set."""
        frame = find_frame(self.frames, frame_id)
        if frame is None:
            return False
        remaining = [source for source in self.sources if source is not frame.source]
        return await self.set_photos(remaining)

    def _hold(self, sources: Sequence[PhotoSource]):
        held_ids = {id(source) for source in self._held}
        self._held.extend(source for source in sources if id(source) not in held_ids)

    def _release_unused(self, kept: Sequence[PhotoSource]):
        """Release every held source outside kept; kept becomes the held set."""
        kept_ids = {id(source) for source in kept}
        for source in self._held:
            if id(source) not in kept_ids:
                source.release()
        self._held = list(kept)

    def _publish(self, frames: List[PhotoFrame], photo_area_width: float):
        self.frames = frames
        self.set_photo_area_width(photo_area_width)
        self.has_custom_layout = False
        self._bind_controller()

    def _bind_controller(self):
        if self._controller is not None:
            self._controller.frames = self.frames
            self._controller.gesture = None

    # --------------------------------------------------------------- layout

    def set_photo_area_width(self, width: float):
        """Set the photo column width and trim the description to its new limit."""
        self.photo_area_width = width
        limit = description_max_length(width)
        if len(self.fields.description) > limit:
            self.fields.description = self.fields.description[:limit]

    def reset_layout(self) -> List[PhotoFrame]:
        """Re-solve the current frames; identical to a fresh solve of the same ratios."""
        if not self.frames:
            return self.frames

        solved = self.layout_engine.solve_frames([frame.aspect_ratio for frame in self.frames])
        for frame, layout in zip(self.frames, solved.layouts):
            frame.layout = layout

        self.set_photo_area_width(solved.photo_area_width)
        self.has_custom_layout = False
        return self.frames

    def update_frame(self, frame_id: str, layout: NormalizedRect) -> Optional[PhotoFrame]:
        """
        Write a new layout for one frame and mark the layout as customized.

        Out-of-range geometry is clamped into the photo area, never rejected.
        """
        frame = find_frame(self.frames, frame_id)
        if frame is None:
            return None
        frame.layout = layout.clamped()
        self.has_custom_layout = True
        return frame

    def focus(self, frame_id: str):
        """Bring a frame to the top of the paint order."""
        self.frames[:] = focus_frame(self.frames, frame_id)

    def controller(self, metrics: Optional[ContainerMetrics] = None) -> ManipulationController:
        """Gesture controller bound to this session's frames (one per session)."""
        if self._controller is None:
            self._controller = ManipulationController(
                self.frames,
                metrics,
                on_change=self._on_frame_change,
            )
        else:
            self._controller.update_metrics(metrics)
        return self._controller

    def _on_frame_change(self, frame: PhotoFrame):
        self.has_custom_layout = True

    # -------------------------------------------------------------- preview

    def preview_container(self, preview_width: float, preview_height: float) -> PreviewContainer:
        """Split a preview box into photo area and text column."""
        text_ratio = preview_text_ratio(self.photo_area_width)
        photo_width = preview_width * (1 - text_ratio)
        return PreviewContainer(
            photo_width=photo_width,
            text_width=preview_width - photo_width,
            height=preview_height,
        )

    def preview_typography(self, preview_width: float, preview_height: float) -> ComposedTypography:
        """
        Text column plan for a preview of the given size.

        The plan is the canonical composition scaled by preview_height /
        CANVAS_HEIGHT, so it matches the export exactly modulo scale.
        """
        logger.debug(f"Preview typography for {preview_width:.0f}x{preview_height:.0f}")
        return compose_preview_typography(
            self.fields, self.labels, self.measurer, self.photo_area_width, preview_height,
        )

    def preview_frames(self, preview_width: float, preview_height: float) -> List[Tuple[str, Tuple[int, int, int, int]]]:
        """Pixel boxes of every frame in paint order for a preview size."""
        container = self.preview_container(preview_width, preview_height)
        return [
            (frame.id, frame.layout.to_pixels(container.photo_width, container.height).box)
            for frame in self.frames
        ]

    # --------------------------------------------------------------- export

    async def export(self) -> bytes:
        """
        Render the poster to JPEG bytes.

        On failure the previous export is kept and the error propagates.

        Raises:
            CompositionError: If decoding or drawing fails
        """
        frames = list(self.frames)
        try:
            data = await self.renderer.render_to_bytes(
                frames, self.fields, self.palette, self.photo_area_width, self.labels,
                quality=self.jpeg_quality,
            )
        except CompositionError as e:
            logger.error(f"Poster export failed: {e}")
            raise

        self.latest_export = data
        logger.info(f"Exported poster with {len(frames)} photos ({len(data)} bytes)")
        return data

    def schedule_export(
        self,
        delay: Optional[float] = None,
        on_error: Optional[Callable[[Exception], None]] = None
    ) -> asyncio.Task:
        """
        Debounced export: each call cancels the pending one and restarts the delay.

        Must be called from a running event loop.

        Args:
            delay: Seconds to wait (export_delay by default)
            on_error: Called with the CompositionError of a failed export

        Returns:
            The scheduled task; its result is the JPEG bytes
        """
        if self._export_task is not None and not self._export_task.done():
            self._export_task.cancel()

        wait = self.export_delay if delay is None else delay

        async def run() -> Optional[bytes]:
            await asyncio.sleep(wait)
            try:
                return await self.export()
            except CompositionError as e:
                if on_error:
                    on_error(e)
                return None

        self._export_task = asyncio.create_task(run())
        return self._export_task

    # ---------------------------------------------------------------- state

    def set_palette(self, palette: ThemePalette):
        """Swap the palette wholesale."""
        self.palette = palette

    def set_theme(self, theme: str):
        self.palette = get_palette(theme or Theme.LIGHT.value)

    def set_locale(self, locale: Optional[str]):
        self.labels = get_labels(locale)

    def update_fields(self, **changes) -> ListingFields:
        """Update listing text fields, enforcing the description limit."""
        known = {f.name for f in dataclasses.fields(ListingFields)}
        for name, value in changes.items():
            if name not in known:
                raise AttributeError(f"Unknown listing field {name!r}")
            setattr(self.fields, name, value)
        self.set_photo_area_width(self.photo_area_width)
        return self.fields

    def reset(self):
        """Drop every photo and field and start over; pending work is discarded."""
        self._generation += 1
        if self._export_task is not None and not self._export_task.done():
            self._export_task.cancel()
        self._export_task = None

        self.sources = []
        self._release_unused([])
        self.fields = ListingFields()
        self.latest_export = None
        self.is_layout_pending = False
        self._publish([], DEFAULT_PHOTO_WIDTH)
        logger.info("Session reset")
