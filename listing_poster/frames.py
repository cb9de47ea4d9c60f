"""
Photo frames: a user photo plus its placement rectangle.
"""

import asyncio
import io
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import PhotoDecodeError
from .geometry import NormalizedRect

logger = logging.getLogger(__name__)


@dataclass
class PhotoSource:
    """Raw photo bytes plus the file identity used to build frame ids."""
    name: str
    data: Optional[bytes]
    last_modified: float = field(default_factory=time.time)
    content_type: str = "image/jpeg"

    @property
    def size(self) -> int:
        return len(self.data) if self.data else 0

    @property
    def identity(self) -> str:
        return f"{self.name}-{self.size}-{int(self.last_modified)}"

    @property
    def released(self) -> bool:
        return self.data is None

    def release(self):
        """Drop the photo bytes; the source cannot be decoded afterwards."""
        self.data = None


@dataclass
class DecodedPhoto:
    """Decoded drawable handle with its natural size."""
    image: Image.Image
    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height > 0 else 1.0

    def close(self):
        self.image.close()


@dataclass
class PhotoFrame:
    """One photo and where it sits inside the photo area."""
    id: str
    source: PhotoSource
    aspect_ratio: float
    natural_width: int
    natural_height: int
    layout: NormalizedRect

    def release(self):
        self.source.release()


def build_frame_id(source: PhotoSource, index: int) -> str:
    """Stable across re-renders, distinct across duplicate uploads."""
    return f"{source.identity}-{index}"


def decode_photo(source: PhotoSource) -> DecodedPhoto:
    """
    Decode a photo fully, upright.

    EXIF orientation is applied here, so the natural size is the size the
    photo is drawn at.

    Raises:
        PhotoDecodeError: If the bytes are missing or not a readable image
    """
    if source.data is None:
        raise PhotoDecodeError(source.name, "source already released")

    try:
        raw = Image.open(io.BytesIO(source.data))
        raw.load()
        image = ImageOps.exif_transpose(raw)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise PhotoDecodeError(source.name, str(e)) from e
    if image is not raw:
        raw.close()

    return DecodedPhoto(image=image, width=image.width, height=image.height)


async def decode_batch(sources: Sequence[PhotoSource]) -> List[DecodedPhoto]:
    """
    Decode photos concurrently in worker threads and await them as a batch.

    If any photo fails, every photo that did decode is closed and the first
    failure is raised, so callers never see a partial batch.
    """
    results = await asyncio.gather(
        *(asyncio.to_thread(decode_photo, source) for source in sources),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        for result in results:
            if isinstance(result, DecodedPhoto):
                result.close()
        logger.warning(f"Decode failed for {len(failures)} of {len(sources)} photos")
        raise failures[0]

    return list(results)


def focus_frame(frames: Sequence[PhotoFrame], frame_id: str) -> List[PhotoFrame]:
    """
    Move a frame to the end of the render order so it paints on top.

    Geometry is untouched; unknown ids and the already-topmost frame leave
    the order as it is.
    """
    ordered = list(frames)
    for index, frame in enumerate(ordered):
        if frame.id == frame_id:
            if index != len(ordered) - 1:
                ordered.append(ordered.pop(index))
            break
    return ordered


def find_frame(frames: Sequence[PhotoFrame], frame_id: str) -> Optional[PhotoFrame]:
    for frame in frames:
        if frame.id == frame_id:
            return frame
    return None
