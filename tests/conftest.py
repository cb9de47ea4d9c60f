import io

import pytest
from PIL import Image

from listing_poster.frames import PhotoFrame, PhotoSource
from listing_poster.geometry import NormalizedRect
from listing_poster.text_fit import FontSpec


class MonospaceMeasurer:
    """Every character is half the font size wide."""

    def measure(self, text: str, font: FontSpec) -> float:
        return len(text) * font.size * 0.5


def make_photo_bytes(width: int, height: int, color="red", fmt: str = "JPEG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_source(name: str = "photo.jpg", width: int = 400, height: int = 400, color="red") -> PhotoSource:
    return PhotoSource(name=name, data=make_photo_bytes(width, height, color), last_modified=1700000000)


def make_frame(frame_id: str, layout: NormalizedRect, aspect_ratio: float = 1.0, source: PhotoSource = None) -> PhotoFrame:
    return PhotoFrame(
        id=frame_id,
        source=source or make_source(f"{frame_id}.jpg"),
        aspect_ratio=aspect_ratio,
        natural_width=int(400 * aspect_ratio),
        natural_height=400,
        layout=layout,
    )


@pytest.fixture
def measurer():
    return MonospaceMeasurer()


@pytest.fixture
def square_source():
    return make_source("square.jpg", 400, 400)


@pytest.fixture
def wide_source():
    return make_source("wide.jpg", 712, 400, color="blue")
