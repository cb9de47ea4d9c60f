"""
Geometry primitives shared by the solver, the manipulation controller and
the compositor.
"""

import math
from dataclasses import dataclass
from typing import Tuple


LAYOUT_PRECISION = 6
LAYOUT_EPSILON = 1e-6


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Clamp value into [minimum, maximum]; maximum wins if the bounds cross."""
    return min(max(value, minimum), maximum)


def clamp_position(value: float, size: float) -> float:
    """Keep a coordinate inside [0, 1 - size]."""
    if not math.isfinite(size):
        return clamp(value, 0, 1)
    return clamp(value, 0, max(0.0, 1 - size))


def finite_or(value: float, default: float) -> float:
    return value if math.isfinite(value) else default


@dataclass(frozen=True)
class NormalizedRect:
    """Position and size as fractions of the photo area."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def rounded(self, digits: int = LAYOUT_PRECISION) -> "NormalizedRect":
        """Round every component to a fixed precision to bound float drift."""
        return NormalizedRect(
            x=round(self.x, digits),
            y=round(self.y, digits),
            width=round(self.width, digits),
            height=round(self.height, digits),
        )

    def clamped(self, digits: int = LAYOUT_PRECISION) -> "NormalizedRect":
        """
        Pull the rect inside the unit square and round it.

        Sizes are clamped to [0, 1] and positions to [0, 1 - size];
        non-finite values fall back to the full area at the origin.
        """
        width = round(clamp(finite_or(self.width, 1.0), 0, 1), digits)
        height = round(clamp(finite_or(self.height, 1.0), 0, 1), digits)
        return NormalizedRect(
            x=round(clamp_position(finite_or(self.x, 0.0), width), digits),
            y=round(clamp_position(finite_or(self.y, 0.0), height), digits),
            width=width,
            height=height,
        )

    def is_within_bounds(self, epsilon: float = LAYOUT_EPSILON) -> bool:
        """Check 0 <= x, 0 <= y, right <= 1 + eps, bottom <= 1 + eps."""
        return (
            self.x >= -epsilon
            and self.y >= -epsilon
            and self.right <= 1 + epsilon
            and self.bottom <= 1 + epsilon
        )

    def to_pixels(self, container_width: float, container_height: float) -> "PixelRect":
        """Scale into a pixel rectangle of the given container."""
        return PixelRect(
            x=self.x * container_width,
            y=self.y * container_height,
            width=self.width * container_width,
            height=self.height * container_height,
        )


@dataclass(frozen=True)
class PixelRect:
    """Rectangle in pixel units."""
    x: float
    y: float
    width: float
    height: float

    @property
    def box(self) -> Tuple[int, int, int, int]:
        """Return (left, top, right, bottom) rounded for PIL."""
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.x + self.width)),
            int(round(self.y + self.height)),
        )


@dataclass
class LayoutRect:
    """One solved frame position in the solver's pixel container."""
    index: int          # Index of the aspect ratio it belongs to
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height
