"""
Exceptions raised by the poster composition engine.
"""


class PosterError(Exception):
    """Base class for poster composition failures."""


class CompositionError(PosterError):
    """A single composition attempt could not produce a raster."""


class PhotoDecodeError(CompositionError):
    """A photo could not be decoded."""

    def __init__(self, name: str, reason: str = ""):
        self.name = name
        self.reason = reason
        message = f"Unable to load image {name!r}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class LayoutPreparationError(PosterError):
    """A batch of photos could not be prepared for layout."""
