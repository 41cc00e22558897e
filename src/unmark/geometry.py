"""Watermark size classes, standard placement rules and region math."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

# Both dimensions must exceed this for the large watermark
LARGE_IMAGE_THRESHOLD = 1024


class WatermarkSize(Enum):
    """Standard watermark sizes."""

    SMALL = 48
    LARGE = 96


@dataclass(frozen=True)
class WatermarkPosition:
    """Placement of a watermark relative to the bottom-right corner."""

    margin_right: int
    margin_bottom: int
    logo_size: int

    def get_position(self, image_width, image_height):
        """Get the top-left corner of the watermark box.

        The result is not clamped and may be negative for tiny images.

        Args:
            image_width: Image width in pixels
            image_height: Image height in pixels

        Returns:
            Tuple (x, y)
        """
        return (
            image_width - self.margin_right - self.logo_size,
            image_height - self.margin_bottom - self.logo_size,
        )


SMALL_POSITION = WatermarkPosition(margin_right=32, margin_bottom=32, logo_size=48)
LARGE_POSITION = WatermarkPosition(margin_right=64, margin_bottom=64, logo_size=96)


def get_watermark_size(image_width, image_height):
    """Classify an image as carrying the small or the large watermark.

    Large only when BOTH dimensions are strictly greater than 1024, so a
    1024x1024 image is small.
    """
    if image_width > LARGE_IMAGE_THRESHOLD and image_height > LARGE_IMAGE_THRESHOLD:
        return WatermarkSize.LARGE
    return WatermarkSize.SMALL


def config_for_size(size):
    """Return the standard WatermarkPosition for a WatermarkSize."""
    if size is WatermarkSize.LARGE:
        return LARGE_POSITION
    return SMALL_POSITION


def get_watermark_config(image_width, image_height):
    """Return the standard WatermarkPosition for an image of this size."""
    return config_for_size(get_watermark_size(image_width, image_height))


def resolve_size(image_width, image_height, force_size=None):
    """Return force_size when given, else the size implied by the dimensions."""
    if force_size is not None:
        return force_size
    return get_watermark_size(image_width, image_height)


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in image pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self):
        return self.x + self.width

    @property
    def bottom(self):
        return self.y + self.height

    @property
    def is_empty(self):
        return self.width <= 0 or self.height <= 0

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    def clamp(self, image_width, image_height) -> Optional["Region"]:
        """Intersect with the image bounds.

        Args:
            image_width: Image width in pixels
            image_height: Image height in pixels

        Returns:
            The clamped Region, or None if the intersection is empty
        """
        x1 = max(0, self.x)
        y1 = max(0, self.y)
        x2 = min(image_width, self.right)
        y2 = min(image_height, self.bottom)
        if x1 >= x2 or y1 >= y2:
            return None
        return Region(x1, y1, x2 - x1, y2 - y1)

    @classmethod
    def parse(cls, text):
        """Parse an 'x,y,w,h' string.

        Raises:
            ValueError: If the string is malformed or the size is not positive
        """
        try:
            parts = [int(p.strip()) for p in text.split(",")]
        except (ValueError, AttributeError) as err:
            raise ValueError(f"Invalid region: {text!r}") from err
        if len(parts) != 4:
            raise ValueError(f"Region must have 4 components (x,y,w,h): {text!r}")
        region = cls(*parts)
        if region.is_empty:
            raise ValueError(f"Region width and height must be positive: {text!r}")
        return region


def standard_region(image_width, image_height, size=None):
    """Return the unclamped standard watermark box for an image.

    Args:
        image_width: Image width in pixels
        image_height: Image height in pixels
        size: WatermarkSize, or None to classify from the dimensions
    """
    config = config_for_size(resolve_size(image_width, image_height, size))
    x, y = config.get_position(image_width, image_height)
    return Region(x, y, config.logo_size, config.logo_size)


def get_fallback_region(image_width, image_height):
    """Geometric best guess used by interactive callers when detection fails."""
    return standard_region(image_width, image_height)
