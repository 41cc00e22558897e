"""Image file loading and saving."""

from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".bmp")

JPEG_QUALITY = 100
PNG_COMPRESSION = 6
# WebP quality above 100 selects lossless encoding
WEBP_QUALITY = 101


def is_supported_image(path):
    """Check whether a path has one of the supported image extensions."""
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def load_image(image_path):
    """Load an image file as an RGB numpy array.

    Args:
        image_path: Path to the image

    Returns:
        uint8 array (H, W, 3)

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file cannot be decoded
    """
    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    try:
        with Image.open(image_path) as img:
            return np.array(img.convert("RGB"))
    except (UnidentifiedImageError, OSError) as err:
        raise ValueError(f"Failed to load image: {image_path}") from err


def save_params(output_path, quality=None):
    """Get Pillow save keyword arguments for the output format.

    Args:
        output_path: Destination path; its extension selects the format
        quality: Optional JPEG/WebP quality override (>= 101 = lossless WebP)

    Returns:
        dict of keyword arguments for PIL.Image.save
    """
    ext = Path(output_path).suffix.lower()
    if ext in (".jpg", ".jpeg"):
        return {"quality": min(quality or JPEG_QUALITY, 100), "subsampling": 0}
    if ext == ".png":
        return {"compress_level": PNG_COMPRESSION}
    if ext == ".webp":
        webp_quality = quality or WEBP_QUALITY
        if webp_quality > 100:
            return {"lossless": True}
        return {"quality": webp_quality}
    return {}


def save_image(image_rgb, output_path, quality=None):
    """Save an RGB numpy array, creating the parent directory if needed.

    Args:
        image_rgb: uint8 array (H, W, 3)
        output_path: Destination path
        quality: Optional quality override, see save_params

    Raises:
        ValueError: If the image cannot be encoded for this format
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        Image.fromarray(image_rgb).save(output_path, **save_params(output_path, quality))
    except (KeyError, OSError) as err:
        raise ValueError(f"Failed to write image: {output_path}") from err
