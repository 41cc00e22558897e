"""Forward and reverse alpha blending of the watermark logo.

Forward:  watermarked = alpha * logo + (1 - alpha) * original
Reverse:  original = (watermarked - alpha * logo) / (1 - alpha)
"""

import cv2
import numpy as np

from .geometry import Region

DEFAULT_LOGO_VALUE = 255.0

# Alpha below this is noise in the capture; those pixels are left untouched
ALPHA_THRESHOLD = 0.002
# Upper clamp on alpha so (1 - alpha) never reaches zero
MAX_ALPHA = 0.99


def ensure_rgb(image):
    """Normalize an image to 3 channels.

    Args:
        image: uint8 array (H, W), (H, W, 1), (H, W, 3) or (H, W, 4)

    Returns:
        The same array when already 3-channel, else a converted copy

    Raises:
        ValueError: If the image is empty
    """
    if image is None or image.size == 0:
        raise ValueError("Empty image provided")

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    channels = image.shape[2]
    if channels == 1:
        return cv2.cvtColor(image[:, :, 0], cv2.COLOR_GRAY2RGB)
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    return image


def _clamped_views(image, alpha_map, position):
    """Slice the image and alpha map to their overlap.

    Returns:
        (image_view, alpha_view) or None when they do not overlap
    """
    img_h, img_w = image.shape[:2]
    alpha_h, alpha_w = alpha_map.shape[:2]
    x, y = position
    roi = Region(x, y, alpha_w, alpha_h).clamp(img_w, img_h)
    if roi is None:
        return None

    image_view = image[roi.y:roi.bottom, roi.x:roi.right]
    ax, ay = roi.x - x, roi.y - y
    alpha_view = alpha_map[ay:ay + roi.height, ax:ax + roi.width]
    return image_view, alpha_view


def remove_watermark_alpha_blend(image, alpha_map, position, logo_value=DEFAULT_LOGO_VALUE):
    """Invert the watermark blend in place.

    Only pixels inside the overlap of the alpha map box and the image are
    written. Results are clamped to [0, 255] and rounded.

    Args:
        image: uint8 RGB image (H, W, 3), modified in place
        alpha_map: float alpha map (h, w) in [0, 1]
        position: (x, y) of the alpha map's top-left corner in the image
        logo_value: Brightness of the logo (255 = white)
    """
    if image is None or image.size == 0:
        raise ValueError("Empty image provided")

    views = _clamped_views(image, alpha_map, position)
    if views is None:
        return
    image_view, alpha_view = views

    active = alpha_view >= ALPHA_THRESHOLD
    alpha = np.clip(alpha_view, 0.0, MAX_ALPHA).astype(np.float32)[:, :, np.newaxis]

    region = image_view.astype(np.float32)
    restored = (region - alpha * logo_value) / (1.0 - alpha)
    result = np.where(active[:, :, np.newaxis], restored, region)

    image_view[...] = np.clip(np.round(result), 0, 255).astype(np.uint8)


def add_watermark_alpha_blend(image, alpha_map, position, logo_value=DEFAULT_LOGO_VALUE):
    """Apply the watermark blend in place.

    Args:
        image: uint8 RGB image (H, W, 3), modified in place
        alpha_map: float alpha map (h, w) in [0, 1]
        position: (x, y) of the alpha map's top-left corner in the image
        logo_value: Brightness of the logo (255 = white)
    """
    if image is None or image.size == 0:
        raise ValueError("Empty image provided")

    views = _clamped_views(image, alpha_map, position)
    if views is None:
        return
    image_view, alpha_view = views

    alpha = np.clip(alpha_view, 0.0, 1.0).astype(np.float32)[:, :, np.newaxis]
    result = alpha * logo_value + (1.0 - alpha) * image_view.astype(np.float32)

    image_view[...] = np.clip(np.round(result), 0, 255).astype(np.uint8)
