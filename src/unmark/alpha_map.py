"""Alpha map construction from pure-background watermark captures.

A capture of the logo blended over a pure black background holds exactly
``alpha * logo_value`` at every pixel, so with a white logo the opacity is
simply ``capture / 255``.
"""

import logging
from pathlib import Path

import cv2
import numpy as np

logger = logging.getLogger(__name__)

SMALL_ALPHA_SIZE = 48
LARGE_ALPHA_SIZE = 96


def resize_interpolation(source_size, target_size):
    """Pick the OpenCV interpolation flag for a resample.

    Linear when enlarging along either axis, area averaging otherwise.

    Args:
        source_size: (width, height) of the source
        target_size: (width, height) of the target
    """
    if target_size[0] > source_size[0] or target_size[1] > source_size[1]:
        return cv2.INTER_LINEAR
    return cv2.INTER_AREA


def resample(image, width, height):
    """Resize an image or alpha map to exactly width x height."""
    src_h, src_w = image.shape[:2]
    if (src_w, src_h) == (width, height):
        return image
    interpolation = resize_interpolation((src_w, src_h), (width, height))
    return cv2.resize(image, (width, height), interpolation=interpolation)


def freeze(alpha):
    """Mark an alpha map read-only so it can be shared across threads."""
    alpha = np.ascontiguousarray(alpha, dtype=np.float32)
    alpha.flags.writeable = False
    return alpha


def calculate_alpha_map(background):
    """Convert a pure-background capture into a single-channel alpha map.

    Channels are averaged with equal weight.

    Args:
        background: uint8 capture, (H, W) or (H, W, C); a 4th channel is ignored

    Returns:
        Read-only float32 array (H, W) with values in [0, 1]
    """
    capture = np.asarray(background)
    if capture.ndim == 3:
        capture = capture[:, :, :3].astype(np.float32).mean(axis=2)
    else:
        capture = capture.astype(np.float32)
    return freeze(np.clip(capture / 255.0, 0.0, 1.0))


def build_alpha_map(background, size):
    """Build a size x size alpha map, resampling the capture when needed."""
    height, width = background.shape[:2]
    if (width, height) != (size, size):
        logger.warning(
            "Reference capture is %dx%d, expected %dx%d. Resizing.",
            width, height, size, size,
        )
        background = resample(background, size, size)
    alpha = calculate_alpha_map(background)
    logger.debug(
        "Alpha map %dx%d range: %.4f - %.4f",
        size, size, float(alpha.min()), float(alpha.max()),
    )
    return alpha


def decode_reference(data, label="reference capture"):
    """Decode an encoded reference image held in memory.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if image is None:
        raise ValueError(f"Failed to decode {label}")
    return image


def load_reference(path):
    """Load a reference capture from disk.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file cannot be decoded
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Reference capture not found: {path}")
    return decode_reference(path.read_bytes(), label=f"reference capture {path}")
