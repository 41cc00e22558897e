"""Three-stage watermark presence detection using alpha map correlation."""

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from .geometry import Region, WatermarkSize, config_for_size, resolve_size

logger = logging.getLogger(__name__)

# Stage 1 circuit breaker: below this spatial score stages 2-3 are skipped
SPATIAL_THRESHOLD = 0.25
# Confidence at or above this marks the result as detected
DETECTION_THRESHOLD = 0.35

SPATIAL_WEIGHT = 0.50
GRADIENT_WEIGHT = 0.30
VARIANCE_WEIGHT = 0.20

MIN_REFERENCE_HEIGHT = 8
MIN_REFERENCE_STDDEV = 5.0

_FLAT_EPSILON = 1e-6


@dataclass
class DetectionResult:
    """Outcome of a single detection call."""

    detected: bool = False
    confidence: float = 0.0
    region: Optional[Region] = None
    size: Optional[WatermarkSize] = None
    spatial_score: float = 0.0
    gradient_score: float = 0.0
    variance_score: float = 0.0


def to_gray(image):
    """Convert a 1/3/4-channel RGB(A) image to single-channel uint8."""
    if image.ndim == 2:
        return image
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0]
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)


def match_template(image, template):
    """Run NCC template matching and return the best score and location.

    Uses TM_CCOEFF_NORMED, so scores are invariant to brightness and
    contrast. A flat template carries no structure and scores 0.

    Args:
        image: float32 search image
        template: float32 template no larger than image

    Returns:
        Tuple (max_score, (x, y)) of the best match
    """
    template = np.ascontiguousarray(template, dtype=np.float32)
    if float(template.std()) < _FLAT_EPSILON:
        return 0.0, (0, 0)
    scores = cv2.matchTemplate(
        np.ascontiguousarray(image, dtype=np.float32), template, cv2.TM_CCOEFF_NORMED
    )
    scores = np.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0)
    _, max_val, _, max_loc = cv2.minMaxLoc(scores)
    return float(max_val), max_loc


def normalized_cross_correlation(patch, template):
    """NCC between two equally sized patches; 0 when either is flat."""
    if float(patch.std()) < _FLAT_EPSILON:
        return 0.0
    score, _ = match_template(patch, template)
    return score


def gradient_magnitude(image):
    """Sobel gradient magnitude of a float32 image."""
    gx = cv2.Sobel(image, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(image, cv2.CV_32F, 0, 1, ksize=3)
    return cv2.magnitude(gx, gy)


class WatermarkDetector:
    """Scores whether the watermark is present at its standard position.

    Stage 1: spatial NCC between the region and the alpha map
    Stage 2: NCC between Sobel gradient magnitudes (edge signature)
    Stage 3: texture dampening relative to the strip above the region

    The detector is stateless; alpha maps are only read.
    """

    def __init__(
        self,
        alpha_small,
        alpha_large,
        detection_threshold=DETECTION_THRESHOLD,
        spatial_threshold=SPATIAL_THRESHOLD,
    ):
        """Initialize the detector.

        Args:
            alpha_small: 48x48 alpha map
            alpha_large: 96x96 alpha map
            detection_threshold: Confidence needed for detected=True
            spatial_threshold: Stage 1 score below which detection stops early
        """
        self.alpha_maps = {
            WatermarkSize.SMALL: alpha_small,
            WatermarkSize.LARGE: alpha_large,
        }
        self.detection_threshold = detection_threshold
        self.spatial_threshold = spatial_threshold

    def detect(self, image, force_size=None):
        """Detect the watermark at its standard position.

        Args:
            image: uint8 image (H, W) or (H, W, C)
            force_size: WatermarkSize to assume, or None to classify by size

        Returns:
            DetectionResult; a default (zero) result for empty images or
            regions outside the image
        """
        result = DetectionResult()
        if image is None or image.size == 0:
            return result

        img_h, img_w = image.shape[:2]
        size = resolve_size(img_w, img_h, force_size)
        config = config_for_size(size)
        alpha_map = self.alpha_maps[size]
        x, y = config.get_position(img_w, img_h)
        alpha_h, alpha_w = alpha_map.shape[:2]

        result.size = size
        result.region = Region(x, y, alpha_w, alpha_h)

        roi = result.region.clamp(img_w, img_h)
        if roi is None:
            logger.debug("Detection: ROI out of bounds")
            return result

        gray_region = to_gray(image[roi.y:roi.bottom, roi.x:roi.right])
        gray_f = gray_region.astype(np.float32) / 255.0
        ax, ay = roi.x - x, roi.y - y
        alpha_region = np.ascontiguousarray(
            alpha_map[ay:ay + roi.height, ax:ax + roi.width], dtype=np.float32
        )

        spatial = normalized_cross_correlation(gray_f, alpha_region)
        result.spatial_score = spatial

        if spatial < self.spatial_threshold:
            result.confidence = max(0.0, spatial * 0.5)
            logger.debug(
                "Detection: spatial=%.3f < %.2f, rejected", spatial, self.spatial_threshold
            )
            return result

        grad = normalized_cross_correlation(
            gradient_magnitude(gray_f), gradient_magnitude(alpha_region)
        )
        result.gradient_score = grad

        result.variance_score = self._variance_score(
            image, gray_region, roi, config.logo_size
        )

        confidence = (
            spatial * SPATIAL_WEIGHT
            + grad * GRADIENT_WEIGHT
            + result.variance_score * VARIANCE_WEIGHT
        )
        result.confidence = float(np.clip(confidence, 0.0, 1.0))
        result.detected = result.confidence >= self.detection_threshold

        logger.debug(
            "Detection: spatial=%.3f, grad=%.3f, var=%.3f -> conf=%.3f (%s)",
            spatial, grad, result.variance_score, result.confidence,
            "DETECTED" if result.detected else "not detected",
        )
        return result

    def _variance_score(self, image, gray_region, roi, logo_size):
        """Texture dampening of the region against the strip directly above it."""
        ref_h = min(roi.y, logo_size)
        if ref_h < MIN_REFERENCE_HEIGHT:
            return 0.0

        gray_ref = to_gray(image[roi.y - ref_h:roi.y, roi.x:roi.right])
        _, s_wm = cv2.meanStdDev(gray_region)
        _, s_ref = cv2.meanStdDev(gray_ref)
        s_wm, s_ref = float(s_wm[0][0]), float(s_ref[0][0])

        if s_ref <= MIN_REFERENCE_STDDEV:
            return 0.0
        return float(np.clip(1.0 - s_wm / s_ref, 0.0, 1.0))
