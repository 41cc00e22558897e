"""Guided multi-scale watermark search inside a caller-supplied region.

Raw NCC favours small templates: a 24x24 patch can correlate well almost
anywhere inside a watermark. Every raw score is therefore weighted by
``min(1, sqrt(scale / 96))`` before ranking, so a 96x96 match at NCC 0.30
beats a 24x24 match at NCC 0.58.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .alpha_map import resample
from .geometry import Region
from .watermark_detector import match_template, to_gray

logger = logging.getLogger(__name__)

REFERENCE_SIZE = 96
MIN_SEARCH_RECT = 8
MIN_SEARCH_SIZE = 16
COARSE_STEP = 8
STANDARD_SIZES = (48, 96)
STANDARD_SIZE_TOLERANCE = 2
TOP_K = 5
FINE_RANGE = 10
FINE_STEP = 2
MIN_ADJUSTED_SCORE = 0.08


@dataclass
class GuidedDetectionResult:
    """Outcome of a guided search."""

    found: bool = False
    confidence: float = 0.0
    raw_ncc: float = 0.0
    match_region: Optional[Region] = None
    detected_size: int = 0
    scales_searched: int = 0
    total_scales: int = 0
    was_cancelled: bool = False


@dataclass
class _Candidate:
    position: Tuple[int, int]
    scale: int
    raw_score: float
    adjusted_score: float


def size_adjusted_score(raw_ncc, scale, reference_size=REFERENCE_SIZE):
    """Weight a raw NCC score by template size, capped at 1 for scale >= 96."""
    weight = min(1.0, math.sqrt(scale / float(reference_size)))
    return raw_ncc * weight


def coarse_scales(min_size, max_size):
    """Scales for the coarse pass, always including in-range standard sizes."""
    scales = list(range(min_size, max_size + 1, COARSE_STEP))
    for std_size in STANDARD_SIZES:
        if not min_size <= std_size <= max_size:
            continue
        if any(abs(s - std_size) <= STANDARD_SIZE_TOLERANCE for s in scales):
            continue
        scales.append(std_size)
    return sorted(scales)


def _is_cancelled(cancel_flag):
    return cancel_flag is not None and cancel_flag.is_set()


class GuidedLocator:
    """Finds the best-fitting watermark of unknown size inside a region.

    The alpha map is resized to each candidate scale and matched across
    the grayscale search region. A coarse pass keeps the top candidates,
    a fine pass refines scale around each of them.
    """

    def __init__(self, source_alpha):
        """Initialize the locator.

        Args:
            source_alpha: High-resolution (96x96) alpha map used as template source
        """
        self.source_alpha = source_alpha

    def _template(self, scale):
        return resample(self.source_alpha, scale, scale)

    def _best_match(self, gray_f, scale):
        return match_template(gray_f, self._template(scale))

    def locate(self, image, search_rect, cancel_flag=None, min_size=24, max_size=192):
        """Search for the watermark inside search_rect.

        Args:
            image: uint8 image (H, W) or (H, W, C)
            search_rect: Region to search, clamped to the image
            cancel_flag: Object with is_set() (e.g. threading.Event), or None
            min_size: Smallest template side (floored at 16)
            max_size: Largest template side (capped at the search region)

        Returns:
            GuidedDetectionResult with an image-absolute match_region
        """
        start_time = time.perf_counter()
        result = GuidedDetectionResult()

        if image is None or image.size == 0:
            return result
        if search_rect.width < MIN_SEARCH_RECT or search_rect.height < MIN_SEARCH_RECT:
            return result

        img_h, img_w = image.shape[:2]
        search = search_rect.clamp(img_w, img_h)
        if search is None or search.width < MIN_SEARCH_RECT or search.height < MIN_SEARCH_RECT:
            return result

        min_size = max(min_size, MIN_SEARCH_SIZE)
        max_size = min(max_size, search.width, search.height)
        if min_size > max_size:
            logger.debug(
                "guided_detect: min_size %d > max_size %d, no search possible",
                min_size, max_size,
            )
            return result

        gray = to_gray(image[search.y:search.bottom, search.x:search.right])
        gray_f = gray.astype(np.float32) / 255.0

        scales = coarse_scales(min_size, max_size)
        result.total_scales = len(scales)
        logger.debug(
            "guided_detect: searching %d scales [%d-%d] in %dx%d region",
            len(scales), min_size, max_size, search.width, search.height,
        )

        candidates = self._coarse_pass(gray_f, scales, cancel_flag, result)
        if not candidates:
            logger.info(
                "guided_detect: no candidates found in %.1f ms (%d scales)",
                (time.perf_counter() - start_time) * 1000, result.scales_searched,
            )
            return result

        best = self._fine_pass(gray_f, candidates, min_size, max_size, cancel_flag, result)
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        if best is not None and best.adjusted_score > MIN_ADJUSTED_SCORE:
            result.found = True
            result.confidence = best.adjusted_score
            result.raw_ncc = best.raw_score
            result.detected_size = best.scale
            result.match_region = Region(
                search.x + best.position[0],
                search.y + best.position[1],
                best.scale,
                best.scale,
            )
            logger.info(
                "guided_detect: found at (%d,%d) size %dx%d raw_ncc=%.3f adjusted=%.3f "
                "in %.1f ms (%d coarse scales, %d candidates refined)",
                result.match_region.x, result.match_region.y, best.scale, best.scale,
                best.raw_score, best.adjusted_score, elapsed_ms,
                result.scales_searched, len(candidates),
            )
        else:
            logger.info("guided_detect: no match above threshold in %.1f ms", elapsed_ms)

        return result

    def _coarse_pass(self, gray_f, scales, cancel_flag, result) -> List[_Candidate]:
        candidates: List[_Candidate] = []
        search_h, search_w = gray_f.shape[:2]

        for scale in scales:
            if _is_cancelled(cancel_flag):
                result.was_cancelled = True
                logger.debug("guided_detect: cancelled at scale %d", scale)
                break

            result.scales_searched += 1
            if scale > search_w or scale > search_h:
                continue

            raw, loc = self._best_match(gray_f, scale)
            adjusted = size_adjusted_score(raw, scale)
            logger.debug("  scale %3d: raw_ncc=%.3f adjusted=%.3f", scale, raw, adjusted)

            if adjusted <= MIN_ADJUSTED_SCORE:
                continue
            if len(candidates) < TOP_K or adjusted > candidates[-1].adjusted_score:
                if len(candidates) >= TOP_K:
                    candidates.pop()
                candidates.append(_Candidate(loc, scale, raw, adjusted))
                candidates.sort(key=lambda c: c.adjusted_score, reverse=True)

        return candidates

    def _fine_pass(self, gray_f, candidates, min_size, max_size, cancel_flag, result):
        best = None
        search_h, search_w = gray_f.shape[:2]

        for candidate in candidates:
            if _is_cancelled(cancel_flag):
                result.was_cancelled = True
                break

            # Odd offsets from min_size can step over the coarse scale itself
            if best is None or candidate.adjusted_score > best.adjusted_score:
                best = candidate

            scale_lo = max(min_size, candidate.scale - FINE_RANGE)
            scale_hi = min(max_size, candidate.scale + FINE_RANGE)
            for scale in range(scale_lo, scale_hi + 1, FINE_STEP):
                if scale > search_w or scale > search_h:
                    continue
                raw, loc = self._best_match(gray_f, scale)
                adjusted = size_adjusted_score(raw, scale)
                if best is None or adjusted > best.adjusted_score:
                    best = _Candidate(loc, scale, raw, adjusted)

        return best
