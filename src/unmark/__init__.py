"""Reverse alpha blending removal of semi-transparent logo watermarks."""

__version__ = "0.2.0"

from .geometry import (  # noqa: E402
    Region,
    WatermarkPosition,
    WatermarkSize,
    get_fallback_region,
    get_watermark_config,
    get_watermark_size,
)
from .guided_locator import GuidedDetectionResult  # noqa: E402
from .watermark_detector import DetectionResult  # noqa: E402
from .watermark_engine import WatermarkEngine  # noqa: E402

__all__ = [
    "DetectionResult",
    "GuidedDetectionResult",
    "Region",
    "WatermarkEngine",
    "WatermarkPosition",
    "WatermarkSize",
    "get_fallback_region",
    "get_watermark_config",
    "get_watermark_size",
]
