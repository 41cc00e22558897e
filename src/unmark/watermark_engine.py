"""Watermark engine: owns the alpha maps and exposes size-aware operations."""

import logging
from pathlib import Path

from .alpha_map import (
    LARGE_ALPHA_SIZE,
    SMALL_ALPHA_SIZE,
    build_alpha_map,
    decode_reference,
    freeze,
    load_reference,
    resample,
)
from .blend import (
    DEFAULT_LOGO_VALUE,
    add_watermark_alpha_blend,
    ensure_rgb,
    remove_watermark_alpha_blend,
)
from .geometry import WatermarkSize, resolve_size, standard_region
from .guided_locator import GuidedLocator
from .watermark_detector import DETECTION_THRESHOLD, WatermarkDetector

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).parent / "assets"
SMALL_ASSET_NAME = "bg_48.png"
LARGE_ASSET_NAME = "bg_96.png"


class WatermarkEngine:
    """Removes, adds and detects the watermark using reverse alpha blending.

    The two alpha maps are derived once from pure-background captures and
    never modified afterwards, so one engine may be shared by threads that
    each work on their own image.
    """

    def __init__(
        self,
        bg_small,
        bg_large,
        logo_value=DEFAULT_LOGO_VALUE,
        detection_threshold=DETECTION_THRESHOLD,
    ):
        """Initialize the engine from decoded background captures.

        Args:
            bg_small: Decoded 48x48 capture (resized if it differs)
            bg_large: Decoded 96x96 capture (resized if it differs)
            logo_value: Logo brightness (255 = white)
            detection_threshold: Confidence at which detect() reports detected
        """
        if bg_small is None or bg_small.size == 0:
            raise ValueError("Small background capture is empty")
        if bg_large is None or bg_large.size == 0:
            raise ValueError("Large background capture is empty")

        self.logo_value = float(logo_value)
        self.alpha_map_small = build_alpha_map(bg_small, SMALL_ALPHA_SIZE)
        self.alpha_map_large = build_alpha_map(bg_large, LARGE_ALPHA_SIZE)
        self.detector = WatermarkDetector(
            self.alpha_map_small,
            self.alpha_map_large,
            detection_threshold=detection_threshold,
        )
        self.locator = GuidedLocator(self.alpha_map_large)

    @classmethod
    def from_files(cls, bg_small_path, bg_large_path, **kwargs):
        """Create an engine from capture files on disk."""
        engine = cls(load_reference(bg_small_path), load_reference(bg_large_path), **kwargs)
        logger.info("Loaded background captures from files")
        return engine

    @classmethod
    def from_bytes(cls, png_small, png_large, **kwargs):
        """Create an engine from encoded captures held in memory."""
        engine = cls(
            decode_reference(png_small, "small background capture"),
            decode_reference(png_large, "large background capture"),
            **kwargs,
        )
        logger.info("Loaded embedded background captures")
        return engine

    @classmethod
    def from_assets(cls, assets_dir=None, **kwargs):
        """Create an engine from bg_48.png / bg_96.png in an assets directory.

        Args:
            assets_dir: Directory holding the captures; the package's
                assets directory if None
        """
        assets_dir = Path(assets_dir) if assets_dir is not None else ASSETS_DIR
        return cls.from_files(
            assets_dir / SMALL_ASSET_NAME, assets_dir / LARGE_ASSET_NAME, **kwargs
        )

    def get_alpha_map(self, size):
        """Return the read-only alpha map for a WatermarkSize."""
        if size is WatermarkSize.LARGE:
            return self.alpha_map_large
        return self.alpha_map_small

    def create_interpolated_alpha(self, width, height):
        """Resample the 96x96 alpha map to width x height.

        The large map carries more structure than the small one, so it is
        the source for every custom size.
        """
        source = self.alpha_map_large
        if (width, height) == (source.shape[1], source.shape[0]):
            return source
        logger.debug(
            "Created interpolated alpha map: %dx%d -> %dx%d",
            source.shape[1], source.shape[0], width, height,
        )
        return freeze(resample(source, width, height))

    def _custom_alpha(self, region):
        if (region.width, region.height) == (SMALL_ALPHA_SIZE, SMALL_ALPHA_SIZE):
            return self.alpha_map_small
        if (region.width, region.height) == (LARGE_ALPHA_SIZE, LARGE_ALPHA_SIZE):
            return self.alpha_map_large
        return self.create_interpolated_alpha(region.width, region.height)

    def detect(self, image, force_size=None):
        """Score the standard watermark position. Never raises.

        Args:
            image: uint8 image
            force_size: WatermarkSize, or None to classify by dimensions

        Returns:
            DetectionResult
        """
        return self.detector.detect(image, force_size)

    def passes_gate(self, image, min_confidence, force_size=None):
        """Run detection and compare its confidence against min_confidence.

        Args:
            image: uint8 image
            min_confidence: Confidence needed to process the image
            force_size: WatermarkSize, or None to classify by dimensions

        Returns:
            Tuple (passed, DetectionResult)
        """
        detection = self.detect(image, force_size)
        if detection.confidence < min_confidence:
            logger.info(
                "No watermark detected (%.0f%% < %.0f%%), image left unchanged",
                detection.confidence * 100, min_confidence * 100,
            )
            logger.debug(
                "spatial=%.2f, grad=%.2f, var=%.2f",
                detection.spatial_score, detection.gradient_score,
                detection.variance_score,
            )
            return False, detection

        logger.info(
            "Watermark detected (%.0f%% confidence), processing...",
            detection.confidence * 100,
        )
        return True, detection

    def remove(self, image, force_size=None, min_confidence=None):
        """Remove the watermark at its standard position.

        Args:
            image: uint8 image; 3-channel input is modified in place
            force_size: WatermarkSize, or None to classify by dimensions
            min_confidence: If set, run detection first and leave the image
                untouched when confidence is below this value

        Returns:
            The processed 3-channel image

        Raises:
            ValueError: If the image is empty
        """
        image = ensure_rgb(image)
        img_h, img_w = image.shape[:2]

        if min_confidence is not None:
            passed, _ = self.passes_gate(image, min_confidence, force_size)
            if not passed:
                return image

        size = resolve_size(img_w, img_h, force_size)
        region = standard_region(img_w, img_h, size)
        logger.debug(
            "Removing watermark at (%d, %d) with %dx%d alpha map (size: %s)",
            region.x, region.y, region.width, region.height, size.name,
        )
        remove_watermark_alpha_blend(
            image, self.get_alpha_map(size), (region.x, region.y), self.logo_value
        )
        return image

    def add(self, image, force_size=None):
        """Blend the watermark in at its standard position.

        Args:
            image: uint8 image; 3-channel input is modified in place
            force_size: WatermarkSize, or None to classify by dimensions

        Returns:
            The processed 3-channel image
        """
        image = ensure_rgb(image)
        img_h, img_w = image.shape[:2]
        size = resolve_size(img_w, img_h, force_size)
        region = standard_region(img_w, img_h, size)
        logger.debug(
            "Adding watermark at (%d, %d) with %dx%d alpha map (size: %s)",
            region.x, region.y, region.width, region.height, size.name,
        )
        add_watermark_alpha_blend(
            image, self.get_alpha_map(size), (region.x, region.y), self.logo_value
        )
        return image

    def remove_custom(self, image, region):
        """Remove a watermark occupying an arbitrary region.

        Args:
            image: uint8 image; 3-channel input is modified in place
            region: Region of the watermark; parts outside the image are ignored

        Returns:
            The processed 3-channel image
        """
        image = ensure_rgb(image)
        if region.is_empty:
            return image
        logger.info(
            "Removing watermark at (%d,%d) with custom %dx%d alpha map",
            region.x, region.y, region.width, region.height,
        )
        remove_watermark_alpha_blend(
            image, self._custom_alpha(region), (region.x, region.y), self.logo_value
        )
        return image

    def add_custom(self, image, region):
        """Blend the watermark into an arbitrary region.

        Args:
            image: uint8 image; 3-channel input is modified in place
            region: Target Region

        Returns:
            The processed 3-channel image
        """
        image = ensure_rgb(image)
        if region.is_empty:
            return image
        logger.info(
            "Adding watermark at (%d,%d) with custom %dx%d alpha map",
            region.x, region.y, region.width, region.height,
        )
        add_watermark_alpha_blend(
            image, self._custom_alpha(region), (region.x, region.y), self.logo_value
        )
        return image

    def guided_locate(self, image, search_rect, cancel_flag=None, min_size=24, max_size=192):
        """Find the watermark's exact size and position inside search_rect.

        See GuidedLocator.locate.
        """
        return self.locator.locate(
            image, search_rect, cancel_flag=cancel_flag, min_size=min_size, max_size=max_size
        )

    def fallback_region(self, image):
        """Standard geometric watermark box for an image, unclamped."""
        img_h, img_w = image.shape[:2]
        return standard_region(img_w, img_h)

